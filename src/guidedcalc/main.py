import asyncio
import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .engine import get_tool, list_tools
from .engine.controller import DialogueController
from .models import DisplayEvent
from .services.commentary import get_commentary_service
from .services.session_store import close_session_store, get_session_store_async
from .settings import get_settings

# close codes that mean the user left on purpose
_NORMAL_CLOSE_CODES = (1000, 1001)


def setup_server_logging() -> logging.Logger:
    """Configure and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("guidedcalc")
    if logger.handlers:
        return logging.getLogger("guidedcalc.server")

    logger.setLevel(get_settings().log_level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logging.getLogger("guidedcalc.server")


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


def _error_frame(code: str, message: str) -> Dict[str, Any]:
    return DisplayEvent(
        "error", {"code": code, "message": message, "field_id": None, "attempts": 0}
    ).to_dict()


LOGGER = setup_server_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the optional Redis session store at startup; close it on shutdown."""
    store = await get_session_store_async()
    if store is not None:
        LOGGER.info("Session store (Redis) ready")
    else:
        LOGGER.info("Session store disabled; sessions live only as long as the connection")

    yield

    LOGGER.info("Shutting down...")
    await close_session_store()


app = FastAPI(
    title="Guided Calculators",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


@app.get("/tools")
async def tools() -> list[dict[str, str]]:
    return list_tools()


async def _dispatch(controller: DialogueController, payload: Dict[str, Any]) -> bool:
    """Apply one client action. Returns False when the client asked to close."""
    action = str(payload.get("action") or "").strip().lower()
    if action == "submit":
        await controller.submit_answer(str(payload.get("field_id") or ""), payload.get("value"))
    elif action == "confirm":
        await controller.confirm_suspicious()
    elif action == "edit":
        await controller.edit_suspicious()
    elif action == "restart":
        await controller.restart()
    elif action == "render":
        await controller.render_current_step()
    elif action == "close":
        return False
    else:
        raise ValueError(f"Unknown action: {action or '<empty>'}")
    return True


@app.websocket("/ws/tools/{tool_id}")
async def tool_ws(websocket: WebSocket, tool_id: str, session_id: str = "") -> None:
    """WebSocket dialogue endpoint: one tool instance per connection.

    Client sends JSON actions:
        {"action": "submit", "field_id": str, "value": any}
        {"action": "confirm"} | {"action": "edit"} | {"action": "restart"}
        {"action": "render"} | {"action": "close"}

    Server sends display events as {"kind": str, "payload": dict}; kinds are
    prompt, echo, error and result.
    """
    await websocket.accept()
    try:
        tool = get_tool(tool_id)
    except KeyError:
        LOGGER.warning("WS unknown tool %s", tool_id)
        await websocket.send_json(_error_frame("unknown_tool", f"Unknown tool: {tool_id}"))
        await websocket.close(code=4404)
        return

    store = await get_session_store_async()
    state = None
    if store is not None and session_id:
        state = await store.load(session_id, tool.tool_id)

    outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()

    async def pump() -> None:
        while True:
            frame = await outbox.get()
            try:
                await websocket.send_json(frame)
            except (WebSocketDisconnect, RuntimeError) as e:
                LOGGER.debug("WS send stopped: %s", e)
                return

    controller = DialogueController(
        tool,
        lambda event: outbox.put_nowait(event.to_dict()),
        session_id=session_id or "default",
        commentary=get_commentary_service(),
        store=store if session_id else None,
        state=state,
    )
    sender = asyncio.create_task(pump())
    LOGGER.info("WS %s start session_id=%s resumed=%s", tool.tool_id, session_id, state is not None)

    leave_on_purpose = False
    hung_up = False
    try:
        await controller.start()
        while True:
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
                if not isinstance(payload, dict):
                    raise ValueError("Payload must be a JSON object")
                if not await _dispatch(controller, payload):
                    leave_on_purpose = True
                    break
            except json.JSONDecodeError as e:
                LOGGER.error("Invalid WS payload (not JSON): %s", e)
                outbox.put_nowait(_error_frame("bad_request", "Invalid JSON payload"))
            except ValueError as e:
                LOGGER.warning("Rejected WS frame: %s", e)
                outbox.put_nowait(_error_frame("bad_request", str(e)))
    except WebSocketDisconnect as e:
        leave_on_purpose = e.code in _NORMAL_CLOSE_CODES
        hung_up = True
        LOGGER.info("WS disconnect code=%s", e.code)
    except (ConnectionError, TimeoutError, RuntimeError) as e:
        LOGGER.exception("Unexpected WS error: %s", e)
    finally:
        if leave_on_purpose:
            await controller.close()
        else:
            controller.detach()
        sender.cancel()
        await asyncio.wait({sender})

    if not hung_up:
        # flush what was queued before the close action, then hang up
        try:
            while not outbox.empty():
                await websocket.send_json(outbox.get_nowait())
            await websocket.close()
        except (OSError, RuntimeError, WebSocketDisconnect):
            pass


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("guidedcalc.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
