import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..models import DisplayEvent, SessionState
from ..services.commentary import CommentaryRequest, CommentaryService
from ..services.session_store import SessionStore
from ..settings import get_settings
from . import dialogue
from .scheduler import TypingScheduler
from .tools import ToolConfig, ToolResult

logger = logging.getLogger(__name__)

EventSink = Callable[[DisplayEvent], None]

# shown right away; assistant lines wait for the typing delay
_IMMEDIATE_KINDS = ("echo", "error")


class DialogueController:
    """Runs one tool instance for one user.

    Owns the SessionState exclusively. Each action applies a pure transition
    from `dialogue`, snapshots the new state when a store is configured,
    emits echo/error events at once and hands the assistant's lines to the
    typing scheduler. When a result is produced, the commentary side channel
    fills one extra message after it; the numeric result never waits for it.
    """

    def __init__(
        self,
        tool: ToolConfig,
        sink: EventSink,
        *,
        session_id: str = "default",
        commentary: Optional[CommentaryService] = None,
        store: Optional[SessionStore] = None,
        typing_delay: Optional[float] = None,
        state: Optional[SessionState] = None,
    ) -> None:
        if typing_delay is None:
            typing_delay = get_settings().typing_delay_seconds
        self.tool = tool
        self.session_id = session_id
        self._sink = sink
        self._commentary = commentary
        self._store = store
        self._scheduler = TypingScheduler(typing_delay)
        self._state = state
        self._closed = False

    @property
    def state(self) -> SessionState:
        if self._state is None:
            raise RuntimeError("controller not started")
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> Tuple[DisplayEvent, ...]:
        """Greet a new session, or re-present the step of a resumed one."""
        if self._state is None:
            return await self._apply(dialogue.begin(self.tool))
        logger.info("Resuming %s session %s", self.tool.tool_id, self.session_id)
        return await self.render_current_step()

    async def render_current_step(self) -> Tuple[DisplayEvent, ...]:
        """Show the current step again, at once.

        Lines still waiting to be typed are dropped first, otherwise the
        same prompt would show twice.
        """
        self._scheduler.cancel()
        events = dialogue.render_current_step(self.tool, self.state)
        for event in events:
            self._emit(event)
        return events

    async def submit_answer(self, field_id: str, raw_value: Any) -> Tuple[DisplayEvent, ...]:
        return await self._apply(
            dialogue.submit_answer(self.tool, self.state, field_id, raw_value)
        )

    async def confirm_suspicious(self) -> Tuple[DisplayEvent, ...]:
        return await self._apply(dialogue.confirm_suspicious(self.tool, self.state))

    async def edit_suspicious(self) -> Tuple[DisplayEvent, ...]:
        return await self._apply(dialogue.edit_suspicious(self.tool, self.state))

    async def restart(self) -> Tuple[DisplayEvent, ...]:
        return await self._apply(dialogue.restart(self.tool))

    async def idle(self) -> None:
        """Wait until the pending delayed delivery, if any, has run."""
        await self._scheduler.wait()

    async def close(self) -> None:
        """Unmount: cancel pending deliveries and drop the session snapshot."""
        if self._closed:
            return
        self._closed = True
        self._scheduler.cancel()
        if self._store is not None:
            await self._store.delete(self.session_id, self.tool.tool_id)
        logger.info("Closed %s session %s", self.tool.tool_id, self.session_id)

    def detach(self) -> None:
        """Connection lost: stop deliveries but keep the snapshot for a resume."""
        self._closed = True
        self._scheduler.cancel()
        logger.info("Detached %s session %s", self.tool.tool_id, self.session_id)

    async def _apply(self, transition: dialogue.Transition) -> Tuple[DisplayEvent, ...]:
        if self._closed:
            logger.warning("Ignoring action on closed %s session %s", self.tool.tool_id, self.session_id)
            return ()
        if transition.restarted:
            self._scheduler.cancel()
        self._state = transition.state
        if self._store is not None:
            await self._store.save(self.session_id, transition.state)

        delayed: List[DisplayEvent] = []
        for event in transition.events:
            if event.kind in _IMMEDIATE_KINDS:
                self._emit(event)
            else:
                delayed.append(event)
        if delayed or transition.result is not None:
            result = transition.result

            async def deliver() -> None:
                await self._deliver(delayed, result)

            self._scheduler.schedule(deliver)
        return transition.events

    async def _deliver(self, events: Sequence[DisplayEvent], result: Optional[ToolResult]) -> None:
        for event in events:
            self._emit(event)
        if result is None or self._commentary is None:
            return
        text = await self._commentary.comment(
            CommentaryRequest(
                context_summary=result.context_summary,
                numeric_result=result.numeric_result,
                category=result.tool_id,
            )
        )
        self._emit(dialogue.say(text, source="commentary"))

    def _emit(self, event: DisplayEvent) -> None:
        try:
            self._sink(event)
        except (RuntimeError, ValueError) as e:
            logger.warning("Display sink rejected %s event: %s", event.kind, e)
