import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from openai import AsyncOpenAI, OpenAIError

from ..engine.scoring import score_bucket
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentaryRequest:
    context_summary: str
    numeric_result: float
    category: str


FALLBACK_LINES: Dict[str, Tuple[str, ...]] = {
    "gold": (
        "Transparent pricing is the best kind of shine ✨",
        "Now you know exactly what you're paying for. Shop with confidence 💛",
        "Carat, weight, making, GST: nothing hidden in this one 😌",
    ),
    "credit_emi": (
        "Knowing the real cost is half the battle against card debt 💳",
        "Numbers don't lie. Use them before you swipe 😉",
        "A little math now saves a lot of interest later 💪",
    ),
    "investment": (
        "Consistency beats timing in the long run 💪",
        "Compounding rewards patience more than brilliance 🌱",
        "Small steps, big future. Keep going 📈",
    ),
    "stock_average": (
        "Know your average, know your game 📊",
        "A clear cost base makes every next decision easier 😊",
        "Discipline on entries is what keeps the average honest.",
    ),
    "high": ("This ship is sailing straight into the sunset 💘",),
    "good": ("Good match. Not perfect, but perfect is overrated anyway 💅",),
    "mid": ("Situationship energy detected 👀",),
    "low": ("Chemistry low. But drama potential? High 😬",),
    "breakup": ("This is not a love story, this is a prequel to your glow up.",),
}
DEFAULT_FALLBACK = "Hope this helps you plan better 🙂"


def fallback_line(request: CommentaryRequest) -> str:
    """Deterministic local line: same request, same text."""
    key = request.category
    if key == "compatibility":
        key = score_bucket(int(request.numeric_result))
    lines = FALLBACK_LINES.get(key)
    if not lines:
        return DEFAULT_FALLBACK
    return lines[int(abs(request.numeric_result)) % len(lines)]


class CommentaryService:
    """Optional decorative reply from an OpenAI-compatible model.

    `comment()` never raises: any failure, timeout or empty answer becomes
    the deterministic fallback line.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def available(self) -> bool:
        s = self._settings
        return s.commentary_enabled and (self._client is not None or bool(s.openai_api_key))

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            s = self._settings
            self._client = AsyncOpenAI(
                api_key=s.openai_api_key,
                base_url=s.openai_base_url,
                timeout=s.commentary_timeout_seconds,
            )
        return self._client

    async def _ask(self, request: CommentaryRequest) -> Optional[str]:
        s = self._settings
        response = await self._get_client().chat.completions.create(
            model=s.commentary_model,
            messages=[
                {"role": "system", "content": s.commentary_system_prompt},
                {
                    "role": "user",
                    "content": (
                        f"Category: {request.category}\n"
                        f"What they calculated: {request.context_summary}\n"
                        f"Headline number: {request.numeric_result:.2f}"
                    ),
                },
            ],
            temperature=s.commentary_temperature,
        )
        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            logger.warning("Commentary response parse failed: %s", e)
            return None
        text = " ".join(content.split()).strip().strip('"')
        return text or None

    async def comment(self, request: CommentaryRequest) -> str:
        if not self.available:
            return fallback_line(request)
        try:
            text = await asyncio.wait_for(
                self._ask(request), timeout=self._settings.commentary_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Commentary timed out for %s; using fallback", request.category)
            return fallback_line(request)
        except (OpenAIError, ConnectionError, TimeoutError, ValueError) as e:
            logger.warning("Commentary request failed for %s: %s", request.category, e)
            return fallback_line(request)
        if not text:
            logger.info("Empty commentary for %s; using fallback", request.category)
            return fallback_line(request)
        return text


_COMMENTARY_SERVICE: Optional[CommentaryService] = None


def get_commentary_service() -> CommentaryService:
    """Return the shared commentary service (lazy)."""
    global _COMMENTARY_SERVICE
    if _COMMENTARY_SERVICE is None:
        _COMMENTARY_SERVICE = CommentaryService()
    return _COMMENTARY_SERVICE
