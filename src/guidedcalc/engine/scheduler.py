import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


def _log_failure(task: "asyncio.Task[None]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Delayed delivery failed", exc_info=exc)


class TypingScheduler:
    """Holds at most one delayed delivery per tool instance.

    Scheduling a new job cancels the one still waiting, so a slow message can
    never land after a newer one. `cancel()` is called on restart and on
    close so nothing fires into a reset or discarded session.
    """

    def __init__(self, delay_seconds: float) -> None:
        self._delay = max(0.0, float(delay_seconds))
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, job: Job) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(job))
        self._task.add_done_callback(_log_failure)

    async def _run(self, job: Job) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        await job()

    def cancel(self) -> None:
        """Cancel the waiting job, if any. Idempotent."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Cancelled pending delivery")

    async def wait(self) -> None:
        """Wait for the current job to finish; a cancelled job counts as finished."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
