"""Cancellable listening sessions and the registry of in-flight handles."""
import asyncio
import logging
from typing import Coroutine, Optional, Set

from vocabai.errors import RecognitionError
from vocabai.services.speech_io import SpeechIO

logger = logging.getLogger(__name__)


class ListeningSession:
    """Runs at most one ``listen_once`` capture at a time.

    Starting a capture while another one is active cancels the old one and
    waits for it to settle first.
    """

    def __init__(self, speech_io: SpeechIO):
        self.speech_io = speech_io
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def listen(self) -> str:
        """Capture one transcript or raise RecognitionError."""
        await self.cancel()
        task = asyncio.ensure_future(self.speech_io.listen_once())
        self._task = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise RecognitionError(RecognitionError.CANCELLED, "Listening session was cancelled") from None
        finally:
            if self._task is task:
                self._task = None

    async def cancel(self) -> None:
        """Stop the active capture, if any, and wait until it has ended."""
        task = self._task
        if task is None or task.done():
            return
        logger.debug("Cancelling active listening session")
        self.speech_io.cancel_listening()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


class HandleRegistry:
    """Every cancellable task the session has in flight.

    Reset cancels them all deterministically instead of hunting for stray
    timers.
    """

    def __init__(self):
        self._handles: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._handles.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._handles.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Task %s failed", task.get_name(), exc_info=task.exception())

    async def cancel_all(self, exclude: Optional[asyncio.Task] = None) -> int:
        """Cancel every pending handle except ``exclude`` and wait for them."""
        pending = [task for task in self._handles if task is not exclude and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Cancelled %d pending handles", len(pending))
        return len(pending)

    def __len__(self) -> int:
        return sum(1 for task in self._handles if not task.done())
