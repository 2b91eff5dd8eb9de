"""
One-shot start guard for the dispatch loop.

The composition root builds one DispatcherLifecycle per process and hands it
to everything that may want to start the loop (the API lifespan hook, the
start endpoint). Only the first start() launches the loop.
"""

import asyncio
import logging

from helpdesk_jobs.worker.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class DispatcherLifecycle:
    """
    Owns the background task running a Dispatcher.

    start() is idempotent: the first call schedules the loop, later calls do
    nothing. The latch is never reset; a new process gets a new lifecycle.
    """

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher
        self._task: asyncio.Task | None = None
        self._starts = 0

    @property
    def starts(self) -> int:
        """Number of loops actually launched. Never above one."""
        return self._starts

    def start(self) -> bool:
        """
        Start the dispatch loop if it has not been started yet.

        Must be called from a running event loop. There is no await between
        the check and the task creation, so concurrent callers on the same
        loop cannot both start it.

        Returns:
            True for the call that started the loop, False otherwise.
        """
        if self._task is not None:
            return False

        self._task = asyncio.create_task(self.dispatcher.run(), name="job-dispatch-loop")
        self._starts += 1

        logger.info(
            "Job processor started",
            extra={"poll_interval": self.dispatcher.poll_interval}
        )
        return True

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish its current job."""
        if self._task is None or self._task.done():
            return

        self.dispatcher.stop()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
