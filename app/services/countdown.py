"""
Resend countdown: the gate that stops a new OTP being requested too soon.

One asyncio task ticks once per second. Starting again cancels the previous
task first, so an OTP engine never owns more than one running countdown.
"""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ResendCountdown:
    def __init__(self, seconds: int = 60, tick: float = 1.0):
        self.seconds = seconds
        self.tick = tick
        self._remaining = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def seconds_remaining(self) -> int:
        return self._remaining

    @property
    def can_resend(self) -> bool:
        return self._remaining <= 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Restart from the full length. Must be called from the event loop."""
        self.cancel()
        self._remaining = self.seconds
        if self._remaining > 0:
            self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self.running:
            self._task.cancel()
        self._task = None
        self._remaining = 0

    async def _run(self) -> None:
        while self._remaining > 0:
            await asyncio.sleep(self.tick)
            self._remaining -= 1
        logger.debug("Resend countdown finished")
