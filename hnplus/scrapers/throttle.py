"""Request throttle for polite scraping.

HarnessNation tolerates short bursts but starts answering ``429`` when a
client keeps going, so every ``batch_size`` requests made in quick
succession are followed by a cooldown. A gap longer than ``window``
seconds between requests starts a fresh burst.
"""

import asyncio
import logging
import time
from typing import Optional

from hnplus.errors import CooldownAborted

logger = logging.getLogger(__name__)

# Floor for the cooldown triggered by a 429 response
MIN_COOLDOWN = 5.0


async def abortable_sleep(seconds: float, abort: Optional[asyncio.Event] = None) -> None:
    """Sleep for ``seconds``, raising CooldownAborted as soon as ``abort`` is set."""
    if abort is None:
        await asyncio.sleep(seconds)
        return

    if abort.is_set():
        raise CooldownAborted()

    try:
        await asyncio.wait_for(abort.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    raise CooldownAborted()


class RequestThrottle:
    """Counts requests and cools down every ``batch_size`` requests."""

    def __init__(
        self,
        batch_size: int = 15,
        cooldown: float = 15.0,
        window: float = 30.0,
        abort: Optional[asyncio.Event] = None,
    ):
        self.batch_size = batch_size
        self.cooldown = cooldown
        self.window = window
        self.abort = abort
        self.request_count = 0
        self.last_request_at: Optional[float] = None
        self._cooldown: Optional[asyncio.Task] = None

    @staticmethod
    def _now() -> float:
        return time.monotonic()

    async def before_request(self) -> None:
        """Apply the throttle policy ahead of a network request."""
        if self.last_request_at is not None and self._now() - self.last_request_at > self.window:
            self.request_count = 0

        if self.request_count > 0 and self.batch_size > 0 and self.request_count % self.batch_size == 0:
            logger.info(f"Made {self.request_count} requests: cooling down for {self.cooldown}s")
            await abortable_sleep(self.cooldown, self.abort)

        if self._cooldown is not None:
            await self._cooldown

    def after_request(self) -> None:
        """Record a completed request, successful or not."""
        self.request_count += 1
        self.last_request_at = self._now()

    async def start_cooldown(self) -> None:
        """Shared cooldown after the site pushes back; concurrent callers wait on one timer."""
        if self._cooldown is None:
            seconds = max(self.cooldown, MIN_COOLDOWN)
            logger.warning(f"Rate limited by upstream: cooling down for {seconds}s")
            self._cooldown = asyncio.ensure_future(abortable_sleep(seconds, self.abort))
            self._cooldown.add_done_callback(self._clear_cooldown)
        await self._cooldown

    def _clear_cooldown(self, _task: asyncio.Future) -> None:
        self._cooldown = None
