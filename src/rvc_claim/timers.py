"""
rvc_claim.timers

One-shot timers for the arbitration quiet window.

A timer calls back once with the token it was armed with. Cancelling is best
effort: the commit handler ignores stale tokens, so a timer that still fires after
being superseded does no harm.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TimerService:
    """Base class for timer services. Subclass and implement `after`."""

    def after(self, delay: float, token: Any, callback: Callable[[Any], None]):
        """
        Arm a one-shot timer.

        Args:
            delay: Seconds to wait.
            token: Value passed to the callback.
            callback: Called once with `token` when the timer expires.

        Returns:
            A handle with a `cancel()` method.
        """
        raise NotImplementedError


class AsyncioTimerService(TimerService):
    """Timer service built on `loop.call_later`."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def after(
        self, delay: float, token: Any, callback: Callable[[Any], None]
    ) -> asyncio.TimerHandle:
        logger.debug(f"Arming {delay * 1000:.0f}ms timer with token {token!r}")
        return self.loop.call_later(delay, callback, token)
