"""
rvc_claim.broadcaster

Sends ADDRESS_CLAIMED announcements (DGN EE00) and arms the quiet-window timer.
"""

import logging
from typing import Any, Callable, Optional

from rvc_claim.frames import build_claim_identifier, format_frame
from rvc_claim.state import ClaimProgress
from rvc_claim.timers import TimerService

logger = logging.getLogger(__name__)

CLAIM_WINDOW_SECONDS = 0.25


class Transport:
    """Base class for bus transports. Subclass and implement `send`."""

    def send(self, identifier: int, payload: bytes) -> None:
        raise NotImplementedError


class TimerToken:
    """Token carried by an arbitration timer: the announced address and its cycle."""

    __slots__ = ("address", "cycle")

    def __init__(self, address: int, cycle: Optional[int] = None):
        self.address = address
        self.cycle = cycle

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimerToken):
            return NotImplemented
        return self.address == other.address and self.cycle == other.cycle

    def __repr__(self) -> str:
        return f"TimerToken(address={self.address}, cycle={self.cycle})"


class ClaimBroadcaster:
    """
    Announces a candidate address.

    Args:
        progress: Shared claim progress, updated on every broadcast.
        transport: Bus transport with `send(identifier, payload)`.
        timers: Timer service used for the quiet window.
        on_timer: Callback receiving the TimerToken when the window elapses.
        window: Quiet window length in seconds.
    """

    def __init__(
        self,
        progress: ClaimProgress,
        transport: Transport,
        timers: TimerService,
        on_timer: Callable[[TimerToken], None],
        window: float = CLAIM_WINDOW_SECONDS,
    ):
        self.progress = progress
        self.transport = transport
        self.timers = timers
        self.on_timer = on_timer
        self.window = window
        self._timer_handle: Any = None

    def cancel_timer(self) -> None:
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None

    def broadcast_claim(self, name: bytes, address: int) -> None:
        """
        Send the claim frame for `address`, record it as in flight and arm the timer.

        Any timer armed for an earlier announcement is cancelled first.
        """
        identifier = build_claim_identifier(address)
        payload = bytes(name)

        logger.info(f"Attempting to claim address {address} (0x{address:02X})")
        logger.debug(f"Claim frame: {format_frame(identifier, payload)}")
        self.transport.send(identifier, payload)

        self.cancel_timer()
        cycle = self.progress.begin(address, payload)

        self._timer_handle = self.timers.after(
            self.window, TimerToken(address, cycle), self.on_timer
        )
