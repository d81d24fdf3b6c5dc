"""
rvc_claim.state

Transient claim progress shared by the broadcaster, conflict monitor and commit handler.

One ClaimProgress instance is owned by the ArbitrationService and handed to each
handler. It is never persisted: a fresh process always starts idle.
"""

from enum import Enum
from typing import Optional


class ClaimPhase(str, Enum):
    IDLE = "idle"
    CLAIMING = "claiming"
    CLAIMED = "claimed"
    FAILED = "failed"


class ClaimOutcome(str, Enum):
    """Result of handling a single claim event."""

    BROADCAST = "broadcast"
    NOT_CLAIMING = "not_claiming"
    UNRELATED = "unrelated"
    SELF_ECHO = "self_echo"
    WON = "won"
    LOST = "lost"
    STALE = "stale"
    COMMITTED = "committed"
    COMMIT_FAILED = "commit_failed"
    POOL_EXHAUSTED = "pool_exhausted"


class ClaimProgress:
    """
    In-flight claim bookkeeping.

    Attributes:
        claiming (bool): True while an announcement is waiting out its quiet window.
        claiming_address (int|None): Address most recently broadcast and not yet superseded.
        our_name (bytes|None): NAME sent with that announcement.
        cycle (int): Incremented by every broadcast; timers carry it to detect superseded cycles.
        phase (ClaimPhase): Coarse state machine position.
        last_error (str|None): Message of the last operator-visible failure.
    """

    def __init__(self):
        self.claiming: bool = False
        self.claiming_address: Optional[int] = None
        self.our_name: Optional[bytes] = None
        self.cycle: int = 0
        self.phase: ClaimPhase = ClaimPhase.IDLE
        self.last_error: Optional[str] = None

    def begin(self, address: int, name: bytes) -> int:
        """Record a new announcement and return its cycle number."""
        self.cycle += 1
        self.claiming = True
        self.claiming_address = address
        self.our_name = bytes(name)
        self.phase = ClaimPhase.CLAIMING
        self.last_error = None
        return self.cycle

    def clear(self) -> None:
        self.claiming = False
        self.claiming_address = None
        self.our_name = None

    def __repr__(self) -> str:
        name = self.our_name.hex().upper() if self.our_name else None
        return (
            f"ClaimProgress(phase={self.phase.value}, claiming={self.claiming}, "
            f"claiming_address={self.claiming_address}, our_name={name}, cycle={self.cycle})"
        )
