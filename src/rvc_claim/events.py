"""
rvc_claim.events

Events consumed by the ArbitrationService dispatch loop.

Every input to the claim state machine (operator start, inbound claim frame,
timer expiry, operator reset) is one of these, and each is handled to completion
before the next is taken from the queue.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ClaimStarted(BaseModel):
    """Begin (or restart) a claim at the current attempt counter."""


class CompetitorSeen(BaseModel):
    """An ADDRESS_CLAIMED frame arrived from `source_address` carrying `name`."""

    source_address: int = Field(..., ge=0, le=0xFF)
    name: bytes


class TimerFired(BaseModel):
    """The quiet window armed for `address` in broadcast cycle `cycle` elapsed."""

    address: int
    cycle: Optional[int] = None


class ResetRequested(BaseModel):
    """Discard the device NAME and attempt counter, then claim again from the top."""
