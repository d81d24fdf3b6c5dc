"""
common.models

Shared Pydantic models for use across rvc-claim modules.

ClaimStatus:
    Point-in-time view of the address claim state machine, produced by
    rvc_claim.service.ArbitrationService.status() and returned by the daemon API.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ClaimStatus(BaseModel):
    """
    ClaimStatus

    Attributes:
        phase (str): One of 'idle', 'claiming', 'claimed', 'failed'.
        claiming (bool): True while an announcement waits out its quiet window.
        claiming_address (Optional[int]): Address currently being announced.
        committed_address (Optional[int]): Durable, claimed source address.
        source_address (int): Address used for outgoing traffic (committed, else 254).
        device_name (Optional[str]): Persisted NAME as 16 hex characters.
        attempt (Optional[int]): Last candidate of the current claim attempt.
        starting_address (int): Top of the claim range.
        min_address (int): Bottom of the claim range.
        last_error (Optional[str]): Operator-visible failure, e.g. pool exhaustion.
    """

    phase: str
    claiming: bool = False
    claiming_address: Optional[int] = None
    committed_address: Optional[int] = None
    source_address: int = Field(..., description="Source address used for outgoing frames.")
    device_name: Optional[str] = None
    attempt: Optional[int] = None
    starting_address: int
    min_address: int
    last_error: Optional[str] = None
