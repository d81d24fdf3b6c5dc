"""
Defines Pydantic models for API request/response validation and serialization.

Models:
    - ClaimActionResponse: Result of an operator claim action (start, reset)
    - AddressListResponse: Observed, reserved and skipped source addresses
    - QueueStatus: State of the CAN transmit queue
    - ClaimStatus: (re-exported from common.models)
"""

from typing import List, Union

from pydantic import BaseModel, Field

from common.models import ClaimStatus


class ClaimActionResponse(BaseModel):
    """Response for operator-triggered claim actions."""

    status: str
    action: str
    message: str
    claim: ClaimStatus


class AddressListResponse(BaseModel):
    """Source addresses known to the daemon."""

    observed: List[int] = Field(
        default_factory=list, description="Source addresses seen from other nodes on the bus."
    )
    reserved: List[int] = Field(
        default_factory=list, description="Addresses reserved by configuration."
    )
    used: List[int] = Field(
        default_factory=list, description="Addresses the claim selector will skip."
    )


class QueueStatus(BaseModel):
    length: int
    maxsize: Union[int, str]


__all__ = ["AddressListResponse", "ClaimActionResponse", "ClaimStatus", "QueueStatus"]
