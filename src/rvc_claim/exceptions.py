"""
rvc_claim.exceptions

Exception types raised by the address claim core.

Only PoolExhausted ever reaches the operator. Stale conflict and timer events are
not errors and are reported through ClaimOutcome values instead of exceptions.
"""

from typing import Optional


class AddressClaimError(Exception):
    """Base class for all address claim errors."""


class PoolExhausted(AddressClaimError):
    """
    Raised when no address remains in the configured claim range.

    Attributes:
        starting_address (int): Upper bound of the claim range.
        min_address (int): Lower bound of the claim range.
    """

    def __init__(self, starting_address: int, min_address: int):
        self.starting_address = starting_address
        self.min_address = min_address
        super().__init__(
            f"Exhausted all addresses in the valid range ({starting_address}-{min_address}). "
            f"Address claiming failed."
        )


class MalformedCompetitorFrame(AddressClaimError):
    """Raised when an ADDRESS_CLAIMED frame is missing its source address or NAME."""

    def __init__(self, reason: str, identifier: Optional[int] = None):
        self.reason = reason
        self.identifier = identifier
        if identifier is not None:
            super().__init__(f"Malformed ADDRESS_CLAIMED frame 0x{identifier:08X}: {reason}")
        else:
            super().__init__(f"Malformed ADDRESS_CLAIMED frame: {reason}")
