"""
rvc_claim.selector

Chooses the next candidate source address.

Candidates are taken from the top of the claim range downwards. Each lost
arbitration moves one address lower, and addresses known to be in use are
skipped. Falling below the lower bound ends the claim cycle with PoolExhausted.
"""

import logging
from typing import AbstractSet, Optional

from rvc_claim.exceptions import PoolExhausted
from rvc_claim.store import ADDRESS_ATTEMPT_KEY, KeyValueStore

logger = logging.getLogger(__name__)

STARTING_ADDRESS = 223
MIN_ADDRESS = 208


def select_address(
    previous: Optional[int],
    used_addresses: AbstractSet[int],
    after_loss: bool,
    starting_address: int = STARTING_ADDRESS,
    min_address: int = MIN_ADDRESS,
) -> int:
    """
    Compute the next address to claim.

    Args:
        previous: Last candidate of this claim attempt, or None to start fresh.
        used_addresses: Addresses known to be occupied on the bus.
        after_loss: True when called because the previous candidate lost arbitration.
        starting_address: Highest address in the claim range.
        min_address: Lowest address in the claim range.

    Returns:
        The candidate address.

    Raises:
        PoolExhausted: If the candidate falls below min_address.
    """
    address = previous if previous is not None else starting_address

    if after_loss:
        address -= 1
        logger.warning(f"Lost address conflict. Trying next address: {address}")

    while address in used_addresses and address >= min_address:
        address -= 1
        logger.warning(f"Address {address + 1} is known to be in use, skipping to {address}")

    if address < min_address:
        raise PoolExhausted(starting_address, min_address)
    return address


class AddressSelector:
    """
    Wraps select_address with the in-cycle attempt counter.

    The counter lives in the transient store so it carries across the retries of
    one claim attempt but not across a restart. It is not advanced when the pool is
    exhausted, so a manual retrigger without reset resumes where the cycle stopped.
    """

    def __init__(
        self,
        transient_store: KeyValueStore,
        starting_address: int = STARTING_ADDRESS,
        min_address: int = MIN_ADDRESS,
    ):
        if min_address > starting_address:
            raise ValueError(
                f"min_address ({min_address}) must not exceed starting_address "
                f"({starting_address})"
            )
        self.transient_store = transient_store
        self.starting_address = starting_address
        self.min_address = min_address

    @property
    def attempt(self) -> Optional[int]:
        return self.transient_store.get(ADDRESS_ATTEMPT_KEY)

    def next_candidate(self, used_addresses: AbstractSet[int], after_loss: bool = False) -> int:
        address = select_address(
            self.attempt,
            used_addresses,
            after_loss,
            starting_address=self.starting_address,
            min_address=self.min_address,
        )
        self.transient_store.set(ADDRESS_ATTEMPT_KEY, address)
        return address
