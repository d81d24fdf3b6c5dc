"""
rvc_claim.monitor

Evaluates inbound ADDRESS_CLAIMED announcements against the claim in flight.

Arbitration rule: when two nodes claim the same address, the NAME with the lower
numerical value (unsigned, big-endian) keeps it. An announcement carrying our own
NAME is our broadcast echoed back and never counts as a conflict.
"""

import logging
from typing import Callable

from rvc_claim.frames import name_to_hex
from rvc_claim.state import ClaimOutcome, ClaimProgress

logger = logging.getLogger(__name__)


def name_value(name: bytes) -> int:
    return int.from_bytes(bytes(name), byteorder="big", signed=False)


def wins_arbitration(our_name: bytes, competitor_name: bytes) -> bool:
    """True if `our_name` keeps the address against `competitor_name`."""
    return name_value(our_name) < name_value(competitor_name)


class ConflictMonitor:
    """
    Args:
        progress: Shared claim progress.
        retry: Called after a lost arbitration to select and announce the next candidate.
    """

    def __init__(self, progress: ClaimProgress, retry: Callable[[], None]):
        self.progress = progress
        self.retry = retry

    def on_address_claimed_received(
        self, source_address: int, competitor_name: bytes
    ) -> ClaimOutcome:
        progress = self.progress

        if not progress.claiming:
            return ClaimOutcome.NOT_CLAIMING

        if source_address != progress.claiming_address:
            return ClaimOutcome.UNRELATED

        competitor_name = bytes(competitor_name)
        if competitor_name == progress.our_name:
            logger.debug(f"Ignoring echo of our own claim for address {source_address}")
            return ClaimOutcome.SELF_ECHO

        our_hex = name_to_hex(progress.our_name)
        logger.warning(f"Address {source_address} conflict detected!")
        logger.warning(f"Our NAME: {our_hex}, Competitor NAME: {name_to_hex(competitor_name)}")

        if wins_arbitration(progress.our_name, competitor_name):
            logger.warning(f"We WIN the conflict. Continuing to claim address {source_address}")
            return ClaimOutcome.WON

        logger.warning("We LOSE the conflict. Cancelling timer and trying next address.")
        progress.claiming = False
        self.retry()
        return ClaimOutcome.LOST
