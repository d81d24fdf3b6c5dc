"""
rvc_claim.commit

Finalizes a claim once its quiet window has elapsed without a lost conflict.

No frame is sent on success: the original, unchallenged ADDRESS_CLAIMED
announcement stands as the claim.
"""

import logging
from typing import Optional

from rvc_claim.state import ClaimOutcome, ClaimPhase, ClaimProgress
from rvc_claim.store import SOURCE_ADDRESS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class CommitHandler:
    def __init__(self, progress: ClaimProgress, durable_store: KeyValueStore):
        self.progress = progress
        self.durable_store = durable_store

    @property
    def committed_address(self) -> Optional[int]:
        return self.durable_store.get(SOURCE_ADDRESS_KEY)

    def on_claim_timer_fired(self, address_token: int, cycle: Optional[int] = None) -> ClaimOutcome:
        """
        Commit `address_token` if it is still the live claim.

        Args:
            address_token: Address the expiring timer was armed for.
            cycle: Broadcast cycle the timer was armed in, if known.

        Returns:
            COMMITTED on success, STALE if the claim was lost or superseded,
            COMMIT_FAILED if the durable store could not be written.
        """
        progress = self.progress

        if not progress.claiming:
            logger.debug(
                f"Timer expired for address {address_token}, but claim was cancelled - ignoring"
            )
            return ClaimOutcome.STALE

        if progress.claiming_address != address_token:
            logger.debug(
                f"Timer expired for address {address_token}, but we're now trying "
                f"{progress.claiming_address} - ignoring stale timer"
            )
            return ClaimOutcome.STALE

        if cycle is not None and cycle != progress.cycle:
            logger.debug(
                f"Timer for address {address_token} belongs to superseded cycle {cycle} "
                f"(current {progress.cycle}) - ignoring stale timer"
            )
            return ClaimOutcome.STALE

        try:
            self.durable_store.set(SOURCE_ADDRESS_KEY, address_token)
        except OSError as e:
            progress.clear()
            progress.phase = ClaimPhase.FAILED
            progress.last_error = f"Could not store claimed address {address_token}: {e}"
            logger.error(progress.last_error)
            return ClaimOutcome.COMMIT_FAILED

        progress.clear()
        progress.phase = ClaimPhase.CLAIMED

        logger.info(f"Successfully claimed address {address_token} (0x{address_token:02X})")
        return ClaimOutcome.COMMITTED
