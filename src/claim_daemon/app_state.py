"""
Manages the in-memory application state for the rvc-claim daemon.

This module holds the running ArbitrationService, the source addresses observed
on the bus and the operator-reserved addresses. Together the last two form the
set of addresses the claim selector must skip. It also turns claim outcomes into
Prometheus metrics.
"""

import logging
from typing import List, Optional, Set

from claim_daemon.metrics import (
    CLAIM_BROADCASTS,
    CLAIM_CONFLICTS,
    CLAIM_IN_PROGRESS,
    CLAIM_OUTCOMES,
    CLAIM_POOL_EXHAUSTED,
    CLAIM_STALE_TIMERS,
    CLAIMED_ADDRESS,
    OBSERVED_ADDRESSES,
)
from rvc_claim import ArbitrationService, ClaimOutcome

logger = logging.getLogger(__name__)

# The arbitration service, created during application startup
claim_service: Optional[ArbitrationService] = None

# Set to track all observed source addresses on the CAN bus (other nodes only)
observed_source_addresses: Set[int] = set()

# Addresses reserved by configuration; never claimed
reserved_addresses: Set[int] = set()


def set_claim_service(service: Optional[ArbitrationService]) -> None:
    global claim_service
    claim_service = service


def get_claim_service() -> Optional[ArbitrationService]:
    return claim_service


def get_observed_source_addresses() -> List[int]:
    """Returns a sorted list of all observed CAN source addresses (as ints)."""
    return sorted(observed_source_addresses)


def add_observed_source_address(address: int) -> bool:
    """
    Records a source address seen on the bus.

    Returns:
        True if the address had not been seen before.
    """
    if address in observed_source_addresses:
        return False
    observed_source_addresses.add(address)
    OBSERVED_ADDRESSES.set(len(observed_source_addresses))
    logger.debug(f"New source address observed on the bus: {address} (0x{address:02X})")
    return True


def set_reserved_addresses(addresses: Set[int]) -> None:
    global reserved_addresses
    reserved_addresses = set(addresses)


def get_reserved_addresses() -> List[int]:
    return sorted(reserved_addresses)


def get_used_addresses() -> Set[int]:
    """Addresses the claim selector must skip: reserved plus observed."""
    return set(reserved_addresses) | set(observed_source_addresses)


def record_claim_outcome(outcome: ClaimOutcome) -> None:
    """
    Updates claim metrics for one outcome reported by the ArbitrationService.
    """
    CLAIM_OUTCOMES.labels(outcome=outcome.value).inc()

    if outcome is ClaimOutcome.BROADCAST:
        CLAIM_BROADCASTS.inc()
    elif outcome in (ClaimOutcome.WON, ClaimOutcome.LOST):
        CLAIM_CONFLICTS.labels(result=outcome.value).inc()
    elif outcome is ClaimOutcome.STALE:
        CLAIM_STALE_TIMERS.inc()
    elif outcome is ClaimOutcome.POOL_EXHAUSTED:
        CLAIM_POOL_EXHAUSTED.inc()

    service = claim_service
    if service is None:
        return
    CLAIM_IN_PROGRESS.set(1 if service.progress.claiming else 0)
    committed = service.committed_address
    CLAIMED_ADDRESS.set(committed if committed is not None else -1)
