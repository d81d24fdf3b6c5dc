"""
Defines FastAPI APIRouter for address claim operations.

This module includes routes to inspect the address claim state machine, to start
a claim, to trigger the operator reset (new NAME, claim from the top of the range),
to list known source addresses and to check the CAN transmit queue.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from claim_daemon import app_state, can_manager
from claim_daemon.metrics import CLAIM_RESETS
from claim_daemon.models import AddressListResponse, ClaimActionResponse, ClaimStatus, QueueStatus
from rvc_claim import ArbitrationService

logger = logging.getLogger(__name__)

api_router_claim = APIRouter()  # FastAPI router for address claim endpoints


def get_claim_service() -> ArbitrationService:
    """Dependency returning the running ArbitrationService, or 503 if there is none."""
    service = app_state.get_claim_service()
    if service is None:
        raise HTTPException(status_code=503, detail="Address claim service is not running")
    return service


@api_router_claim.get("/claim", response_model=ClaimStatus)
async def get_claim_status(service: ArbitrationService = Depends(get_claim_service)):
    """Returns the current address claim status."""
    return service.status()


@api_router_claim.post("/claim/start", response_model=ClaimActionResponse)
async def start_claim(service: ArbitrationService = Depends(get_claim_service)):
    """
    Queues a ClaimStarted event.

    The claim restarts at the current attempt counter; a claim already in flight is
    superseded by the new announcement.
    """
    logger.info("Address claim start requested via API.")
    service.start_claim()
    return ClaimActionResponse(
        status="accepted",
        action="start",
        message="Address claim queued.",
        claim=service.status(),
    )


@api_router_claim.post("/claim/reset", response_model=ClaimActionResponse)
async def reset_claim(service: ArbitrationService = Depends(get_claim_service)):
    """
    Queues a ResetRequested event: the persisted NAME and the attempt counter are
    discarded, a new NAME is generated and claiming restarts from the top of the range.
    """
    logger.warning("Device NAME reset requested via API.")
    CLAIM_RESETS.inc()
    service.request_reset()
    return ClaimActionResponse(
        status="accepted",
        action="reset",
        message="Device NAME reset and new address claim queued.",
        claim=service.status(),
    )


@api_router_claim.get("/addresses", response_model=AddressListResponse)
async def get_addresses():
    """Lists observed, reserved and skipped source addresses."""
    return AddressListResponse(
        observed=app_state.get_observed_source_addresses(),
        reserved=app_state.get_reserved_addresses(),
        used=sorted(app_state.get_used_addresses()),
    )


@api_router_claim.get("/queue", response_model=QueueStatus)
async def get_queue_status():
    """
    Return the current status of the CAN transmit queue.

    Returns:
        "length" (current queue size) and "maxsize" (maximum queue size, or "unbounded").
    """
    queue = can_manager.can_tx_queue
    return QueueStatus(length=queue.qsize(), maxsize=queue.maxsize or "unbounded")
