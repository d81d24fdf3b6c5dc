"""
Handles the processing of incoming CAN messages for the rvc-claim daemon.

This module is responsible for:
- Receiving raw CAN messages from the listener threads.
- Handing each message over to the asyncio event loop, so all claim state is
  touched from a single thread.
- Recognizing ADDRESS_CLAIMED (DGN EE00) frames, validating them and forwarding
  them to the ArbitrationService as CompetitorSeen events.
- Tracking source addresses used by other nodes on the bus.
- Recording relevant metrics.
"""

import asyncio
import logging
from typing import Optional

import can

from claim_daemon.app_state import add_observed_source_address
from claim_daemon.metrics import CLAIM_FRAMES_SEEN, FRAME_COUNTER, MALFORMED_CLAIM_FRAMES
from rvc_claim import ArbitrationService, MalformedCompetitorFrame
from rvc_claim.frames import (
    BROADCAST_ADDRESS,
    NULL_ADDRESS,
    format_frame,
    is_address_claim,
    is_own_frame,
    name_from_hex,
    parse_address_claim,
    split_identifier,
)
from rvc_claim.monitor import wins_arbitration

logger = logging.getLogger(__name__)


def process_can_message(
    msg: can.Message,
    iface_name: str,
    loop: asyncio.AbstractEventLoop,
    service: ArbitrationService,
    claim_interface: str,
):
    """
    Listener-thread entry point for every received CAN message.

    Only extended-id frames from the arbitration interface are considered; they are
    passed to dispatch_frame on the event loop.
    """
    FRAME_COUNTER.inc()

    if iface_name != claim_interface or not msg.is_extended_id or msg.is_error_frame:
        return

    if loop and loop.is_running():
        loop.call_soon_threadsafe(dispatch_frame, msg.arbitration_id, bytes(msg.data), service)


def _own_name(service: ArbitrationService) -> Optional[bytes]:
    if service.our_name is not None:
        return service.our_name
    stored = service.identity.current_identity()
    return name_from_hex(stored) if stored else None


def _observe(source_address: int) -> None:
    if source_address not in (NULL_ADDRESS, BROADCAST_ADDRESS):
        add_observed_source_address(source_address)


def _claim_takes_address(service: ArbitrationService, source_address: int, name: bytes) -> bool:
    """
    Whether a competitor's claim leaves `source_address` occupied by that node.

    A claim for the address we are announcing only takes it if it beats our NAME;
    a claim for our committed address never does, since we keep that address.
    """
    progress = service.progress
    if progress.claiming and source_address == progress.claiming_address:
        return not wins_arbitration(progress.our_name, name)
    return source_address != service.committed_address


def dispatch_frame(identifier: int, data: bytes, service: ArbitrationService) -> None:
    """
    Event-loop side of frame processing.

    ADDRESS_CLAIMED frames become CompetitorSeen events (our own echoes included;
    the conflict monitor filters them). A claim only marks its address as in use
    when that node keeps it, not when it loses to our claim or contests our
    committed address. Every other frame contributes its source address unless it
    was sent from our committed address.
    """
    _, dgn, source_address = split_identifier(identifier)

    if is_address_claim(dgn):
        CLAIM_FRAMES_SEEN.inc()
        try:
            source_address, name = parse_address_claim(identifier, data)
        except MalformedCompetitorFrame as e:
            MALFORMED_CLAIM_FRAMES.inc()
            logger.warning(f"{e} (data: {data.hex().upper()}); ignoring.")
            return

        logger.debug(f"ADDRESS_CLAIMED received: {format_frame(identifier, name)}")
        if name != _own_name(service) and _claim_takes_address(service, source_address, name):
            _observe(source_address)
        service.competitor_seen(source_address, name)
        return

    if is_own_frame(identifier, service.committed_address):
        return
    _observe(source_address)
