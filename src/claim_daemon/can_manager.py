"""
Manages CAN bus communication for the rvc-claim daemon.

Reader threads receive frames on every configured channel and hand them to the
frame handler; a single asyncio task drains ``can_tx_queue`` onto the buses.
The address claim service transmits through ``CanTransport``, which never touches
a bus directly.

Open buses are kept in ``buses``, keyed by channel name.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Dict, Optional

import can
from can.exceptions import CanInterfaceNotImplementedError

from claim_daemon.config import get_canbus_config
from claim_daemon.metrics import CAN_TX_ENQUEUE_TOTAL, CAN_TX_QUEUE_LENGTH
from rvc_claim.broadcaster import Transport
from rvc_claim.frames import (
    DEFAULT_PRIORITY,
    build_identifier,
    format_frame,
    outgoing_source_address,
)

logger = logging.getLogger(__name__)

# Outgoing (message, channel) pairs. A (None, None) entry stops the writer.
can_tx_queue: asyncio.Queue[tuple[Optional[can.Message], Optional[str]]] = asyncio.Queue()

buses: Dict[str, can.BusABC] = {}


def enqueue_can_message(msg: can.Message, interface_name: str) -> None:
    """Queues a message for the writer task. Must be called on the event loop thread."""
    can_tx_queue.put_nowait((msg, interface_name))
    CAN_TX_ENQUEUE_TOTAL.inc()
    CAN_TX_QUEUE_LENGTH.set(can_tx_queue.qsize())


class CanTransport(Transport):
    """
    Bus transport for the address claim service.

    Wraps each frame in an extended-id can.Message and hands it to the writer task
    through can_tx_queue.
    """

    def __init__(self, interface_name: str):
        self.interface_name = interface_name

    def send(self, identifier: int, payload: bytes) -> None:
        msg = can.Message(arbitration_id=identifier, data=bytes(payload), is_extended_id=True)
        enqueue_can_message(msg, self.interface_name)


def _open_bus(
    iface: str, bustype: str, bitrate: int, log: logging.Logger
) -> Optional[can.BusABC]:
    """Opens a bus on ``iface``; logs and returns None when python-can refuses."""
    try:
        return can.interface.Bus(channel=iface, interface=bustype, bitrate=bitrate)
    except CanInterfaceNotImplementedError as e:
        log.error(f"Cannot open CAN bus '{iface}' ({bustype}, {bitrate}bps): {e}")
    except Exception as e:
        log.error(
            f"Failed to initialize CAN bus '{iface}' ({bustype}, "
            f"{bitrate}bps) due to an unexpected error: {e}"
        )
    return None


def _writer_bus(interface_name: str) -> Optional[can.BusABC]:
    bus = buses.get(interface_name)
    if bus is not None:
        return bus

    canbus = get_canbus_config()
    logger.warning(
        f"CAN writer: no open bus for '{interface_name}', "
        f"opening one via {canbus['bustype']}."
    )
    bus = _open_bus(interface_name, canbus["bustype"], canbus["bitrate"], logger)
    if bus is not None:
        buses[interface_name] = bus
    return bus


async def can_writer():
    """
    Sends queued messages until a (None, None) sentinel is dequeued.

    A channel without an open bus gets one on first use. Messages that cannot be
    sent are logged and dropped; the writer itself keeps running.
    """
    while True:
        msg, interface_name = await can_tx_queue.get()
        try:
            if msg is None:
                logger.info("CAN writer received stop sentinel; exiting.")
                return

            bus = _writer_bus(interface_name)
            if bus is None:
                continue
            try:
                bus.send(msg)
            except can.exceptions.CanError as e:
                logger.error(f"CAN writer failed to send message on {interface_name}: {e}")
                continue
            logger.info(
                f"CAN TX {interface_name}: {format_frame(msg.arbitration_id, bytes(msg.data))}"
            )
        except Exception as e:
            logger.error(
                f"CAN writer: unexpected error while sending on {interface_name}: {e}",
                exc_info=True,
            )
        finally:
            can_tx_queue.task_done()
            CAN_TX_QUEUE_LENGTH.set(can_tx_queue.qsize())


def initialize_can_writer_task() -> asyncio.Task:
    """Schedules can_writer on the running loop."""
    task = asyncio.create_task(can_writer())
    logger.info("CAN writer task started.")
    return task


async def stop_can_writer() -> None:
    await can_tx_queue.put((None, None))


def _read_frames(
    iface_name: str,
    bus: can.BusABC,
    message_handler_callback: Callable,
    log: logging.Logger,
) -> None:
    """
    Listener thread body. Runs until the bus is shut down and dropped from ``buses``.
    """
    while True:
        try:
            msg = bus.recv(timeout=1.0)
            if msg is not None:
                message_handler_callback(msg, iface_name)
        except can.exceptions.CanOperationError as e:
            if buses.get(iface_name) is not bus:
                log.info(f"CAN listener for {iface_name} stopped.")
                return
            log.error(f"CAN receive error on {iface_name}: {e}")
            time.sleep(1)
        except Exception as e:
            log.error(f"CAN listener on {iface_name} failed: {e}", exc_info=True)
            time.sleep(1)


def initialize_can_listeners(
    interfaces: list[str],
    bustype: str,
    bitrate: int,
    message_handler_callback: Callable,
    logger_instance: logging.Logger,
) -> None:
    """
    Opens each CAN interface and starts a daemon listener thread for it.

    Args:
        interfaces: CAN interface names (e.g., ['can0', 'can1']).
        bustype: python-can interface type (e.g., 'socketcan', 'virtual').
        bitrate: The bitrate for the CAN bus.
        message_handler_callback: Called from the listener thread for every received
                                  message with (can.Message, str_interface_name).
        logger_instance: Logger used by this function and by the listener threads.
    """
    if not interfaces:
        logger_instance.warning("No CAN interfaces specified. CAN listeners will not be started.")
        return

    started = 0
    for iface in interfaces:
        bus = _open_bus(iface, bustype, bitrate, logger_instance)
        if bus is None:
            continue
        buses[iface] = bus
        thread = threading.Thread(
            target=_read_frames,
            args=(iface, bus, message_handler_callback, logger_instance),
            name=f"can-listener-{iface}",
            daemon=True,
        )
        thread.start()
        logger_instance.info(f"CAN listener started on {iface} via {bustype} @ {bitrate}bps")
        started += 1
    logger_instance.info(f"{started} CAN listener(s) initialized and started.")


def shutdown_can_buses() -> None:
    """Shuts down and forgets every open bus; listener threads exit on their next receive."""
    for iface_name, bus in list(buses.items()):
        buses.pop(iface_name, None)
        try:
            bus.shutdown()
            logger.info(f"CAN bus '{iface_name}' shut down.")
        except Exception as e:
            logger.error(f"Error shutting down CAN bus '{iface_name}': {e}")


def create_can_message(
    dgn: int,
    payload: bytes,
    committed_address: Optional[int],
    priority: int = DEFAULT_PRIORITY,
) -> can.Message:
    """
    Constructs a can.Message for outgoing RV-C traffic.

    The source address is our committed claim, or the null address (254) while
    no address has been claimed.

    Args:
        dgn: Data Group Number of the message.
        payload: Up to 8 data bytes.
        committed_address: Our claimed source address, if any.
        priority: Message priority (default 6).

    Returns:
        A can.Message object ready to be sent.
    """
    if len(payload) > 8:
        raise ValueError(f"RV-C payload must be at most 8 bytes, got {len(payload)}")
    arbitration_id = build_identifier(dgn, outgoing_source_address(committed_address), priority)
    return can.Message(arbitration_id=arbitration_id, data=bytes(payload), is_extended_id=True)
