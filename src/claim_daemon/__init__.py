"""
claim_daemon

Daemon for rvc-claim: acquires an RV-C source address for this node over a CAN
interface and exposes the claim state through a FastAPI backend.

Modules:
    - app_state: Running claim service, observed and reserved addresses, claim metrics
    - can_manager: CAN bus connection, transmit queue and claim transport
    - can_processing: Routing received frames to the claim service
    - config: Logging and environment-driven configuration
    - main: FastAPI application setup and server entry point
    - metrics: Prometheus metric definitions
    - middleware: HTTP metrics middleware
    - models: Pydantic models for API responses

can_manager.create_can_message and enqueue_can_message are the public helpers for
sending non-claim RV-C traffic from the committed source address.

The FastAPI application lives in claim_daemon.main and is not imported here, so
the helper modules can be used without configuring logging.
"""

from ._version import VERSION
from .config import configure_logger, get_canbus_config, get_claim_config

__all__ = [
    "VERSION",
    "configure_logger",
    "get_canbus_config",
    "get_claim_config",
]
