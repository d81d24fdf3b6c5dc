"""
api_routers

This package contains FastAPI APIRouter modules that define the API endpoints
for the rvc-claim daemon.

Routers:
    - claim: Address claim status, start and reset; known addresses; TX queue
    - status: Health and readiness probes, Prometheus metrics, server status
"""

from .claim import api_router_claim
from .status import api_router_status

__all__ = ["api_router_claim", "api_router_status"]
