"""
Manages API routes for health, readiness, metrics and server status.

This module provides FastAPI endpoints for:
- Liveness and readiness probes driven by the address claim state.
- Prometheus metrics exposition.
- Basic server status (version, uptime).
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from claim_daemon import app_state
from claim_daemon._version import VERSION

logger = logging.getLogger(__name__)

api_router_status = APIRouter()  # Router for health, metrics and status endpoints

SERVER_START_TIME = time.time()


@api_router_status.get("/healthz")
async def healthz():
    """
    Liveness probe.

    Degraded (503) when the claim service is missing or the last claim cycle ran
    out of addresses or could not store its address; otherwise ok.
    """
    service = app_state.get_claim_service()
    if service is None:
        return JSONResponse(
            status_code=503, content={"status": "degraded", "reason": "claim service not running"}
        )
    status = service.status()
    if status.phase == "failed":
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "phase": status.phase, "reason": status.last_error},
        )
    return JSONResponse(status_code=200, content={"status": "ok", "phase": status.phase})


@api_router_status.get("/readyz")
async def readyz():
    """
    Readiness probe: 200 once a source address is committed, else 503.
    """
    service = app_state.get_claim_service()
    committed = service.committed_address if service is not None else None
    ready = committed is not None
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "pending", "source_address": committed},
    )


@api_router_status.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@api_router_status.get("/status/server")
async def get_server_status():
    """Returns basic server status information."""
    uptime_seconds = time.time() - SERVER_START_TIME
    return {
        "status": "ok",
        "version": VERSION,
        "server_start_time_unix": SERVER_START_TIME,
        "uptime_seconds": uptime_seconds,
        "message": "rvc-claim server is running.",
    }
