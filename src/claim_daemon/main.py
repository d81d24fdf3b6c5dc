#!/usr/bin/env python3
"""
Main entry point and central orchestrator for the rvc-claim daemon.

This script initializes and runs the FastAPI application that acquires an RV-C
source address for this node and exposes the claim state over HTTP.

Key responsibilities include:
- Configuring application-wide logging.
- Building the ArbitrationService with its durable JSON state file, the CAN
  transport and the asyncio timer service (see rvc_claim).
- Starting the CAN writer task, the claim dispatcher task and the CAN listeners
  (see can_manager.py and can_processing.py).
- Queuing the initial address claim at startup.
- Initializing the FastAPI application, including:
    - Setting up Prometheus metrics middleware.
    - Registering API routers (claim control, health and metrics).
    - Defining the startup and shutdown lifespan.
- Providing a command-line interface to start the Uvicorn server.
"""
import asyncio
import functools
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import ResponseValidationError
from fastapi.responses import PlainTextResponse

from claim_daemon import app_state
from claim_daemon.can_manager import (
    CanTransport,
    initialize_can_listeners,
    initialize_can_writer_task,
    shutdown_can_buses,
    stop_can_writer,
)
from claim_daemon.can_processing import process_can_message
from claim_daemon.config import (
    configure_logger,
    get_canbus_config,
    get_claim_config,
    get_fastapi_config,
    get_server_config,
    load_reserved_addresses,
)
from claim_daemon.metrics import CLAIMED_ADDRESS
from claim_daemon.middleware import prometheus_http_middleware
from rvc_claim import ArbitrationService, AsyncioTimerService, JsonFileStore, MemoryStore

from .api_routers.claim import api_router_claim
from .api_routers.status import api_router_status

# ── Logging ──────────────────────────────────────────────────────────────────
logger = configure_logger()

SHUTDOWN_TIMEOUT = 5.0


def build_claim_service(claim_config: dict) -> ArbitrationService:
    """
    Creates the ArbitrationService described by `claim_config` (see get_claim_config).
    """
    return ArbitrationService(
        transport=CanTransport(claim_config["interface"]),
        timers=AsyncioTimerService(),
        durable_store=JsonFileStore(claim_config["state_path"]),
        transient_store=MemoryStore(),
        used_addresses=app_state.get_used_addresses,
        starting_address=claim_config["starting_address"],
        min_address=claim_config["min_address"],
        window=claim_config["window"],
        on_outcome=app_state.record_claim_outcome,
    )


def create_app():
    # ── FastAPI setup ──────────────────────────────────────────────────────────
    fastapi_config = get_fastapi_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- Startup ---
        logger.info("rvc-claim starting up...")
        claim_config = get_claim_config()
        app_state.set_reserved_addresses(load_reserved_addresses(claim_config["reserved_path"]))

        service = build_claim_service(claim_config)
        app_state.set_claim_service(service)
        committed = service.committed_address
        CLAIMED_ADDRESS.set(committed if committed is not None else -1)
        if committed is not None:
            logger.info(f"Previously claimed source address: {committed} (0x{committed:02X})")

        writer_task = initialize_can_writer_task()
        dispatcher_task = asyncio.create_task(service.run())

        loop = asyncio.get_running_loop()
        canbus_config = get_canbus_config()
        message_handler_with_args = functools.partial(
            process_can_message,
            loop=loop,
            service=service,
            claim_interface=claim_config["interface"],
        )
        initialize_can_listeners(
            interfaces=canbus_config["channels"],
            bustype=canbus_config["bustype"],
            bitrate=canbus_config["bitrate"],
            message_handler_callback=message_handler_with_args,
            logger_instance=logger,
        )

        if claim_config["claim_on_startup"]:
            service.start_claim()
        else:
            logger.info("RVC_CLAIM_ON_STARTUP disabled; waiting for POST /api/claim/start.")

        yield

        # --- Shutdown ---
        logger.info("rvc-claim shutting down...")
        service.stop()
        await stop_can_writer()
        for task in (dispatcher_task, writer_task):
            try:
                await asyncio.wait_for(task, timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"Task {task.get_name()} did not stop in time; cancelling.")
                task.cancel()
        shutdown_can_buses()
        app_state.set_claim_service(None)

    app = FastAPI(
        title=fastapi_config["title"],
        servers=[{"url": "/", "description": fastapi_config["server_description"]}],
        root_path=fastapi_config["root_path"],
        lifespan=lifespan,
    )

    # ── Middleware ─────────────────────────────────────────────────────────────
    @app.middleware("http")
    async def prometheus_middleware_handler(request, call_next):
        """Prometheus metrics middleware for HTTP requests."""
        return await prometheus_http_middleware(request, call_next)

    # ── Exception Handlers ─────────────────────────────────────────────────────
    @app.exception_handler(ResponseValidationError)
    async def validation_exception_handler(request, exc):
        """Handles response validation errors with a plain text message."""
        return PlainTextResponse(f"Validation error: {exc}", status_code=500)

    # ── API Routers ────────────────────────────────────────────────────────────
    app.include_router(api_router_claim, prefix="/api")
    app.include_router(api_router_status, prefix="/api")

    return app


app = create_app()


# ── Entrypoint ─────────────────────────────────────────────────────────────
def main():
    """
    Runs the Uvicorn server for the rvc-claim daemon.

    Host, port, and log level come from RVC_CLAIM_HOST, RVC_CLAIM_PORT and
    RVC_CLAIM_LOG_LEVEL.
    """
    server_config = get_server_config()
    logger.info(
        f"Starting Uvicorn server on {server_config['host']}:{server_config['port']} "
        f"with log level '{server_config['log_level']}'"
    )
    uvicorn.run(
        app,
        host=server_config["host"],
        port=server_config["port"],
        log_level=server_config["log_level"],
    )


if __name__ == "__main__":
    main()
