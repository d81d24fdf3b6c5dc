"""
Handles application configuration for the rvc-claim daemon.

This module is responsible for:
- Configuring logging for the application.
- Providing CAN bus configuration (channels, bustype, bitrate) from environment variables.
- Providing address claim settings (claim range, quiet window, state file, reserved
  addresses) from environment variables and an optional YAML file.
- Providing FastAPI and Uvicorn settings (title, root_path, host, port).
"""

import logging
import os
from typing import Any, Dict, Set

import coloredlogs
import yaml

# ── Logging Configuration ──────────────────────────────────────────────────
# This logger is for messages originating from the config.py module itself.
module_logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = "~/.local/state/rvc-claim/state.json"
LOG_FORMAT = "%(asctime)s %(name)s[%(process)d] %(levelname)s %(message)s"


def configure_logger():
    """
    Installs coloredlogs on the root logger and returns it.

    LOG_LEVEL selects the handler level (default INFO). The python-can logger is
    held at WARNING unless LOG_LEVEL is DEBUG.
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        module_logger.warning(f"Invalid LOG_LEVEL '{level_name}'. Defaulting to INFO.")
        level = logging.INFO

    root_logger = logging.getLogger()
    # Root passes everything through; the coloredlogs handler does the filtering.
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    coloredlogs.install(
        level=level,
        fmt=LOG_FORMAT,
        logger=root_logger,
        reconfigure=True,
    )
    logging.getLogger("can").setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    return root_logger


# ── CAN Bus Configuration ─────────────────────────────────────────────────
def get_canbus_config():
    """
    Retrieves CAN bus configuration settings from environment variables.

    Returns:
        dict: A dictionary containing:
              - 'channels': A list of CAN interface names (e.g., ['can0']).
              - 'bustype': The CAN bus type (e.g., 'socketcan').
              - 'bitrate': The CAN bus bitrate as an integer (RV-C runs at 250 kbit/s).
    """
    channels = [c.strip() for c in os.getenv("CAN_CHANNELS", "can0").split(",") if c.strip()]
    return {
        "channels": channels,
        "bustype": os.getenv("CAN_BUSTYPE", "socketcan"),
        "bitrate": int(os.getenv("CAN_BITRATE", "250000")),
    }


# ── Address Claim Configuration ───────────────────────────────────────────
def _validate_address_range(starting_address: int, min_address: int) -> None:
    for label, value in (("starting", starting_address), ("minimum", min_address)):
        if not 0 <= value <= 253:
            raise ValueError(f"Claim {label} address {value} must be within 0-253")
    if min_address > starting_address:
        raise ValueError(
            f"RVC_CLAIM_MIN_ADDRESS ({min_address}) must not exceed "
            f"RVC_CLAIM_STARTING_ADDRESS ({starting_address})"
        )


def get_claim_config() -> Dict[str, Any]:
    """
    Retrieves address claim settings from environment variables.

    Returns:
        dict: A dictionary containing:
              - 'starting_address': First candidate address (default 223).
              - 'min_address': Lowest candidate address (default 208).
              - 'window': Quiet window in seconds (from RVC_CLAIM_WINDOW_MS, default 250).
              - 'state_path': JSON file holding the NAME and committed address.
              - 'reserved_path': Optional YAML file listing reserved addresses.
              - 'claim_on_startup': Whether to start claiming when the daemon starts.
              - 'interface': CAN interface taking part in arbitration
                (RVC_CLAIM_INTERFACE, default the first CAN channel).

    Raises:
        ValueError: If the claim range or window is invalid.
    """
    starting_address = int(os.getenv("RVC_CLAIM_STARTING_ADDRESS", "223"))
    min_address = int(os.getenv("RVC_CLAIM_MIN_ADDRESS", "208"))
    _validate_address_range(starting_address, min_address)

    window_ms = int(os.getenv("RVC_CLAIM_WINDOW_MS", "250"))
    if window_ms <= 0:
        raise ValueError(f"RVC_CLAIM_WINDOW_MS must be positive, got {window_ms}")

    channels = get_canbus_config()["channels"]
    return {
        "starting_address": starting_address,
        "min_address": min_address,
        "window": window_ms / 1000.0,
        "state_path": os.path.expanduser(os.getenv("RVC_CLAIM_STATE_PATH", DEFAULT_STATE_PATH)),
        "reserved_path": os.getenv("RVC_CLAIM_RESERVED_PATH") or None,
        "claim_on_startup": os.getenv("RVC_CLAIM_ON_STARTUP", "1") == "1",
        "interface": os.getenv("RVC_CLAIM_INTERFACE") or (channels[0] if channels else "can0"),
    }


def load_reserved_addresses(path: str | None) -> Set[int]:
    """
    Loads the set of addresses that must never be claimed.

    The YAML file is expected to contain a `reserved_addresses` list of integers
    (or hex strings such as "0xDF"). A missing path yields an empty set; an unreadable
    or malformed file is logged and also yields an empty set.

    Args:
        path: Path to the YAML file, or None.

    Returns:
        set[int]: Reserved source addresses.
    """
    if not path:
        return set()
    if not (os.path.exists(path) and os.access(path, os.R_OK)):
        module_logger.warning(f"Reserved address file '{path}' is missing or unreadable.")
        return set()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        module_logger.error(f"Failed to parse reserved address file '{path}': {e}")
        return set()

    entries = data.get("reserved_addresses", []) if isinstance(data, dict) else []
    reserved: Set[int] = set()
    for entry in entries or []:
        try:
            value = int(entry, 0) if isinstance(entry, str) else int(entry)
        except (TypeError, ValueError):
            module_logger.warning(f"Ignoring invalid reserved address {entry!r} in '{path}'")
            continue
        if 0 <= value <= 0xFF:
            reserved.add(value)
        else:
            module_logger.warning(f"Ignoring out-of-range reserved address {value} in '{path}'")

    module_logger.info(f"Loaded {len(reserved)} reserved address(es) from {path}")
    return reserved


# ── FastAPI Configuration ──────────────────────────────────────────────────
def get_fastapi_config():
    """
    Retrieves FastAPI application settings from environment variables.

    Returns:
        dict: A dictionary containing title, server_description, and root_path
              for the FastAPI application.
    """
    return {
        "title": os.getenv("RVC_CLAIM_TITLE", "rvc-claim"),
        "server_description": os.getenv(
            "RVC_CLAIM_SERVER_DESCRIPTION", "RV-C Source Address Claim Daemon"
        ),
        "root_path": os.getenv("RVC_CLAIM_ROOT_PATH", ""),
    }


def get_server_config():
    """
    Retrieves Uvicorn server settings from environment variables.

    Returns:
        dict: host, port and log_level.
    """
    return {
        "host": os.getenv("RVC_CLAIM_HOST", "0.0.0.0"),
        "port": int(os.getenv("RVC_CLAIM_PORT", "8000")),
        "log_level": os.getenv("RVC_CLAIM_LOG_LEVEL", "info").lower(),
    }
