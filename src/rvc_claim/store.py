"""
rvc_claim.store

Key/value stores backing the claim state.

The durable store keeps the device NAME and the committed source address across
restarts. The transient store keeps the in-cycle address attempt counter, which
must start empty on every boot.

Classes:
    - KeyValueStore: Minimal get/set/delete contract
    - MemoryStore: Process-local dictionary store (transient scope)
    - JsonFileStore: JSON file on disk, rewritten atomically on every change (durable scope)
"""

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Durable keys
DEVICE_NAME_KEY = "device_name"
SOURCE_ADDRESS_KEY = "source_address"

# Transient keys
ADDRESS_ATTEMPT_KEY = "address_attempt"


class KeyValueStore:
    """
    Base class for claim state stores.
    Subclasses must implement get, set and delete.
    """

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryStore(KeyValueStore):
    """Dictionary-backed store. Contents are lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class JsonFileStore(KeyValueStore):
    """
    Durable store persisted as a single JSON object.

    The file is read once on construction. Every set/delete rewrites it through a
    temporary file and os.replace so a crash never leaves a half-written file.
    A failed write raises OSError and leaves the in-memory state unchanged.
    An unreadable or corrupt file is logged and treated as empty.

    Args:
        path: Location of the JSON file. Parent directories are created on first write.
    """

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            logger.info(f"Claim state file '{self.path}' not found; starting with empty state.")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read claim state file '{self.path}': {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(
                f"Claim state file '{self.path}' does not contain a JSON object; ignoring it."
            )
            return {}
        logger.debug(f"Loaded claim state from '{self.path}': {sorted(data)}")
        return data

    def _flush(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = dict(self._data)
        data[key] = value
        self._flush(data)
        self._data = data

    def delete(self, key: str) -> None:
        if key not in self._data:
            return
        data = dict(self._data)
        del data[key]
        self._flush(data)
        self._data = data
