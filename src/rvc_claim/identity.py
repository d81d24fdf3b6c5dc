"""
rvc_claim.identity

Owns the durable 64-bit device NAME used to arbitrate address conflicts.

The NAME is a fixed five-byte prefix (80 00 00 00 00) followed by a random 21-bit
serial rendered as three bytes. It is generated once, stored as a 16-character
upper-case hex string and reused on every start until an operator reset.
"""

import logging
import random
from typing import Optional

from rvc_claim.frames import name_from_hex, name_to_hex
from rvc_claim.store import ADDRESS_ATTEMPT_KEY, DEVICE_NAME_KEY, KeyValueStore

logger = logging.getLogger(__name__)

NAME_PREFIX = "8000000000"
SERIAL_LIMIT = 0x1FFFFF


class IdentityManager:
    """
    Reads, generates and resets the device NAME.

    Args:
        durable_store: Store that survives restarts; holds the NAME.
        transient_store: Store holding the address attempt counter, cleared on reset.
        rng: Random source for the serial number. Defaults to the module-level generator.
    """

    def __init__(
        self,
        durable_store: KeyValueStore,
        transient_store: KeyValueStore,
        rng: Optional[random.Random] = None,
    ):
        self.durable_store = durable_store
        self.transient_store = transient_store
        self._rng = rng or random.Random()

    def generate_identity(self) -> str:
        serial = self._rng.randrange(SERIAL_LIMIT)
        return NAME_PREFIX + f"{serial:06X}"

    def get_or_create_identity(self) -> bytes:
        """
        Return the persisted 8-byte NAME, generating and persisting one if needed.

        A stored value that is not 16 hex characters is replaced.
        """
        stored = self.durable_store.get(DEVICE_NAME_KEY)
        if stored:
            try:
                return name_from_hex(stored)
            except (TypeError, ValueError):
                logger.warning(f"Stored DEVICE_NAME {stored!r} is invalid; generating a new one.")

        unique_id = self.generate_identity()
        self.durable_store.set(DEVICE_NAME_KEY, unique_id)
        logger.info(f"Generated and saved a new persistent DEVICE_NAME: {unique_id}")
        return name_from_hex(unique_id)

    def current_identity(self) -> Optional[str]:
        """Hex NAME currently persisted, without generating one."""
        stored = self.durable_store.get(DEVICE_NAME_KEY)
        if not stored:
            return None
        try:
            return name_to_hex(name_from_hex(stored))
        except (TypeError, ValueError):
            return None

    def reset(self) -> None:
        """Forget the NAME and the address attempt counter."""
        self.durable_store.delete(DEVICE_NAME_KEY)
        self.transient_store.delete(ADDRESS_ATTEMPT_KEY)
        logger.warning("Persistent DEVICE_NAME cleared. A new one will be generated on next claim.")
