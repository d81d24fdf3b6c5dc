"""
Shared fixtures for the rvc-claim test suite.

Provides:
- FakeTimerService: records armed timers so tests can fire them explicitly.
- RecordingTransport: collects outgoing frames in candump text form.
- A seeded ArbitrationService whose persisted NAME is 8000000000ABCDEF.
- Autouse resets of the daemon's module-level state (app_state, can_manager).
"""

import asyncio
import random

import pytest

from rvc_claim import ArbitrationService, MemoryStore
from rvc_claim.broadcaster import Transport
from rvc_claim.frames import format_frame
from rvc_claim.store import DEVICE_NAME_KEY
from rvc_claim.timers import TimerService

OUR_NAME_HEX = "8000000000ABCDEF"


class FakeTimerHandle:
    def __init__(self, delay, token, callback):
        self.delay = delay
        self.token = token
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        """Invoke the callback, as the event loop would, even if cancelled."""
        self.callback(self.token)


class FakeTimerService(TimerService):
    """Timer service that never fires on its own."""

    def __init__(self):
        self.handles = []

    def after(self, delay, token, callback):
        handle = FakeTimerHandle(delay, token, callback)
        self.handles.append(handle)
        return handle

    @property
    def last(self):
        return self.handles[-1]

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled]


class RecordingTransport(Transport):
    def __init__(self):
        self.sent = []

    def send(self, identifier, payload):
        self.sent.append((identifier, bytes(payload)))

    @property
    def frames(self):
        return [format_frame(identifier, payload) for identifier, payload in self.sent]


@pytest.fixture
def timers():
    return FakeTimerService()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def durable_store():
    return MemoryStore({DEVICE_NAME_KEY: OUR_NAME_HEX})


@pytest.fixture
def transient_store():
    return MemoryStore()


@pytest.fixture
def used_addresses():
    """Mutable set handed to the service as its used-address source."""
    return set()


@pytest.fixture
def outcomes():
    return []


@pytest.fixture
def service(transport, timers, durable_store, transient_store, used_addresses, outcomes):
    """ArbitrationService with a preset NAME, fake timers and a recording transport."""
    return ArbitrationService(
        transport=transport,
        timers=timers,
        durable_store=durable_store,
        transient_store=transient_store,
        used_addresses=lambda: used_addresses,
        on_outcome=outcomes.append,
        rng=random.Random(1234),
    )


# --- Global state reset fixtures for test isolation ---


@pytest.fixture(autouse=True)
def reset_app_state_globals():
    """
    Automatically reset all global state variables in app_state before each test.
    """
    import claim_daemon.app_state as app_state

    app_state.claim_service = None
    app_state.observed_source_addresses = set()
    app_state.reserved_addresses = set()


@pytest.fixture(autouse=True)
def reset_can_manager_state():
    """
    Automatically reset global state in can_manager before each test.
    """
    import claim_daemon.can_manager as can_manager

    can_manager.can_tx_queue = asyncio.Queue()
    can_manager.buses = {}
