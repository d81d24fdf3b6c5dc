"""
rvc_claim.service

ArbitrationService: the single owner of the address claim state machine.

It wires the identity manager, address selector, broadcaster, conflict monitor and
commit handler around one ClaimProgress record, and feeds them from one asyncio
queue of events. Events are handled one at a time, so the read-then-write
sequences in the monitor and commit handler need no locking.

State machine:
    IDLE --ClaimStarted--> CLAIMING --TimerFired (no lost conflict)--> CLAIMED
    CLAIMING --CompetitorSeen (lost)--> CLAIMING (next candidate)
    CLAIMING --pool exhausted--> FAILED
    any --ResetRequested--> IDLE (fresh NAME) --> CLAIMING
"""

import asyncio
import logging
import random
from typing import AbstractSet, Callable, Optional, Union

from common.models import ClaimStatus
from rvc_claim.broadcaster import CLAIM_WINDOW_SECONDS, ClaimBroadcaster, TimerToken, Transport
from rvc_claim.commit import CommitHandler
from rvc_claim.events import ClaimStarted, CompetitorSeen, ResetRequested, TimerFired
from rvc_claim.exceptions import PoolExhausted
from rvc_claim.frames import outgoing_source_address
from rvc_claim.identity import IdentityManager
from rvc_claim.monitor import ConflictMonitor
from rvc_claim.selector import MIN_ADDRESS, STARTING_ADDRESS, AddressSelector
from rvc_claim.state import ClaimOutcome, ClaimPhase, ClaimProgress
from rvc_claim.store import KeyValueStore, MemoryStore
from rvc_claim.timers import TimerService

logger = logging.getLogger(__name__)

ClaimEvent = Union[ClaimStarted, CompetitorSeen, TimerFired, ResetRequested]


class ArbitrationService:
    """
    Runs RV-C source address claiming for one node on one bus.

    Args:
        transport: Object with `send(identifier, payload)` for outgoing frames.
        timers: Timer service for the quiet window.
        durable_store: Store that survives restarts (NAME, committed address).
        transient_store: Store for the attempt counter. Defaults to a new MemoryStore.
        used_addresses: Callable returning the set of addresses known to be occupied.
        starting_address: Top of the claim range.
        min_address: Bottom of the claim range.
        window: Quiet window in seconds.
        on_outcome: Optional callback receiving every ClaimOutcome (used for metrics).
        rng: Random source for NAME generation.
    """

    def __init__(
        self,
        transport: Transport,
        timers: TimerService,
        durable_store: KeyValueStore,
        transient_store: Optional[KeyValueStore] = None,
        used_addresses: Optional[Callable[[], AbstractSet[int]]] = None,
        starting_address: int = STARTING_ADDRESS,
        min_address: int = MIN_ADDRESS,
        window: float = CLAIM_WINDOW_SECONDS,
        on_outcome: Optional[Callable[[ClaimOutcome], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.durable_store = durable_store
        self.transient_store = transient_store if transient_store is not None else MemoryStore()
        self._used_addresses = used_addresses or (lambda: frozenset())
        self._on_outcome = on_outcome

        self.progress = ClaimProgress()
        self.identity = IdentityManager(durable_store, self.transient_store, rng=rng)
        self.selector = AddressSelector(
            self.transient_store, starting_address=starting_address, min_address=min_address
        )
        self.broadcaster = ClaimBroadcaster(
            self.progress, transport, timers, on_timer=self._on_timer, window=window
        )
        self.monitor = ConflictMonitor(self.progress, retry=self._retry_after_loss)
        self.commit = CommitHandler(self.progress, durable_store)

        self._queue: asyncio.Queue = asyncio.Queue()

    # ── Event intake ─────────────────────────────────────────────────────────
    def post(self, event: Optional[ClaimEvent]) -> None:
        """Queue an event. Must be called from the event loop thread."""
        self._queue.put_nowait(event)

    def post_threadsafe(self, loop: asyncio.AbstractEventLoop, event: ClaimEvent) -> None:
        """Queue an event from another thread (e.g. a CAN reader thread)."""
        loop.call_soon_threadsafe(self.post, event)

    def start_claim(self) -> None:
        self.post(ClaimStarted())

    def request_reset(self) -> None:
        self.post(ResetRequested())

    def competitor_seen(self, source_address: int, name: bytes) -> None:
        self.post(CompetitorSeen(source_address=source_address, name=name))

    def _on_timer(self, token: TimerToken) -> None:
        self.post(TimerFired(address=token.address, cycle=token.cycle))

    @property
    def pending_events(self) -> int:
        return self._queue.qsize()

    # ── Dispatch ─────────────────────────────────────────────────────────────
    def handle(self, event: ClaimEvent) -> ClaimOutcome:
        """Apply one event to the state machine and return what happened."""
        if isinstance(event, CompetitorSeen):
            outcome = self.monitor.on_address_claimed_received(event.source_address, event.name)
            self._emit(outcome)
        elif isinstance(event, TimerFired):
            outcome = self.commit.on_claim_timer_fired(event.address, event.cycle)
            self._emit(outcome)
        elif isinstance(event, ClaimStarted):
            outcome = self._claim_next(after_loss=False)
        elif isinstance(event, ResetRequested):
            self._reset()
            outcome = self._claim_next(after_loss=False)
        else:
            raise TypeError(f"Unsupported claim event: {event!r}")
        return outcome

    def process_pending(self) -> int:
        """Handle every queued event without waiting. Returns the number handled."""
        handled = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return handled
            try:
                if event is not None:
                    self.handle(event)
                    handled += 1
            finally:
                self._queue.task_done()

    async def run(self) -> None:
        """
        Consume events until a None sentinel is posted (see stop()).

        Handler failures are logged and do not stop the loop.
        """
        logger.info("Address claim dispatcher started.")
        while True:
            event = await self._queue.get()
            try:
                if event is None:
                    break
                self.handle(event)
            except Exception as e:
                logger.error(f"Address claim dispatcher failed on {event!r}: {e}", exc_info=True)
            finally:
                self._queue.task_done()
        self.broadcaster.cancel_timer()
        logger.info("Address claim dispatcher stopped.")

    def stop(self) -> None:
        self.post(None)

    # ── Internals ────────────────────────────────────────────────────────────
    def _emit(self, outcome: ClaimOutcome) -> None:
        if self._on_outcome is not None:
            self._on_outcome(outcome)

    def _claim_next(self, after_loss: bool) -> ClaimOutcome:
        name = self.identity.get_or_create_identity()
        try:
            address = self.selector.next_candidate(self._used_addresses(), after_loss=after_loss)
        except PoolExhausted as e:
            self.broadcaster.cancel_timer()
            self.progress.clear()
            self.progress.phase = ClaimPhase.FAILED
            self.progress.last_error = str(e)
            logger.error(str(e))
            self._emit(ClaimOutcome.POOL_EXHAUSTED)
            return ClaimOutcome.POOL_EXHAUSTED

        self.broadcaster.broadcast_claim(name, address)
        self._emit(ClaimOutcome.BROADCAST)
        return ClaimOutcome.BROADCAST

    def _retry_after_loss(self) -> None:
        self._claim_next(after_loss=True)

    def _reset(self) -> None:
        self.broadcaster.cancel_timer()
        self.progress.clear()
        self.progress.phase = ClaimPhase.IDLE
        self.progress.last_error = None
        self.identity.reset()

    # ── Read side ────────────────────────────────────────────────────────────
    @property
    def committed_address(self) -> Optional[int]:
        return self.commit.committed_address

    @property
    def source_address(self) -> int:
        return outgoing_source_address(self.committed_address)

    @property
    def our_name(self) -> Optional[bytes]:
        return self.progress.our_name

    def status(self) -> ClaimStatus:
        return ClaimStatus(
            phase=self.progress.phase.value,
            claiming=self.progress.claiming,
            claiming_address=self.progress.claiming_address,
            committed_address=self.committed_address,
            source_address=self.source_address,
            device_name=self.identity.current_identity(),
            attempt=self.selector.attempt,
            starting_address=self.selector.starting_address,
            min_address=self.selector.min_address,
            last_error=self.progress.last_error,
        )
