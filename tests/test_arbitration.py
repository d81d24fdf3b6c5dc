"""
Behavioral tests for the address claim state machine.

These tests drive ArbitrationService synchronously (process_pending) with fake
timers, covering:
- Unchallenged claim and silent commit.
- Losing and winning a conflict, including the NAME tie-break.
- Pool exhaustion at the bottom of the range.
- Self-echo immunity and stale timer handling.
- Skipping of addresses known to be in use.
- Two nodes arbitrating the same address over a simulated bus.
- NAME persistence across restarts and operator reset.
"""

import random

import pytest

from rvc_claim import ArbitrationService, ClaimOutcome, ClaimPhase, JsonFileStore, MemoryStore
from rvc_claim.broadcaster import TimerToken, Transport
from rvc_claim.events import ClaimStarted, CompetitorSeen, TimerFired
from rvc_claim.frames import parse_address_claim
from rvc_claim.store import ADDRESS_ATTEMPT_KEY, DEVICE_NAME_KEY, SOURCE_ADDRESS_KEY

from .conftest import OUR_NAME_HEX, FakeTimerService

OUR_NAME = bytes.fromhex(OUR_NAME_HEX)
SMALLER_NAME = bytes.fromhex("7000000000112233")
LARGER_NAME = bytes.fromhex("9000000000000001")


def start(service):
    service.start_claim()
    service.process_pending()


def fire(service, handle):
    handle.fire()
    service.process_pending()


# --- Scenario: unchallenged claim ---


def test_unchallenged_claim_commits_top_address(
    service, transport, timers, durable_store, outcomes
):
    """Scenario A: NAME 8000000000ABCDEF claims 223 and nothing competes."""
    start(service)

    assert transport.frames == ["18EE00DF#8000000000ABCDEF"]
    assert service.progress.claiming is True
    assert service.progress.claiming_address == 223
    assert service.progress.phase is ClaimPhase.CLAIMING
    assert timers.last.delay == 0.25
    assert timers.last.token == TimerToken(223, 1)

    fire(service, timers.last)

    assert service.committed_address == 223
    assert durable_store.get(SOURCE_ADDRESS_KEY) == 223
    assert service.progress.claiming is False
    assert service.progress.claiming_address is None
    assert service.progress.our_name is None
    assert service.progress.phase is ClaimPhase.CLAIMED
    # The commit is silent
    assert transport.frames == ["18EE00DF#8000000000ABCDEF"]
    assert outcomes == [ClaimOutcome.BROADCAST, ClaimOutcome.COMMITTED]


def test_source_address_is_null_until_committed(service, timers):
    assert service.source_address == 254
    start(service)
    assert service.source_address == 254
    fire(service, timers.last)
    assert service.source_address == 223


# --- Scenario: conflicts ---


def test_lost_conflict_retries_one_address_lower(service, transport, timers, outcomes):
    """Scenario B: a smaller NAME claims 0xDF while we are claiming it."""
    start(service)
    first_timer = timers.last

    service.competitor_seen(0xDF, SMALLER_NAME)
    service.process_pending()

    assert transport.frames[-1] == "18EE00DE#8000000000ABCDEF"
    assert service.progress.claiming is True
    assert service.progress.claiming_address == 222
    assert service.selector.attempt == 222
    assert first_timer.cancelled
    assert ClaimOutcome.LOST in outcomes

    # The superseded timer still firing is harmless
    fire(service, first_timer)
    assert service.committed_address is None
    assert outcomes[-1] is ClaimOutcome.STALE

    fire(service, timers.last)
    assert service.committed_address == 222


def test_won_conflict_keeps_claiming_without_sending(service, transport, timers, outcomes):
    start(service)

    outcome = service.handle(CompetitorSeen(source_address=0xDF, name=LARGER_NAME))

    assert outcome is ClaimOutcome.WON
    assert transport.frames == ["18EE00DF#8000000000ABCDEF"]
    assert service.progress.claiming is True
    assert not timers.last.cancelled

    fire(service, timers.last)
    assert service.committed_address == 223


def test_claim_for_another_address_is_unrelated(service, transport):
    start(service)

    assert service.handle(CompetitorSeen(source_address=0xDE, name=SMALLER_NAME)) is (
        ClaimOutcome.UNRELATED
    )
    assert service.progress.claiming_address == 223
    assert len(transport.frames) == 1


def test_claim_frames_ignored_when_not_claiming(service, transport):
    assert service.handle(CompetitorSeen(source_address=0xDF, name=SMALLER_NAME)) is (
        ClaimOutcome.NOT_CLAIMING
    )
    assert transport.frames == []


def test_self_echo_never_cancels_claim(service, timers):
    start(service)

    for _ in range(3):
        assert service.handle(CompetitorSeen(source_address=0xDF, name=OUR_NAME)) is (
            ClaimOutcome.SELF_ECHO
        )

    assert service.progress.claiming is True
    fire(service, timers.last)
    assert service.committed_address == 223


def test_consecutive_losses_walk_down_the_range(service, transport):
    start(service)
    for address in range(223, 218, -1):
        service.competitor_seen(address, SMALLER_NAME)
        service.process_pending()
    assert service.progress.claiming_address == 218
    assert [f.split("#")[0] for f in transport.frames] == [
        "18EE00DF",
        "18EE00DE",
        "18EE00DD",
        "18EE00DC",
        "18EE00DB",
        "18EE00DA",
    ]


# --- Scenario: exhaustion ---


def test_pool_exhaustion_after_losing_lowest_address(
    service, transport, timers, transient_store, outcomes
):
    """Scenario C: losing at 208 ends the cycle with no further frame."""
    transient_store.set(ADDRESS_ATTEMPT_KEY, 208)
    start(service)
    assert transport.frames == ["18EE00D0#8000000000ABCDEF"]

    service.competitor_seen(0xD0, SMALLER_NAME)
    service.process_pending()

    assert len(transport.frames) == 1
    assert service.progress.claiming is False
    assert service.progress.phase is ClaimPhase.FAILED
    assert service.progress.last_error == (
        "Exhausted all addresses in the valid range (223-208). Address claiming failed."
    )
    assert timers.last.cancelled
    assert ClaimOutcome.POOL_EXHAUSTED in outcomes
    assert transient_store.get(ADDRESS_ATTEMPT_KEY) == 208

    fire(service, timers.last)
    assert service.committed_address is None
    assert service.status().phase == "failed"


def test_pool_exhaustion_when_every_address_is_used(service, transport, used_addresses):
    used_addresses.update(range(208, 224))

    assert service.handle(ClaimStarted()) is ClaimOutcome.POOL_EXHAUSTED
    assert transport.frames == []
    assert service.progress.phase is ClaimPhase.FAILED


# --- Stale timers ---


class ReadOnlyStore(MemoryStore):
    def set(self, key, value):
        if key == SOURCE_ADDRESS_KEY:
            raise OSError(30, "Read-only file system")
        super().set(key, value)


def test_commit_write_failure_marks_claim_failed(transport, timers, transient_store, outcomes):
    durable_store = ReadOnlyStore({DEVICE_NAME_KEY: OUR_NAME_HEX})
    service = ArbitrationService(
        transport=transport,
        timers=timers,
        durable_store=durable_store,
        transient_store=transient_store,
        on_outcome=outcomes.append,
    )
    start(service)

    fire(service, timers.last)

    assert outcomes[-1] is ClaimOutcome.COMMIT_FAILED
    assert service.progress.claiming is False
    assert service.progress.claiming_address is None
    assert service.progress.phase is ClaimPhase.FAILED
    assert "223" in service.progress.last_error
    assert service.committed_address is None
    assert service.status().phase == "failed"


def test_timer_for_cancelled_claim_is_noop(service, timers, durable_store):
    start(service)
    service.progress.claiming = False

    assert service.handle(TimerFired(address=223, cycle=1)) is ClaimOutcome.STALE
    assert SOURCE_ADDRESS_KEY not in durable_store


def test_timer_with_mismatched_address_is_noop(service, durable_store):
    start(service)

    assert service.handle(TimerFired(address=222)) is ClaimOutcome.STALE
    assert SOURCE_ADDRESS_KEY not in durable_store
    assert service.progress.claiming is True


def test_timer_from_superseded_cycle_for_same_address_is_noop(service, timers, durable_store):
    start(service)
    old_timer = timers.last

    service.request_reset()
    service.process_pending()
    assert service.progress.claiming_address == 223
    assert service.progress.cycle == 2
    assert old_timer.cancelled

    fire(service, old_timer)
    assert SOURCE_ADDRESS_KEY not in durable_store

    fire(service, timers.last)
    assert durable_store.get(SOURCE_ADDRESS_KEY) == 223


def test_timer_without_cycle_commits_matching_address(service, durable_store):
    start(service)
    assert service.handle(TimerFired(address=223)) is ClaimOutcome.COMMITTED
    assert durable_store.get(SOURCE_ADDRESS_KEY) == 223


# --- Used addresses ---


def test_used_addresses_are_skipped_on_start(service, transport, used_addresses):
    used_addresses.update({223, 222})
    start(service)
    assert transport.frames == ["18EE00DD#8000000000ABCDEF"]


def test_used_addresses_are_skipped_after_loss(service, transport, used_addresses):
    start(service)
    used_addresses.update({222, 221})
    service.competitor_seen(0xDF, SMALLER_NAME)
    service.process_pending()
    assert service.progress.claiming_address == 220


# --- Restart and reset ---


def test_name_persists_across_restart(tmp_path):

    path = str(tmp_path / "state.json")

    first = ArbitrationService(
        transport=Transport(), timers=FakeTimerService(), durable_store=JsonFileStore(path)
    )
    name = first.identity.get_or_create_identity()

    second = ArbitrationService(
        transport=Transport(), timers=FakeTimerService(), durable_store=JsonFileStore(path)
    )
    assert second.identity.get_or_create_identity() == name
    # The attempt counter does not survive a restart
    assert second.selector.attempt is None


def test_reset_generates_new_name_and_restarts_from_top(service, transport, durable_store):
    start(service)
    service.competitor_seen(0xDF, SMALLER_NAME)
    service.process_pending()
    assert service.progress.claiming_address == 222

    service.request_reset()
    service.process_pending()

    new_name = durable_store.get(DEVICE_NAME_KEY)
    assert new_name != OUR_NAME_HEX
    assert new_name.startswith("8000000000")
    assert transport.frames[-1] == f"18EE00DF#{new_name}"
    assert service.progress.claiming_address == 223


def test_reset_keeps_committed_address(service, timers):
    start(service)
    fire(service, timers.last)

    service.request_reset()
    service.process_pending()

    assert service.committed_address == 223
    assert service.progress.phase is ClaimPhase.CLAIMING


def test_status_snapshot(service):
    start(service)
    status = service.status()

    assert status.phase == "claiming"
    assert status.claiming is True
    assert status.claiming_address == 223
    assert status.committed_address is None
    assert status.source_address == 254
    assert status.device_name == OUR_NAME_HEX
    assert status.attempt == 223
    assert (status.starting_address, status.min_address) == (223, 208)


def test_unknown_event_type_is_rejected(service):
    with pytest.raises(TypeError):
        service.handle(object())


# --- Two nodes on one bus ---


class SimulatedBus:
    """Buffers frames until deliver() hands each one to every node, sender included."""

    def __init__(self):
        self.nodes = []
        self.pending = []

    def attach(self, node):
        self.nodes.append(node)

    def deliver(self, reverse=False):
        frames, self.pending = self.pending, []
        if reverse:
            frames.reverse()
        for identifier, payload in frames:
            source_address, name = parse_address_claim(identifier, payload)
            for node in self.nodes:
                node.competitor_seen(source_address, name)
        for node in self.nodes:
            node.process_pending()
        return len(frames)


class BusTransport(Transport):
    def __init__(self, bus):
        self.bus = bus

    def send(self, identifier, payload):
        self.bus.pending.append((identifier, bytes(payload)))


def make_node(bus, name_hex):
    timers = FakeTimerService()
    node = ArbitrationService(
        transport=BusTransport(bus),
        timers=timers,
        durable_store=MemoryStore({DEVICE_NAME_KEY: name_hex}),
        rng=random.Random(0),
    )
    bus.attach(node)
    return node, timers


@pytest.mark.parametrize("reverse", [False, True])
@pytest.mark.parametrize(
    "name_a,name_b",
    [("8000000000000010", "8000000000000020"), ("8000000000000020", "8000000000000010")],
)
def test_smaller_name_wins_concurrent_claim(name_a, name_b, reverse):
    bus = SimulatedBus()
    node_a, timers_a = make_node(bus, name_a)
    node_b, timers_b = make_node(bus, name_b)

    node_a.start_claim()
    node_b.start_claim()
    node_a.process_pending()
    node_b.process_pending()

    while bus.deliver(reverse=reverse):
        pass

    for node, timers in ((node_a, timers_a), (node_b, timers_b)):
        for handle in timers.handles:
            fire(node, handle)

    winner, loser = (node_a, node_b) if name_a < name_b else (node_b, node_a)
    assert winner.committed_address == 223
    assert loser.committed_address == 222
    assert winner.status().phase == loser.status().phase == "claimed"
