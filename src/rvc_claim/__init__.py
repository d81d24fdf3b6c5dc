"""
rvc_claim
=========

Library implementing RV-C source address claiming (DGN EE00 ADDRESS_CLAIMED).

A node picks a candidate address, announces it together with its 64-bit NAME,
watches for competing announcements for the same address and commits the address
once a 250 ms quiet window passes without losing arbitration. The lower NAME wins
a conflict; the loser retries one address lower until the pool runs out.

Modules:
    - frames: Identifier and frame helpers
    - store: Durable and transient key/value stores
    - state: Claim progress record, phases and outcomes
    - identity: Device NAME management
    - selector: Candidate address selection
    - broadcaster: Claim announcement and timer arming
    - monitor: Conflict evaluation and tie-break
    - commit: Commit on quiet window expiry
    - events: Event types for the dispatch loop
    - service: ArbitrationService wiring everything together

Library API for code that shares the bus with a claimed node: the frames module
also provides build_identifier and outgoing_source_address for outgoing traffic
(committed address, or 0xFE before a claim), and format_frame / parse_frame_text
for candump-style ``ID#DATA`` text.
"""

from .events import ClaimStarted, CompetitorSeen, ResetRequested, TimerFired
from .exceptions import AddressClaimError, MalformedCompetitorFrame, PoolExhausted
from .frames import (
    DGN_ADDRESS_CLAIMED,
    NULL_ADDRESS,
    build_claim_identifier,
    build_identifier,
    format_frame,
    parse_address_claim,
    parse_frame_text,
)
from .service import ArbitrationService
from .state import ClaimOutcome, ClaimPhase, ClaimProgress
from .store import JsonFileStore, KeyValueStore, MemoryStore
from .timers import AsyncioTimerService, TimerService

__all__ = [
    "AddressClaimError",
    "ArbitrationService",
    "AsyncioTimerService",
    "ClaimOutcome",
    "ClaimPhase",
    "ClaimProgress",
    "ClaimStarted",
    "CompetitorSeen",
    "DGN_ADDRESS_CLAIMED",
    "JsonFileStore",
    "KeyValueStore",
    "MalformedCompetitorFrame",
    "MemoryStore",
    "NULL_ADDRESS",
    "PoolExhausted",
    "ResetRequested",
    "TimerFired",
    "TimerService",
    "build_claim_identifier",
    "build_identifier",
    "format_frame",
    "parse_address_claim",
    "parse_frame_text",
]
