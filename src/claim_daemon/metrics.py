"""
Defines Prometheus metrics for monitoring the rvc-claim daemon.

This module centralizes the definition of all Counter, Gauge, and Histogram
metrics used to track the daemon's behavior, including CAN frame intake,
address claim arbitration, the CAN transmit queue and HTTP requests.
"""

from prometheus_client import Counter, Gauge, Histogram

# CAN intake
FRAME_COUNTER = Counter("rvc_claim_frames_total", "Total CAN frames received")
CLAIM_FRAMES_SEEN = Counter(
    "rvc_claim_address_claimed_frames_total", "Total ADDRESS_CLAIMED frames received"
)
MALFORMED_CLAIM_FRAMES = Counter(
    "rvc_claim_malformed_frames_total", "ADDRESS_CLAIMED frames ignored as malformed"
)
OBSERVED_ADDRESSES = Gauge(
    "rvc_claim_observed_addresses", "Number of distinct source addresses seen on the bus"
)

# Arbitration
CLAIM_OUTCOMES = Counter(
    "rvc_claim_outcomes_total", "Address claim events by outcome", ["outcome"]
)
CLAIM_BROADCASTS = Counter("rvc_claim_broadcasts_total", "ADDRESS_CLAIMED announcements sent")
CLAIM_CONFLICTS = Counter(
    "rvc_claim_conflicts_total", "Genuine address conflicts by result", ["result"]
)
CLAIM_STALE_TIMERS = Counter("rvc_claim_stale_timers_total", "Quiet-window timers found stale")
CLAIM_POOL_EXHAUSTED = Counter(
    "rvc_claim_pool_exhausted_total", "Claim cycles that ran out of addresses"
)
CLAIM_RESETS = Counter("rvc_claim_resets_total", "Operator-requested identity resets")
CLAIMED_ADDRESS = Gauge(
    "rvc_claim_claimed_address", "Currently committed source address (-1 when none)"
)
CLAIM_IN_PROGRESS = Gauge("rvc_claim_in_progress", "1 while an address claim is in flight")

# CAN transmit
CAN_TX_QUEUE_LENGTH = Gauge(
    "rvc_claim_can_tx_queue_length", "Number of pending messages in the CAN transmit queue"
)
CAN_TX_ENQUEUE_TOTAL = Counter(
    "rvc_claim_can_tx_enqueue_total", "Total number of messages enqueued to the CAN transmit queue"
)

# HTTP
HTTP_REQUESTS = Counter(
    "rvc_claim_http_requests_total", "Total HTTP requests", ["method", "endpoint", "status_code"]
)
HTTP_LATENCY = Histogram(
    "rvc_claim_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
)

CLAIMED_ADDRESS.set(-1)
