"""
Tests for the Prometheus metrics defined in `claim_daemon.metrics`.

This module verifies:
- The correct instantiation type (Counter, Gauge, Histogram) of each metric.
- The presence and correctness of labels for labeled metrics.
- The absence of labels for unlabeled metrics.
"""

from prometheus_client import Counter, Gauge, Histogram

from claim_daemon import metrics


def test_metric_definitions():
    """Counters are `Counter`, gauges are `Gauge`, and histograms are `Histogram`."""
    for name in (
        "FRAME_COUNTER",
        "CLAIM_FRAMES_SEEN",
        "MALFORMED_CLAIM_FRAMES",
        "CLAIM_OUTCOMES",
        "CLAIM_BROADCASTS",
        "CLAIM_CONFLICTS",
        "CLAIM_STALE_TIMERS",
        "CLAIM_POOL_EXHAUSTED",
        "CLAIM_RESETS",
        "CAN_TX_ENQUEUE_TOTAL",
        "HTTP_REQUESTS",
    ):
        assert isinstance(getattr(metrics, name), Counter), f"{name} should be a Counter"

    gauges = ("OBSERVED_ADDRESSES", "CLAIMED_ADDRESS", "CLAIM_IN_PROGRESS", "CAN_TX_QUEUE_LENGTH")
    for name in gauges:
        assert isinstance(getattr(metrics, name), Gauge), f"{name} should be a Gauge"

    assert isinstance(metrics.HTTP_LATENCY, Histogram), "HTTP_LATENCY should be a Histogram"


def test_metric_labels():
    assert metrics.CLAIM_OUTCOMES._labelnames == ("outcome",)
    assert metrics.CLAIM_CONFLICTS._labelnames == ("result",)
    assert metrics.HTTP_REQUESTS._labelnames == ("method", "endpoint", "status_code")
    assert metrics.HTTP_LATENCY._labelnames == ("method", "endpoint")


def test_unlabeled_metrics_have_no_labels():
    for metric in (
        metrics.FRAME_COUNTER,
        metrics.CLAIM_BROADCASTS,
        metrics.CLAIM_POOL_EXHAUSTED,
        metrics.CLAIMED_ADDRESS,
        metrics.CAN_TX_QUEUE_LENGTH,
    ):
        assert metric._labelnames == ()


def test_metric_names_share_prefix():
    for metric in (metrics.FRAME_COUNTER, metrics.CLAIMED_ADDRESS, metrics.HTTP_LATENCY):
        assert metric._name.startswith("rvc_claim_")
