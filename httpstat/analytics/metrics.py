"""
Prometheus metrics for traced HTTP requests.

Exposes phase and timeline histograms plus a request counter split by TLS and
connection reuse.

Usage:
    from httpstat.analytics.metrics import observe_result

    tracker.end()
    observe_result(tracker)
"""

import logging

from prometheus_client import Counter, Histogram

from typing import TYPE_CHECKING

from ..config import settings

if TYPE_CHECKING:
    from ..tracker import PhaseTracker

logger = logging.getLogger(__name__)

_BUCKETS = [0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30]

# Duration of each connection/request phase (in seconds)
PHASE_DURATION = Histogram(
    "httpstat_phase_duration_seconds",
    "HTTP request latency by phase",
    ["phase"],
    buckets=_BUCKETS,
)

# Time from request start to each milestone (in seconds)
TIMELINE = Histogram(
    "httpstat_timeline_seconds",
    "Cumulative HTTP request latency at each milestone",
    ["milestone"],
    buckets=_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "httpstat_requests_total",
    "Total traced HTTP requests",
    ["tls", "reused"],
)

_PHASE_LABELS = {
    "DNSLookup": "dns_lookup",
    "TCPConnection": "tcp_connection",
    "TLSHandshake": "tls_handshake",
    "ServerProcessing": "server_processing",
    "ContentTransfer": "content_transfer",
}

_MILESTONE_LABELS = {
    "NameLookup": "name_lookup",
    "Connect": "connect",
    "Pretransfer": "pretransfer",
    "StartTransfer": "start_transfer",
    "Total": "total",
}


def observe_result(tracker: "PhaseTracker") -> None:
    """Record every non-zero duration of a finalized tracker."""
    if not settings.metrics_enabled:
        return

    durations = tracker.snapshot()
    for key, phase in _PHASE_LABELS.items():
        if durations[key] > 0:
            PHASE_DURATION.labels(phase=phase).observe(durations[key])
    for key, milestone in _MILESTONE_LABELS.items():
        if durations[key] > 0:
            TIMELINE.labels(milestone=milestone).observe(durations[key])

    REQUESTS_TOTAL.labels(
        tls=str(tracker.is_tls).lower(),
        reused=str(tracker.is_reused).lower(),
    ).inc()

    total_ms = durations["Total"] * 1000
    if total_ms > settings.slow_request_threshold_ms:
        logger.warning(
            "Slow request: total=%.0fms (dns=%.0fms connect=%.0fms tls=%.0fms server=%.0fms transfer=%.0fms)",
            total_ms,
            durations["DNSLookup"] * 1000,
            durations["TCPConnection"] * 1000,
            durations["TLSHandshake"] * 1000,
            durations["ServerProcessing"] * 1000,
            durations["ContentTransfer"] * 1000,
        )
