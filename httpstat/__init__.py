"""
httpstat: per-phase latency breakdown for httpx/httpcore requests.

    DNSLookup, TCPConnection, TLSHandshake, ServerProcessing, ContentTransfer
    NameLookup, Connect, Pretransfer, StartTransfer, Total
"""

from .analytics.metrics import observe_result
from .analytics.timing import measure
from .backend import AsyncTracingBackend, TracingBackend, async_tracing_transport, tracing_transport
from .exceptions import HTTPStatError, TrackerFinalizedError, TrackerInUseError
from .trace import (
    AsyncHTTPCoreTrace,
    HTTPCoreTrace,
    async_trace_for,
    trace_for,
    with_httpstat,
    with_httpstat_async,
)
from .tracker import PHASES, TIMELINE, PhaseTracker

__all__ = [
    "PHASES",
    "TIMELINE",
    "AsyncHTTPCoreTrace",
    "AsyncTracingBackend",
    "HTTPCoreTrace",
    "HTTPStatError",
    "PhaseTracker",
    "TrackerFinalizedError",
    "TrackerInUseError",
    "TracingBackend",
    "async_trace_for",
    "async_tracing_transport",
    "measure",
    "observe_result",
    "trace_for",
    "tracing_transport",
    "with_httpstat",
    "with_httpstat_async",
]
