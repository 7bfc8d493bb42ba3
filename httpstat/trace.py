"""
httpcore trace extension that feeds a PhaseTracker.

httpx passes request.extensions["trace"] down to httpcore, which calls it as
trace(event_name, info) around every step of a request, e.g.

    connection.connect_tcp.started / .complete / .failed
    connection.start_tls.started / .complete
    http11.send_request_headers.started
    http11.send_request_body.complete
    http11.receive_response_headers.complete

The sync client calls the extension directly; the async client awaits it, hence
the two flavours below.

httpcore never emits DNS events: name resolution happens inside connect_tcp.
When the connection pool runs on a tracing network backend (see backend.py) the
backend reports DNS and connect timings itself, picking up the active trace
through a context variable published on connect_tcp.started.
"""

import logging
from contextvars import ContextVar
from typing import Any

import httpx

from .tracker import PhaseTracker

logger = logging.getLogger(__name__)

_CONNECT_STEPS = frozenset({"connect_tcp", "connect_unix_socket"})

_active_trace: ContextVar["HTTPCoreTrace | None"] = ContextVar("httpstat_active_trace", default=None)


def active_trace() -> "HTTPCoreTrace | None":
    """The trace currently inside a connect_tcp step, if any."""
    return _active_trace.get()


class HTTPCoreTrace:
    """
    Sync httpcore trace callable bound to one PhaseTracker.

    Creating the trace claims the tracker, so a tracker cannot be attached to
    two requests.
    """

    def __init__(self, tracker: PhaseTracker) -> None:
        tracker.claim()
        self.tracker = tracker
        self._connected = False
        self._got_conn = False
        self._connect_pending_at: float | None = None
        self._connect_reported = False

    def __call__(self, name: str, info: dict[str, Any]) -> None:
        self.handle(name, info)

    def handle(self, name: str, info: dict[str, Any]) -> None:
        event, _, stage = name.rpartition(".")
        _, _, step = event.partition(".")

        if step in _CONNECT_STEPS:
            if stage == "started":
                self._connect_started()
            elif stage == "complete":
                self._connect_complete()
            elif stage == "failed":
                self._connect_failed(info)
        elif step == "start_tls":
            if stage == "started":
                self.tracker.tls_handshake_start()
            elif stage == "complete":
                self.tracker.tls_handshake_done()
        elif step == "send_request_headers" and stage == "started":
            self._obtain_connection()
        elif step == "send_request_body" and stage == "complete":
            self.tracker.wrote_request()
        elif step == "receive_response_headers" and stage == "complete":
            self.tracker.got_first_response_byte()

    def report_connect_start(self) -> None:
        """Called by a tracing backend that times the dial itself."""
        self._connect_reported = True
        self.tracker.connect_start()

    def _connect_started(self) -> None:
        self._connected = True
        self._connect_reported = False
        self._connect_pending_at = self.tracker.now()
        _active_trace.set(self)

    def _connect_complete(self) -> None:
        _active_trace.set(None)
        if not self._connect_reported:
            self.tracker.connect_start(now=self._connect_pending_at)
            self.tracker.connect_done()
        self._connect_pending_at = None

    def _connect_failed(self, info: dict[str, Any]) -> None:
        _active_trace.set(None)
        self._connect_pending_at = None
        logger.debug("Connect failed: %s", info.get("exception"))

    def _obtain_connection(self) -> None:
        # No connect step before the first request bytes means the pool handed
        # back an idle keep-alive connection.
        if self._got_conn:
            return
        self._got_conn = True
        self.tracker.got_conn(reused=not self._connected)


class AsyncHTTPCoreTrace(HTTPCoreTrace):
    """Async flavour for httpx.AsyncClient, which awaits the trace extension."""

    async def __call__(self, name: str, info: dict[str, Any]) -> None:
        self.handle(name, info)


def trace_for(tracker: PhaseTracker) -> HTTPCoreTrace:
    """Trace extension for httpx.Client / httpcore.ConnectionPool requests."""
    return HTTPCoreTrace(tracker)


def async_trace_for(tracker: PhaseTracker) -> AsyncHTTPCoreTrace:
    """Trace extension for httpx.AsyncClient / httpcore.AsyncConnectionPool requests."""
    return AsyncHTTPCoreTrace(tracker)


def with_httpstat(request: httpx.Request, tracker: PhaseTracker) -> httpx.Request:
    """
    Attach tracker to a request sent with a sync httpx.Client.

    Usage:
        tracker = PhaseTracker()
        request = with_httpstat(client.build_request("GET", url), tracker)
        response = client.send(request)
        tracker.end()
    """
    request.extensions["trace"] = trace_for(tracker)
    return request


def with_httpstat_async(request: httpx.Request, tracker: PhaseTracker) -> httpx.Request:
    """Attach tracker to a request sent with httpx.AsyncClient."""
    request.extensions["trace"] = async_trace_for(tracker)
    return request
