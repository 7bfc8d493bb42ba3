"""
Per-request HTTP latency tracker.

PhaseTracker records the timestamps of connection lifecycle events (DNS lookup,
TCP connect, TLS handshake, request write, first response byte) and turns them
into phase durations and cumulative timeline durations, curl style:

    DNSLookup  TCPConnection  TLSHandshake  ServerProcessing  ContentTransfer
    |          |              |             |                 |
    NameLookup Connect        Pretransfer   StartTransfer     Total

Durations are recomputed as each event arrives, so a snapshot taken mid-flight
is already consistent. Connections that skip phases (direct-IP connects,
keep-alive reuse, plaintext HTTP, clients that fire no connection hooks) are
normalized inside the handlers, never at read time.

All durations are float seconds.
"""

import logging
import threading
import time
from typing import Callable

from .exceptions import TrackerFinalizedError, TrackerInUseError

logger = logging.getLogger(__name__)

PHASES = ("DNSLookup", "TCPConnection", "TLSHandshake", "ServerProcessing", "ContentTransfer")
TIMELINE = ("NameLookup", "Connect", "Pretransfer", "StartTransfer", "Total")


class PhaseTracker:
    """
    Accumulates lifecycle timestamps for one in-flight request.

    One instance per request; trackers are not reusable. Handlers may be called
    from several threads (parallel dials, a different thread finalizing), so
    every read and write goes through a single lock.

    Usage:
        tracker = PhaseTracker()
        request = with_httpstat(client.build_request("GET", url), tracker)
        response = client.send(request)
        tracker.end()
        print(tracker.snapshot())
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._claimed = False
        self._ended = False

        # Phase durations
        self._dns_lookup = 0.0
        self._tcp_connection = 0.0
        self._tls_handshake = 0.0
        self._server_processing = 0.0
        self._content_transfer = 0.0

        # Timeline durations, all measured from _dns_start
        self._name_lookup = 0.0
        self._connect = 0.0
        self._pretransfer = 0.0
        self._start_transfer = 0.0
        self._total = 0.0

        self._dns_start: float | None = None
        self._dns_done: float | None = None
        self._tcp_start: float | None = None
        self._tcp_done: float | None = None
        self._tls_start: float | None = None
        self._tls_done: float | None = None
        self._server_start: float | None = None
        self._server_done: float | None = None
        self._transfer_start: float | None = None
        self._transfer_done: float | None = None

        self._is_tls = False
        self._is_reused = False

    def now(self) -> float:
        """Current reading of the tracker clock."""
        return self._clock()

    def _at(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def claim(self) -> None:
        """
        Mark the tracker as attached to a request.

        Raises TrackerInUseError if it is already attached elsewhere and
        TrackerFinalizedError if end() has already been called.
        """
        with self._lock:
            if self._ended:
                raise TrackerFinalizedError("tracker has already been finalized")
            if self._claimed:
                raise TrackerInUseError("tracker is already attached to a request")
            self._claimed = True

    # ------------------------------------------------------------------ #
    # Event handlers                                                     #
    # ------------------------------------------------------------------ #

    def dns_start(self, now: float | None = None) -> None:
        t = self._at(now)
        with self._lock:
            self._dns_start = t

    def dns_done(self, now: float | None = None) -> None:
        t = self._at(now)
        with self._lock:
            self._dns_done = t
            if self._dns_start is None:
                return
            self._dns_lookup = t - self._dns_start
            self._name_lookup = t - self._dns_start

    def connect_start(self, now: float | None = None) -> None:
        """Record the start of a dial attempt."""
        t = self._at(now)
        with self._lock:
            self._tcp_start = t

            # Connecting straight to an IP: no DNS phase, anchor on the dial.
            if self._dns_start is None:
                logger.debug("No DNS lookup observed; anchoring timeline at connect start")
                self._dns_start = t
                self._dns_done = t

    def connect_done(self, now: float | None = None) -> None:
        t = self._at(now)
        with self._lock:
            self._tcp_done = t
            if self._tcp_start is None or self._dns_start is None:
                return
            self._tcp_connection = t - self._tcp_start
            self._connect = t - self._dns_start

    def tls_handshake_start(self, now: float | None = None) -> None:
        t = self._at(now)
        with self._lock:
            self._is_tls = True
            self._tls_start = t

    def tls_handshake_done(self, now: float | None = None) -> None:
        t = self._at(now)
        with self._lock:
            self._tls_done = t
            if self._tls_start is None or self._dns_start is None:
                return
            self._tls_handshake = t - self._tls_start
            self._pretransfer = t - self._dns_start

    def got_conn(self, reused: bool) -> None:
        """Connection obtained; only flags reuse for wrote_request()."""
        with self._lock:
            if reused:
                self._is_reused = True

    def wrote_request(self, now: float | None = None) -> None:
        """Request fully written; server processing starts here."""
        t = self._at(now)
        with self._lock:
            self._server_start = t

            # Client fired no connection hooks at all.
            if self._dns_start is None and self._tcp_start is None:
                logger.debug("No connection hooks observed; collapsing DNS/TCP phases")
                self._dns_start = t
                self._dns_done = t
                self._tcp_start = t
                self._tcp_done = t

            # Keep-alive: DNS, TCP and TLS never happened for this request.
            if self._is_reused:
                logger.debug("Connection reused; collapsing DNS/TCP/TLS phases")
                self._dns_start = t
                self._dns_done = t
                self._tcp_start = t
                self._tcp_done = t
                self._tls_start = t
                self._tls_done = t

            if self._is_tls:
                return

            self._tls_handshake = 0.0
            self._pretransfer = self._connect

    def got_first_response_byte(self, now: float | None = None) -> None:
        t = self._at(now)
        with self._lock:
            self._server_done = t
            self._transfer_start = t
            if self._server_start is not None:
                self._server_processing = t - self._server_start
            if self._dns_start is not None:
                self._start_transfer = t - self._dns_start

    # ------------------------------------------------------------------ #
    # Finalize and read                                                  #
    # ------------------------------------------------------------------ #

    def end(self, now: float | None = None) -> None:
        """
        Record the end of the exchange.

        Must be called after the response body has been read; the tracker has
        no other way to observe when the content transfer finishes.
        """
        t = self._at(now)
        with self._lock:
            self._transfer_done = t
            self._ended = True

            # Nothing was traced; ContentTransfer and Total stay zero.
            if self._dns_start is None:
                return

            if self._transfer_start is not None:
                self._content_transfer = t - self._transfer_start
            self._total = t - self._dns_start

    def content_transfer_since(self, t: float) -> float:
        """Time from the first response byte to t (0.0 before the first byte)."""
        with self._lock:
            if self._server_done is None:
                return 0.0
            return t - self._server_done

    def total_since(self, t: float) -> float:
        """Time from the start of the exchange to t (0.0 before any event)."""
        with self._lock:
            if self._dns_start is None:
                return 0.0
            return t - self._dns_start

    def snapshot(self) -> dict[str, float]:
        """Return every named duration; zero where not yet computed."""
        with self._lock:
            return {
                "DNSLookup": self._dns_lookup,
                "TCPConnection": self._tcp_connection,
                "TLSHandshake": self._tls_handshake,
                "ServerProcessing": self._server_processing,
                "ContentTransfer": self._content_transfer,
                "NameLookup": self._name_lookup,
                "Connect": self._connect,
                "Pretransfer": self._pretransfer,
                "StartTransfer": self._start_transfer,
                "Total": self._total,
            }

    def _read(self, name: str):
        with self._lock:
            return getattr(self, name)

    @property
    def is_tls(self) -> bool:
        return self._read("_is_tls")

    @property
    def is_reused(self) -> bool:
        return self._read("_is_reused")

    @property
    def ended(self) -> bool:
        return self._read("_ended")

    @property
    def dns_lookup(self) -> float:
        return self._read("_dns_lookup")

    @property
    def tcp_connection(self) -> float:
        return self._read("_tcp_connection")

    @property
    def tls_handshake(self) -> float:
        return self._read("_tls_handshake")

    @property
    def server_processing(self) -> float:
        return self._read("_server_processing")

    @property
    def content_transfer(self) -> float:
        return self._read("_content_transfer")

    @property
    def name_lookup(self) -> float:
        return self._read("_name_lookup")

    @property
    def connect(self) -> float:
        return self._read("_connect")

    @property
    def pretransfer(self) -> float:
        return self._read("_pretransfer")

    @property
    def start_transfer(self) -> float:
        return self._read("_start_transfer")

    @property
    def total(self) -> float:
        return self._read("_total")

    def __repr__(self) -> str:
        durations = ", ".join(f"{k}={v * 1000:.1f}ms" for k, v in self.snapshot().items())
        return f"PhaseTracker({durations})"
