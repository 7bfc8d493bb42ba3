"""Tests for httpstat/tracker.py: events fired by hand, no network."""

import pytest

from httpstat.exceptions import TrackerFinalizedError, TrackerInUseError
from httpstat.tracker import PHASES, TIMELINE, PhaseTracker


def run_fresh(tracker: PhaseTracker, tls: bool) -> None:
    """Fire the full event sequence of a fresh connection."""
    tracker.dns_start()
    tracker.dns_done()
    tracker.connect_start()
    tracker.connect_done()
    if tls:
        tracker.tls_handshake_start()
        tracker.tls_handshake_done()
    tracker.got_conn(reused=False)
    tracker.wrote_request()
    tracker.got_first_response_byte()
    tracker.end()


class TestSnapshot:
    def test_snapshot_names(self, clock):
        """snapshot() exposes exactly the ten named durations."""
        snapshot = PhaseTracker(clock=clock).snapshot()
        assert list(snapshot) == list(PHASES + TIMELINE)
        assert set(snapshot) == {
            "DNSLookup", "TCPConnection", "TLSHandshake", "ServerProcessing", "ContentTransfer",
            "NameLookup", "Connect", "Pretransfer", "StartTransfer", "Total",
        }

    def test_fresh_tracker_is_all_zero(self, clock):
        assert all(v == 0.0 for v in PhaseTracker(clock=clock).snapshot().values())

    def test_snapshot_mid_flight(self, clock):
        """Durations are computed as events arrive, not only at end()."""
        tracker = PhaseTracker(clock=clock)
        tracker.dns_start()
        tracker.dns_done()

        snapshot = tracker.snapshot()
        assert snapshot["DNSLookup"] == 0.25
        assert snapshot["NameLookup"] == 0.25
        assert snapshot["Connect"] == 0.0
        assert snapshot["Total"] == 0.0


class TestFreshConnection:
    def test_https_all_durations_positive(self, clock):
        tracker = PhaseTracker(clock=clock)
        run_fresh(tracker, tls=True)

        assert tracker.is_tls
        assert not tracker.is_reused
        for name, value in tracker.snapshot().items():
            assert value > 0, f"expected {name} to be non-zero"

    def test_http_has_no_tls_phase(self, clock):
        tracker = PhaseTracker(clock=clock)
        run_fresh(tracker, tls=False)

        snapshot = tracker.snapshot()
        assert not tracker.is_tls
        assert snapshot["TLSHandshake"] == 0.0
        assert snapshot["Pretransfer"] == snapshot["Connect"]

        del snapshot["TLSHandshake"]
        for name, value in snapshot.items():
            assert value > 0, f"expected {name} to be non-zero"

    def test_exact_values(self):
        """Every duration is a plain subtraction of recorded timestamps."""
        tracker = PhaseTracker()
        tracker.dns_start(now=10.0)
        tracker.dns_done(now=10.5)
        tracker.connect_start(now=10.5)
        tracker.connect_done(now=11.0)
        tracker.tls_handshake_start(now=11.0)
        tracker.tls_handshake_done(now=12.0)
        tracker.got_conn(reused=False)
        tracker.wrote_request(now=12.0)
        tracker.got_first_response_byte(now=13.5)
        tracker.end(now=14.0)

        assert tracker.snapshot() == {
            "DNSLookup": 0.5,
            "TCPConnection": 0.5,
            "TLSHandshake": 1.0,
            "ServerProcessing": 1.5,
            "ContentTransfer": 0.5,
            "NameLookup": 0.5,
            "Connect": 1.0,
            "Pretransfer": 2.0,
            "StartTransfer": 3.5,
            "Total": 4.0,
        }

    def test_total_is_sum_of_phases(self):
        """Back-to-back phases add up to Total."""
        tracker = PhaseTracker()
        tracker.dns_start(now=0.0)
        tracker.dns_done(now=0.25)
        tracker.connect_start(now=0.25)
        tracker.connect_done(now=0.75)
        tracker.wrote_request(now=0.75)
        tracker.got_first_response_byte(now=1.5)
        tracker.end(now=2.0)

        s = tracker.snapshot()
        assert s["Total"] == (
            s["DNSLookup"] + s["TCPConnection"] + s["TLSHandshake"]
            + s["ServerProcessing"] + s["ContentTransfer"]
        )

    def test_timeline_is_monotonic(self, clock):
        tracker = PhaseTracker(clock=clock)
        run_fresh(tracker, tls=True)

        s = tracker.snapshot()
        assert s["NameLookup"] <= s["Connect"] <= s["Pretransfer"] <= s["StartTransfer"] <= s["Total"]


class TestNormalization:
    def test_direct_ip_connect_anchors_at_connect_start(self):
        """No DNS events: the timeline starts at the dial and DNSLookup is zero."""
        tracker = PhaseTracker()
        tracker.connect_start(now=5.0)
        tracker.connect_done(now=5.5)
        tracker.wrote_request(now=5.5)
        tracker.got_first_response_byte(now=6.0)
        tracker.end(now=6.25)

        s = tracker.snapshot()
        assert s["DNSLookup"] == 0.0
        assert s["NameLookup"] == 0.0
        assert s["TCPConnection"] == 0.5
        assert s["Connect"] == 0.5
        assert s["Total"] == 1.25

    def test_reused_connection_collapses_setup(self, clock):
        tracker = PhaseTracker(clock=clock)
        tracker.got_conn(reused=True)
        tracker.wrote_request()
        tracker.got_first_response_byte()
        tracker.end()

        s = tracker.snapshot()
        assert tracker.is_reused
        assert s["DNSLookup"] == s["TCPConnection"] == s["TLSHandshake"] == 0.0
        assert s["ServerProcessing"] > 0
        assert s["ContentTransfer"] > 0
        assert s["Total"] == s["ServerProcessing"] + s["ContentTransfer"]

    def test_reused_flag_false_is_ignored(self, clock):
        tracker = PhaseTracker(clock=clock)
        tracker.got_conn(reused=False)
        assert not tracker.is_reused

    def test_no_hooks_collapses_dns_and_tcp(self):
        """A client that fires no connection hooks anchors at request write."""
        tracker = PhaseTracker()
        tracker.wrote_request(now=3.0)
        tracker.got_first_response_byte(now=3.5)
        tracker.end(now=4.0)

        s = tracker.snapshot()
        assert s["DNSLookup"] == s["TCPConnection"] == s["TLSHandshake"] == 0.0
        assert s["StartTransfer"] == 0.5
        assert s["Total"] == 1.0

    def test_tls_durations_survive_request_write(self):
        tracker = PhaseTracker()
        tracker.dns_start(now=0.0)
        tracker.dns_done(now=0.25)
        tracker.connect_start(now=0.25)
        tracker.connect_done(now=0.5)
        tracker.tls_handshake_start(now=0.5)
        tracker.tls_handshake_done(now=1.0)
        tracker.wrote_request(now=1.25)

        assert tracker.tls_handshake == 0.5
        assert tracker.pretransfer == 1.0


class TestEnd:
    def test_end_without_events_leaves_zero(self, clock):
        tracker = PhaseTracker(clock=clock)
        tracker.end()

        assert tracker.total == 0.0
        assert tracker.content_transfer == 0.0
        assert tracker.ended

    def test_partial_exchange_is_readable(self, clock):
        """A request that died after connecting keeps its completed phases."""
        tracker = PhaseTracker(clock=clock)
        tracker.dns_start()
        tracker.dns_done()
        tracker.connect_start()
        tracker.connect_done()
        tracker.end()

        s = tracker.snapshot()
        assert s["DNSLookup"] > 0
        assert s["TCPConnection"] > 0
        assert s["ServerProcessing"] == 0.0
        assert s["ContentTransfer"] == 0.0
        assert s["Total"] > 0
        assert all(v >= 0 for v in s.values())


class TestSince:
    def test_content_transfer_since(self):
        tracker = PhaseTracker()
        tracker.wrote_request(now=1.0)
        tracker.got_first_response_byte(now=2.0)

        assert tracker.content_transfer_since(2.75) == 0.75
        # Independent of end()
        assert tracker.content_transfer == 0.0

    def test_total_since(self):
        tracker = PhaseTracker()
        tracker.dns_start(now=1.0)

        assert tracker.total_since(4.5) == 3.5
        assert tracker.total == 0.0

    def test_since_before_any_event_is_zero(self, clock):
        tracker = PhaseTracker(clock=clock)
        assert tracker.content_transfer_since(10.0) == 0.0
        assert tracker.total_since(10.0) == 0.0


class TestClaim:
    def test_claim_twice_raises(self, clock):
        tracker = PhaseTracker(clock=clock)
        tracker.claim()
        with pytest.raises(TrackerInUseError):
            tracker.claim()

    def test_claim_after_end_raises(self, clock):
        tracker = PhaseTracker(clock=clock)
        tracker.end()
        with pytest.raises(TrackerFinalizedError):
            tracker.claim()


def test_repr_lists_durations_in_ms():
    tracker = PhaseTracker()
    tracker.dns_start(now=0.0)
    tracker.dns_done(now=0.5)
    assert "DNSLookup=500.0ms" in repr(tracker)
