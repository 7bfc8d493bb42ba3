"""
Exceptions raised when attaching trackers to requests.

The tracker itself never raises: degenerate exchanges produce zero durations.
"""


class HTTPStatError(Exception):
    """Base class for httpstat errors."""


class TrackerInUseError(HTTPStatError):
    """A tracker was attached to a second request; use one tracker per request."""


class TrackerFinalizedError(HTTPStatError):
    """A tracker was attached after end() had already been called."""
