"""
Context manager for measuring one request end to end.

measure() hands out a fresh PhaseTracker and finalizes it when the block exits,
so callers cannot forget end() after draining the response body.
"""

import time
from contextlib import contextmanager
from typing import Callable, Generator

from ..tracker import PhaseTracker
from .metrics import observe_result


@contextmanager
def measure(
    observe: bool = True,
    clock: Callable[[], float] = time.monotonic,
) -> Generator[PhaseTracker, None, None]:
    """
    Yield a PhaseTracker and call end() on it when the block exits.

    The body must be fully read inside the block. On success the tracker is
    passed to observe_result() unless observe is False.

    Usage:
        with measure() as tracker:
            request = with_httpstat(client.build_request("GET", url), tracker)
            client.send(request)
        print(tracker.total)
    """
    tracker = PhaseTracker(clock=clock)
    try:
        yield tracker
    finally:
        tracker.end()

    if observe:
        observe_result(tracker)
