import pytest


class FakeClock:
    """Monotonic clock that advances by a fixed step on every reading."""

    def __init__(self, start: float = 100.0, step: float = 0.25) -> None:
        self.value = start
        self.step = step

    def __call__(self) -> float:
        self.value += self.step
        return self.value


@pytest.fixture
def clock():
    return FakeClock()
