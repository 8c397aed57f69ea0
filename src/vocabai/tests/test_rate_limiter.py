"""Tests for the sliding-window rate limiter."""
import pytest

from vocabai.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_admits_until_window_is_full(clock: FakeClock) -> None:
    limiter = RateLimiter(max_requests=3, window=60.0, clock=clock)
    for _ in range(3):
        assert limiter.can_admit()
        limiter.record()
        clock.now += 1
    assert not limiter.can_admit()
    assert len(limiter) == 3


def test_can_admit_has_no_side_effects(clock: FakeClock) -> None:
    limiter = RateLimiter(max_requests=1, clock=clock)
    for _ in range(5):
        assert limiter.can_admit()
    assert len(limiter) == 0


def test_time_until_next_slot(clock: FakeClock) -> None:
    limiter = RateLimiter(max_requests=2, window=60.0, clock=clock)
    assert limiter.time_until_next_slot() == 0.0

    limiter.record()
    clock.now += 10
    limiter.record()
    clock.now += 5

    # Oldest call ages out 60s after it was made
    assert limiter.time_until_next_slot() == pytest.approx(45.0)


def test_old_calls_age_out(clock: FakeClock) -> None:
    limiter = RateLimiter(max_requests=2, window=60.0, clock=clock)
    limiter.record()
    limiter.record()
    assert not limiter.can_admit()

    clock.now += 60.0
    assert limiter.can_admit()
    assert limiter.time_until_next_slot() == 0.0
    assert len(limiter) == 0


def test_over_recorded_window_waits_for_enough_stamps(clock: FakeClock) -> None:
    limiter = RateLimiter(max_requests=1, window=60.0, clock=clock)
    limiter.record()
    clock.now += 20
    limiter.record()

    assert limiter.time_until_next_slot() == pytest.approx(60.0)


def test_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)
