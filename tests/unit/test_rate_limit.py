"""Tests for the rolling-window rate limiter."""

import pytest

from src.sources.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    def test_allows_up_to_max(self) -> None:
        limiter = RateLimiter(3, 60, clock=FakeClock())
        assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]
        assert limiter.can_request() is False

    def test_window_resets(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(1, 60, clock=clock)
        assert limiter.try_acquire() is True
        clock.now += 59
        assert limiter.can_request() is False
        clock.now += 1
        assert limiter.can_request() is True
        assert limiter.try_acquire() is True

    def test_record_counts(self) -> None:
        limiter = RateLimiter(2, 60, clock=FakeClock())
        limiter.record()
        limiter.record()
        assert limiter.can_request() is False

    def test_status(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(10, 3600, clock=clock)
        limiter.try_acquire()
        limiter.try_acquire()
        status = limiter.status()
        assert status.requests_used == 2
        assert status.requests_remaining == 8
        assert status.resets_at.timestamp() == pytest.approx(clock.now + 3600)

    def test_invalid_max(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(0, 60)
