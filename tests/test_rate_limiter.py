"""Tests for RateLimiter (webwx_relay.notify.rate_limiter)."""

from __future__ import annotations

import pytest

from webwx_relay.notify.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 10_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> RateLimiter:
    """Limiter allowing 3 digests per hour on a controllable clock."""
    return RateLimiter(max_sends=3, window_seconds=3600, clock=clock)


class TestRateLimiter:
    """Tests for the sliding window rate limiter."""

    def test_allows_under_limit(self, limiter: RateLimiter) -> None:
        """Requests under the limit are allowed."""
        allowed, wait = limiter.check()

        assert allowed is True
        assert wait == 0

    def test_rejects_at_limit(self, limiter: RateLimiter) -> None:
        """Requests at the limit are rejected with wait time."""
        for _ in range(limiter.max_sends):
            limiter.record_send()

        allowed, wait = limiter.check()

        assert allowed is False
        assert wait > 0

    def test_window_expiry_allows_again(self, limiter: RateLimiter, clock: FakeClock) -> None:
        """After window expires, sends are allowed again."""
        for _ in range(limiter.max_sends):
            limiter.record_send()
        clock.now += 3601

        allowed, wait = limiter.check()

        assert allowed is True
        assert wait == 0

    def test_record_send_increments_count(self, limiter: RateLimiter) -> None:
        """Recording a send increases the current count."""
        assert limiter.current_count == 0

        limiter.record_send()

        assert limiter.current_count == 1

    def test_partial_window_expiry(self, limiter: RateLimiter, clock: FakeClock) -> None:
        """Only expired timestamps are pruned, recent ones stay."""
        limiter.record_send()
        limiter.record_send()
        clock.now += 3000
        limiter.record_send()
        clock.now += 700

        assert limiter.current_count == 1

    def test_wait_counts_down_to_oldest_expiry(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        """Wait time is the time left until the oldest send leaves the window."""
        for _ in range(limiter.max_sends):
            limiter.record_send()
        clock.now += 3000

        _, wait = limiter.check()

        assert wait == 601

    def test_defaults(self) -> None:
        limiter = RateLimiter()

        assert limiter.max_sends == 30
        assert limiter.window_seconds == 3600
