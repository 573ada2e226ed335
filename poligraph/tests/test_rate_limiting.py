"""Tests for rate limiters."""

import pytest

from ..rate_limiting import FixedIntervalRateLimiter, TokenBucketRateLimiter


class TestTokenBucketRateLimiter:
    def test_burst_then_wait(self, fake_clock):
        limiter = TokenBucketRateLimiter(
            requests_per_second=2.0, burst_size=2, clock=fake_clock, sleep=fake_clock.sleep
        )

        assert limiter.wait_if_needed() == 0.0
        assert limiter.wait_if_needed() == 0.0
        assert limiter.wait_if_needed() == pytest.approx(0.5)
        assert fake_clock.sleeps == [pytest.approx(0.5)]

    def test_tokens_refill_over_time(self, fake_clock):
        limiter = TokenBucketRateLimiter(
            requests_per_second=1.0, burst_size=1, clock=fake_clock, sleep=fake_clock.sleep
        )
        limiter.wait_if_needed()
        fake_clock.now += 1.0

        assert limiter.wait_if_needed() == 0.0
        assert fake_clock.sleeps == []

    @pytest.mark.parametrize("rps,burst", [(0, 1), (-1, 1), (1, 0)])
    def test_invalid_arguments(self, rps, burst):
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(requests_per_second=rps, burst_size=burst)


class TestFixedIntervalRateLimiter:
    def test_first_call_never_waits(self, fake_clock):
        limiter = FixedIntervalRateLimiter(1.0, clock=fake_clock, sleep=fake_clock.sleep)
        assert limiter.wait_if_needed() == 0.0

    def test_enforces_interval(self, fake_clock):
        limiter = FixedIntervalRateLimiter(1.0, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.wait_if_needed()
        fake_clock.now += 0.25

        assert limiter.wait_if_needed() == pytest.approx(0.75)
        assert fake_clock.sleeps == [pytest.approx(0.75)]

    def test_no_wait_after_interval(self, fake_clock):
        limiter = FixedIntervalRateLimiter(1.0, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.wait_if_needed()
        fake_clock.now += 2.0
        assert limiter.wait_if_needed() == 0.0

    def test_negative_interval(self):
        with pytest.raises(ValueError):
            FixedIntervalRateLimiter(-1)
