from __future__ import annotations

from watchfinder.services.rate_limiter import FixedWindowRateLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


def test_third_request_in_window_is_rejected_until_window_resets() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    first = limiter.check("ip")
    assert first.allowed is True
    assert first.remaining == 1

    clock.now += 10
    second = limiter.check("ip")
    assert second.allowed is True
    assert second.remaining == 0

    clock.now += 10.5
    third = limiter.check("ip")
    assert third.allowed is False
    assert third.remaining == 0
    assert third.retry_after_seconds == 40
    assert 0 < third.retry_after_seconds <= 60

    clock.now += 39.5
    after_window = limiter.check("ip")
    assert after_window.allowed is True
    assert after_window.remaining == 1


def test_rejected_requests_do_not_consume_quota() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=30, clock=clock)

    assert limiter.check("ip").allowed is True
    for _ in range(3):
        clock.now += 1
        assert limiter.check("ip").allowed is False

    clock.now += 27
    assert limiter.check("ip").allowed is True


def test_keys_are_counted_independently() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)

    assert limiter.check("10.0.0.1").allowed is True
    assert limiter.check("10.0.0.1").allowed is False
    assert limiter.check("10.0.0.2").allowed is True
    assert limiter.max_requests == 1


def test_retry_after_rounds_up_partial_seconds() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)

    limiter.check("ip")
    clock.now += 59.9
    decision = limiter.check("ip")

    assert decision.allowed is False
    assert decision.retry_after_seconds == 1
    assert decision.limit == 1
