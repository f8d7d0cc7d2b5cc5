import pytest

from portfolio_api.runtime.limits import FixedWindowRateLimiter, RateLimitExceeded


class _Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_window_allows_up_to_limit_then_rejects_with_retry_after() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(clock=clock)

    first = limiter.check("route:1.2.3.4", limit=2, window_seconds=60)
    clock.now += 1
    second = limiter.check("route:1.2.3.4", limit=2, window_seconds=60)
    clock.now += 1
    with pytest.raises(RateLimitExceeded) as exc:
        limiter.check("route:1.2.3.4", limit=2, window_seconds=60)

    assert (first.limit, first.remaining) == (2, 1)
    assert second.remaining == 0
    assert first.reset == second.reset == 1_700_000_060
    assert 0 < exc.value.retry_after_seconds <= 60
    assert exc.value.retry_after_seconds == 58
    assert exc.value.info is not None
    assert exc.value.info.remaining == 0


def test_window_resets_after_expiry() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(clock=clock)
    limiter.check("route:client", limit=1, window_seconds=10)
    with pytest.raises(RateLimitExceeded):
        limiter.check("route:client", limit=1, window_seconds=10)

    clock.now += 11
    info = limiter.check("route:client", limit=1, window_seconds=10)
    assert info.remaining == 0
    assert info.reset == int(clock.now + 10)


def test_identifiers_are_counted_independently() -> None:
    limiter = FixedWindowRateLimiter(clock=_Clock())
    limiter.check("/api/projects:1.1.1.1", limit=1)
    assert limiter.check("/api/projects:2.2.2.2", limit=1).remaining == 0
    assert limiter.check("/api/people:1.1.1.1", limit=1).remaining == 0


def test_headers_expose_limit_remaining_and_reset() -> None:
    info = FixedWindowRateLimiter(clock=_Clock()).check("id", limit=5, window_seconds=60)
    assert info.headers() == {
        "X-RateLimit-Limit": "5",
        "X-RateLimit-Remaining": "4",
        "X-RateLimit-Reset": "1700000060",
    }


def test_sweep_discards_expired_records_inline_and_on_demand() -> None:
    clock = _Clock()
    limiter = FixedWindowRateLimiter(sweep_interval_seconds=30, clock=clock)
    limiter.check("a", window_seconds=10)
    limiter.check("b", window_seconds=100)
    assert len(limiter) == 2

    clock.now += 31
    limiter.check("c", window_seconds=10)
    assert len(limiter) == 2

    clock.now += 100
    assert limiter.sweep() == 2
    assert len(limiter) == 0
