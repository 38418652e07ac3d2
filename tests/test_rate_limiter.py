from __future__ import annotations

import pytest

from app.scraping.rate_limiter import FixedWindowRateLimiter, RateLimitExceeded


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(window_seconds=60, max_requests=10, clock=clock)


def test_exact_boundary(limiter: FixedWindowRateLimiter) -> None:
    outcomes = [limiter.is_rate_limited("user-1") for _ in range(11)]
    assert outcomes[:10] == [False] * 10
    assert outcomes[10] is True


def test_identities_are_independent(limiter: FixedWindowRateLimiter) -> None:
    for _ in range(10):
        limiter.is_rate_limited("user-1")
    assert limiter.is_rate_limited("user-1") is True
    assert limiter.is_rate_limited("user-2") is False


def test_window_resets_after_elapsing(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    for _ in range(11):
        limiter.is_rate_limited("user-1")
    clock.now += 60.5
    assert limiter.is_rate_limited("user-1") is False
    assert limiter.remaining("user-1") == 9


def test_remaining_and_reset_after(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    assert limiter.remaining("user-1") == 10
    assert limiter.reset_after("user-1") == 0.0

    for _ in range(4):
        limiter.is_rate_limited("user-1")
    clock.now += 15
    assert limiter.remaining("user-1") == 6
    assert limiter.reset_after("user-1") == pytest.approx(45.0)


def test_check_raises_with_retry_after(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    for _ in range(10):
        limiter.check("user-1")
    clock.now += 20.2

    with pytest.raises(RateLimitExceeded) as exc_info:
        limiter.check("user-1")

    assert exc_info.value.limit == 10
    assert exc_info.value.retry_after_seconds == pytest.approx(39.8)
    assert exc_info.value.retry_after == 40


def test_sweep_drops_idle_identities(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    limiter.is_rate_limited("idle")
    clock.now += 100
    limiter.is_rate_limited("active")
    clock.now += 30

    assert limiter.sweep() == 1
    assert limiter.tracked_identities() == 1
