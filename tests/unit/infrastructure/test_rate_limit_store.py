"""Unit tests for contendo/infrastructure/rate_limit_store.py module."""

import asyncio

import pytest

from contendo.infrastructure.rate_limit_store import FixedWindowRateLimiter


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> FixedWindowRateLimiter:
    """Provide a limiter with 3 requests per 60 second window."""
    return FixedWindowRateLimiter(window_seconds=60, max_requests=3, clock=clock)


@pytest.mark.unit
class TestFixedWindowRateLimiter:
    """Test cases for FixedWindowRateLimiter."""

    async def test_allows_up_to_limit(self, limiter: FixedWindowRateLimiter) -> None:
        """Test hits within the budget are allowed with decreasing remaining."""
        # Act
        decisions = [await limiter.hit("10.0.0.1") for _ in range(3)]

        # Assert
        assert [d.allowed for d in decisions] == [True, True, True]
        assert [d.remaining for d in decisions] == [2, 1, 0]
        assert all(d.limit == 3 for d in decisions)

    async def test_rejects_over_limit(self, limiter: FixedWindowRateLimiter) -> None:
        """Test the hit after the budget is rejected and still counted."""
        # Arrange
        for _ in range(3):
            await limiter.hit("10.0.0.1")

        # Act
        fourth = await limiter.hit("10.0.0.1")
        fifth = await limiter.hit("10.0.0.1")

        # Assert
        assert fourth.allowed is False
        assert fifth.allowed is False
        assert fifth.remaining == 0
        assert limiter.count("10.0.0.1") == 5

    async def test_keys_are_independent(self, limiter: FixedWindowRateLimiter) -> None:
        """Test one client's usage does not affect another."""
        for _ in range(4):
            await limiter.hit("10.0.0.1")

        decision = await limiter.hit("10.0.0.2")

        assert decision.allowed is True
        assert decision.remaining == 2

    async def test_window_rolls_over_at_boundary(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        """Test a hit exactly one window after the first starts a fresh count."""
        # Arrange
        for _ in range(4):
            await limiter.hit("10.0.0.1")

        # Act
        clock.advance(59.9)
        still_limited = await limiter.hit("10.0.0.1")
        clock.advance(0.1)
        fresh = await limiter.hit("10.0.0.1")

        # Assert
        assert still_limited.allowed is False
        assert fresh.allowed is True
        assert fresh.remaining == 2

    async def test_reset_after(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        """Test reset_after counts whole seconds to the end of the window."""
        first = await limiter.hit("10.0.0.1")
        clock.advance(15.5)
        later = await limiter.hit("10.0.0.1")

        assert first.reset_after == 60
        assert later.reset_after == 45

    async def test_reset_clears_key(self, limiter: FixedWindowRateLimiter) -> None:
        """Test reset forgets the key's window."""
        for _ in range(4):
            await limiter.hit("10.0.0.1")

        await limiter.reset("10.0.0.1")

        assert limiter.count("10.0.0.1") == 0
        assert (await limiter.hit("10.0.0.1")).allowed is True

    async def test_prunes_expired_windows(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        """Test windows of idle clients are dropped after a window passes."""
        # Arrange
        await limiter.hit("10.0.0.1")
        clock.advance(61)

        # Act
        await limiter.hit("10.0.0.2")

        # Assert
        assert "10.0.0.1" not in limiter._windows  # noqa: SLF001
        assert limiter.count("10.0.0.1") == 0

    async def test_concurrent_hits_never_exceed_limit(
        self, clock: FakeClock
    ) -> None:
        """Test exactly max_requests concurrent hits are allowed."""
        # Arrange
        limiter = FixedWindowRateLimiter(
            window_seconds=60, max_requests=10, clock=clock
        )

        # Act
        decisions = await asyncio.gather(*(limiter.hit("10.0.0.1") for _ in range(25)))

        # Assert
        assert sum(d.allowed for d in decisions) == 10
        assert limiter.count("10.0.0.1") == 25
