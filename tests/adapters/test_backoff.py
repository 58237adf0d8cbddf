"""Tests for ReconnectBackoff."""

import random

import pytest

from floorbot.adapters.discord.backoff import ReconnectBackoff


class MaxRandom(random.Random):
    def uniform(self, a, b):
        return b


class TestCeiling:
    @pytest.mark.parametrize("attempt,expected", [(1, 1.0), (2, 2.0), (3, 4.0), (6, 32.0), (7, 60.0), (50, 60.0)])
    def test_capped_exponential(self, attempt, expected):
        assert ReconnectBackoff(base=1.0, max_delay=60.0).ceiling(attempt) == expected

    def test_huge_attempt_does_not_overflow(self):
        assert ReconnectBackoff(base=1.0, max_delay=60.0).ceiling(10_000) == 60.0


class TestNextDelay:
    def test_delays_within_bounds(self):
        backoff = ReconnectBackoff(base=1.0, max_delay=8.0, max_attempts=0, rng=random.Random(7))
        for attempt in range(1, 20):
            delay = backoff.next_delay()
            assert 0 <= delay <= backoff.ceiling(attempt)

    def test_upper_bound_grows(self):
        backoff = ReconnectBackoff(base=0.5, max_delay=4.0, max_attempts=0, rng=MaxRandom())
        assert [backoff.next_delay() for _ in range(5)] == [0.5, 1.0, 2.0, 4.0, 4.0]

    def test_exhaustion(self):
        backoff = ReconnectBackoff(max_attempts=3, rng=random.Random(1))
        assert all(backoff.next_delay() is not None for _ in range(3))
        assert backoff.exhausted is True
        assert backoff.next_delay() is None
        assert backoff.attempts == 3

    def test_unlimited_when_zero(self):
        backoff = ReconnectBackoff(max_attempts=0, rng=random.Random(1))
        for _ in range(100):
            assert backoff.next_delay() is not None
        assert backoff.exhausted is False

    def test_reset(self):
        backoff = ReconnectBackoff(base=1.0, max_delay=60.0, max_attempts=2, rng=MaxRandom())
        backoff.next_delay()
        backoff.next_delay()
        backoff.reset()
        assert backoff.attempts == 0
        assert backoff.next_delay() == 1.0
