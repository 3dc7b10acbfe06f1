"""Tests for the injectable clocks."""

from datetime import datetime, timezone

from revenue_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_default_time(self):
        assert DeterministicClock().now() == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def test_stable_until_advanced(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()

    def test_tick(self):
        clock = DeterministicClock()
        start = clock.now()
        assert (clock.tick() - start).total_seconds() == 1

    def test_advance_and_set_time(self):
        clock = DeterministicClock()
        clock.advance(90)
        assert clock.now().minute == 1
        target = datetime(2025, 6, 30, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target


class TestSystemClock:

    def test_is_utc_aware(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset().total_seconds() == 0
