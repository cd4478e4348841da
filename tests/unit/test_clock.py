"""Test the clocks used for timestamps."""

from datetime import datetime, timezone

import pytest

from behavioral_extensions.core.clock import FixedClock, WallClock


class TestWallClock:
    def test_now_is_recent_utc(self):
        now = WallClock().now()
        assert now.tzinfo == timezone.utc
        assert abs((datetime.now(timezone.utc) - now).total_seconds()) < 1.0


class TestFixedClock:
    def test_frozen_until_advanced(self, clock):
        assert clock.now() == datetime(2024, 3, 1, 12, 0, 0)
        assert clock.now() == clock.now()

    def test_advance(self, clock):
        clock.advance(90)
        assert clock.now() == datetime(2024, 3, 1, 12, 1, 30)

    def test_cannot_move_back(self, clock):
        with pytest.raises(ValueError, match="only moves forward"):
            clock.advance(-1)

    def test_keeps_timezone(self):
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert FixedClock(at).now().tzinfo == timezone.utc
