"""Tests de detección y confirmación de cruces EMA."""

from __future__ import annotations

import itertools

from backend.domain.services.cross_detector import CrossDetector, CrossDirection

# short cruza por encima de long en el índice 2
SHORT_UP = [1.0, 1.0, 3.0, 4.0]
LONG_UP = [2.0, 2.0, 2.0, 2.0]


class TestPrimitives:
    def test_crossed_up(self):
        assert CrossDetector.crossed_up(SHORT_UP, LONG_UP, 2)
        assert not CrossDetector.crossed_up(SHORT_UP, LONG_UP, 3)

    def test_crossed_down(self):
        short = [3.0, 3.0, 1.0]
        long = [2.0, 2.0, 2.0]
        assert CrossDetector.crossed_down(short, long, 2)
        assert not CrossDetector.crossed_up(short, long, 2)

    def test_touch_then_break_counts(self):
        # short[i-1] == long[i-1] cuenta como "debajo o igual"
        assert CrossDetector.crossed_up([2.0, 3.0], [2.0, 2.0], 1)

    def test_undefined_values(self):
        assert not CrossDetector.crossed_up([None, 3.0], [2.0, 2.0], 1)
        assert not CrossDetector.crossed_down([3.0, None], [2.0, 2.0], 1)

    def test_out_of_range(self):
        assert not CrossDetector.crossed_up(SHORT_UP, LONG_UP, 0)
        assert not CrossDetector.crossed_up(SHORT_UP, LONG_UP, 10)

    def test_mutually_exclusive(self):
        levels = [1.0, 2.0, 3.0]
        for ps, pl, cs, cl in itertools.product(levels, repeat=4):
            short, long = [ps, cs], [pl, cl]
            up = CrossDetector.crossed_up(short, long, 1)
            down = CrossDetector.crossed_down(short, long, 1)
            assert not (up and down)


class TestConfirmation:
    def test_confirmed_by_next_candle(self):
        result = CrossDetector(confirm=True).detect(SHORT_UP, LONG_UP, 2)
        assert result is not None
        assert result.direction is CrossDirection.UP
        assert result.confirmed

    def test_last_index_reported_unconfirmed(self):
        result = CrossDetector(confirm=True).detect(SHORT_UP[:3], LONG_UP[:3], 2)
        assert result is not None
        assert not result.confirmed

    def test_contradicting_next_candle_removes_cross(self):
        short = [1.0, 1.0, 3.0, 1.5]
        assert CrossDetector(confirm=True).detect(short, LONG_UP, 2) is None

    def test_without_confirmation_reported_immediately(self):
        result = CrossDetector(confirm=False).detect(SHORT_UP[:3], LONG_UP[:3], 2)
        assert result is not None
        assert result.confirmed


class TestLatest:
    def test_latest_confirmed_cross_on_previous_candle(self):
        result = CrossDetector(confirm=True).latest(SHORT_UP, LONG_UP)
        assert result is not None
        assert result.index == 2
        assert result.confirmed

    def test_latest_pending_cross_on_last_candle(self):
        result = CrossDetector(confirm=True).latest(SHORT_UP[:3], LONG_UP[:3])
        assert result is not None
        assert result.index == 2
        assert not result.confirmed

    def test_latest_without_confirmation_only_last_candle(self):
        assert CrossDetector(confirm=False).latest(SHORT_UP, LONG_UP) is None

    def test_latest_no_cross(self):
        assert CrossDetector().latest([1.0, 1.0, 1.0], [2.0, 2.0, 2.0]) is None
