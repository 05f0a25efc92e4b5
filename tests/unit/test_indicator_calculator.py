"""Tests de EMA y RSI de Wilder."""

from __future__ import annotations

import math

import pytest

from backend.domain.services.indicator_calculator import IndicatorCalculator


class TestEMA:
    def test_seed_is_mean_of_first_length(self):
        values = [2.0, 4.0, 6.0, 8.0, 10.0, 12.0]
        series = IndicatorCalculator.ema_series(values, 4)

        assert series[:3] == [None, None, None]
        assert series[3] == pytest.approx(5.0)

    def test_recursive_step(self):
        values = [2.0, 4.0, 6.0, 8.0, 10.0]
        series = IndicatorCalculator.ema_series(values, 4)
        k = 2 / 5
        assert series[4] == pytest.approx(10.0 * k + 5.0 * (1 - k))

    def test_constant_input_gives_constant_ema(self):
        series = IndicatorCalculator.ema_series([7.5] * 30, 9)
        assert all(v == pytest.approx(7.5) for v in series[8:])

    def test_short_input_all_none(self):
        assert IndicatorCalculator.ema_series([1.0, 2.0], 5) == [None, None]

    def test_aligned_length(self):
        values = [float(i) for i in range(50)]
        assert len(IndicatorCalculator.ema_series(values, 21)) == 50

    def test_non_positive_length_raises(self):
        with pytest.raises(ValueError):
            IndicatorCalculator.ema_series([1.0, 2.0], 0)


class TestRSI:
    def test_undefined_until_period(self):
        values = [float(i) for i in range(20)]
        series = IndicatorCalculator.rsi_series(values, 14)
        assert series[:14] == [None] * 14
        assert series[14] is not None

    def test_increasing_series_saturates_at_100(self):
        series = IndicatorCalculator.rsi_series([float(i) for i in range(30)], 14)
        assert series[-1] == pytest.approx(100.0, abs=1e-6)
        assert math.isfinite(series[-1])

    def test_decreasing_series_is_zero(self):
        series = IndicatorCalculator.rsi_series([float(30 - i) for i in range(30)], 14)
        assert series[-1] == pytest.approx(0.0)

    def test_flat_series_is_finite(self):
        series = IndicatorCalculator.rsi_series([5.0] * 20, 14)
        assert series[-1] == pytest.approx(0.0)

    def test_wilder_smoothing(self):
        # 14 subidas de 1, luego una bajada de 1
        values = [float(i) for i in range(15)] + [13.0]
        series = IndicatorCalculator.rsi_series(values, 14)

        avg_gain = 13 / 14
        avg_loss = 1 / 14
        expected = 100 - 100 / (1 + avg_gain / avg_loss)
        assert series[15] == pytest.approx(expected)

    def test_short_input_all_none(self):
        assert IndicatorCalculator.rsi_series([1.0] * 14, 14) == [None] * 14

    def test_non_positive_period_raises(self):
        with pytest.raises(ValueError):
            IndicatorCalculator.rsi_series([1.0, 2.0], -1)


class TestCompute:
    def test_compute_returns_three_aligned_series(self):
        calc = IndicatorCalculator(ema_short=3, ema_long=5, rsi_period=4)
        closes = [float(i) for i in range(10)]
        series = calc.compute(closes)

        assert len(series.ema_short) == len(series.ema_long) == len(series.rsi) == 10
        assert series.at(9).is_ready
        assert not series.at(3).is_ready
