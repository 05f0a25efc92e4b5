"""Tests del SignalEngine: guardas, políticas, confirmación y niveles."""

from __future__ import annotations

import pytest

from backend.domain.entities.signal import Decision
from backend.domain.services.candle_buffer import CandleBuffer
from backend.domain.services.cross_detector import CrossDetector
from backend.domain.services.indicator_calculator import IndicatorCalculator
from backend.domain.services.pattern_matcher import PatternMatcher
from backend.domain.services.risk_calculator import RiskCalculator
from backend.domain.services.signal_engine import SignalEngine
from backend.domain.value_objects.pattern_match import PatternKind
from tests.factories import (
    CONFIRMING_CLOSE,
    V_SHAPE_CLOSES,
    build_engine,
    make_candle,
    make_candles,
)

# Espejo de la serie en V: sube de 70 a 100 y baja hasta 90 → cruce bajista
INVERTED_V_CLOSES = [70.0 + i for i in range(31)] + [99.0 - i for i in range(10)]


def buffer_of(closes) -> CandleBuffer:
    return CandleBuffer.from_history(make_candles(closes), capacity=500)


class TestHistoryGuard:
    def test_insufficient_history_is_hold(self, engine):
        signal = engine.evaluate(buffer_of([100.0 + i for i in range(19)]), "ethusdt")

        assert signal.decision is Decision.HOLD
        assert signal.reason == "insufficient history (19/20 closes)"
        assert signal.confidence == 0.0
        assert signal.stop_loss is None and signal.take_profit is None

    def test_empty_buffer_is_hold(self, engine):
        signal = engine.evaluate(CandleBuffer(10), "ethusdt")
        assert signal.decision is Decision.HOLD
        assert signal.price is None
        assert signal.candle_time is None

    def test_required_history_uses_long_ema(self):
        assert build_engine(ema_short=9, ema_long=21).required_history == 21
        assert build_engine(ema_short=3, ema_long=10).required_history == 20


class TestEndToEnd:
    def test_cross_on_latest_candle_is_pending(self, engine):
        signal = engine.evaluate(buffer_of(V_SHAPE_CLOSES), "ethusdt")

        assert signal.decision is Decision.HOLD
        assert signal.reason.startswith("EMA cross up pending confirmation")
        assert signal.rsi == pytest.approx(52.34, abs=0.01)

    def test_confirming_candle_gives_buy(self, engine):
        buffer = buffer_of(V_SHAPE_CLOSES)
        engine.evaluate(buffer, "ethusdt")
        buffer.apply_final(make_candle(CONFIRMING_CLOSE, index=len(V_SHAPE_CLOSES)))

        signal = engine.evaluate(buffer, "ethusdt")

        assert signal.decision is Decision.BUY
        assert signal.price == CONFIRMING_CLOSE
        assert signal.rsi == pytest.approx(55.75, abs=0.01)
        assert signal.stop_loss == pytest.approx(110.778)
        assert signal.take_profit == pytest.approx(111.666)
        assert signal.confidence == pytest.approx(0.6425, abs=1e-3)
        assert signal.pattern is None
        assert signal.reason.startswith("EMA cross up confirmed + RSI")
        assert signal.candle_time == len(V_SHAPE_CLOSES) * 60_000

    def test_confirmed_down_cross_gives_sell(self, engine):
        buffer = buffer_of(INVERTED_V_CLOSES + [89.0])
        signal = engine.evaluate(buffer, "ethusdt")

        assert signal.decision is Decision.SELL
        assert signal.rsi == pytest.approx(44.25, abs=0.01)
        assert signal.stop_loss == pytest.approx(89.178)
        assert signal.take_profit == pytest.approx(88.466)

    def test_provisional_candle_never_evaluated(self, engine):
        buffer = buffer_of(V_SHAPE_CLOSES)
        buffer.apply_provisional(
            make_candle(CONFIRMING_CLOSE, index=len(V_SHAPE_CLOSES), is_final=False)
        )
        signal = engine.evaluate(buffer, "ethusdt")
        assert signal.decision is Decision.HOLD
        assert signal.price == V_SHAPE_CLOSES[-1]

    def test_without_confirmation_fires_immediately(self):
        engine = build_engine(confirm=False)
        signal = engine.evaluate(buffer_of(V_SHAPE_CLOSES), "ethusdt")

        assert signal.decision is Decision.BUY
        assert signal.price == V_SHAPE_CLOSES[-1]

    def test_evaluation_is_deterministic(self, engine):
        buffer = buffer_of(V_SHAPE_CLOSES + [CONFIRMING_CLOSE])
        first = engine.evaluate(buffer, "ethusdt").to_dict()
        second = engine.evaluate(buffer, "ethusdt").to_dict()
        first.pop("generated_at")
        second.pop("generated_at")
        assert first == second


class TestPolicies:
    def test_threshold_rejects_hot_rsi(self):
        engine = SignalEngine(
            IndicatorCalculator(5, 20, 14),
            CrossDetector(),
            PatternMatcher(),
            RiskCalculator(),
            rsi_buy_ceiling=50.0,
        )
        signal = engine.evaluate(buffer_of(V_SHAPE_CLOSES + [CONFIRMING_CLOSE]), "ethusdt")

        assert signal.decision is Decision.HOLD
        assert "rejected by RSI filter" in signal.reason

    def test_strict_buy_inside_band(self):
        engine = build_engine(policy="strict")
        signal = engine.evaluate(buffer_of(V_SHAPE_CLOSES + [CONFIRMING_CLOSE]), "ethusdt")

        assert signal.decision is Decision.BUY
        assert signal.confidence == pytest.approx(0.7425, abs=1e-3)

    def test_confidence_never_exceeds_cap(self):
        engine = SignalEngine(
            IndicatorCalculator(5, 20, 14),
            CrossDetector(),
            PatternMatcher(),
            RiskCalculator(),
            rsi_buy_ceiling=100.0,
        )
        signal = engine.evaluate(buffer_of(V_SHAPE_CLOSES + [CONFIRMING_CLOSE]), "ethusdt")
        assert signal.decision is Decision.BUY
        assert signal.confidence <= 0.95


class TestPatterns:
    def test_hold_reports_pattern_levels(self, engine):
        closes = [100.0] * 50
        closes[-5], closes[-3], closes[-1] = 99.0, 101.0, 100.9

        signal = engine.evaluate(buffer_of(closes), "ethusdt")

        assert signal.decision is Decision.HOLD
        assert signal.confidence == 0.0
        assert signal.pattern.kind is PatternKind.RISING_WEDGE
        assert signal.reason.endswith("; pattern RISING_WEDGE")
        assert signal.stop_loss == pytest.approx(100.9 * 0.997)
        assert signal.take_profit == pytest.approx(100.9 * 0.985)
        assert signal.to_dict()["pattern"]["name"] == "RISING_WEDGE"


class TestDiagnostics:
    def test_indicator_snapshot(self, engine):
        snapshot = engine.indicator_snapshot(buffer_of(V_SHAPE_CLOSES))
        assert snapshot.is_ready
        assert snapshot.ema_short > snapshot.ema_long

    def test_indicator_snapshot_empty(self, engine):
        assert engine.indicator_snapshot(CandleBuffer(5)) is None

    def test_stats_count_decisions(self, engine):
        engine.evaluate(buffer_of([1.0] * 5), "ethusdt")
        engine.evaluate(buffer_of(V_SHAPE_CLOSES + [CONFIRMING_CLOSE]), "ethusdt")

        stats = engine.stats
        assert stats["total_evaluated"] == 2
        assert stats["by_decision"] == {"BUY": 1, "SELL": 0, "HOLD": 1}
