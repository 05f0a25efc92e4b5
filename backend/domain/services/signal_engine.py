"""
KlineSignal – Domain Service: Signal Engine
=============================================
Orquesta indicadores, cruces, patrones y riesgo sobre el buffer de velas
cerradas y produce UNA Signal inmutable por evaluación.

═══════════════════════════════════════════════════════════════
                 FLUJO DE EVALUACIÓN
═══════════════════════════════════════════════════════════════

  1. Historia insuficiente (< max(EMA larga, 20) closes) → HOLD
  2. EMA corta, EMA larga y RSI en la última vela
  3. Cruce confirmado + filtro RSI según la política:
       threshold: BUY  ⇐ cruce ↑ y RSI ≤ techo (60)
                  SELL ⇐ cruce ↓ y RSI ≥ piso (40)
       strict:    BUY  ⇐ cruce ↑, 50 < RSI < 70, precio > EMA larga
                  SELL ⇐ cruce ↓, 30 < RSI < 50, precio < EMA larga
  4. BUY/SELL → SL/TP por offset fijo (RiskCalculator)
  5. PatternMatcher en paralelo → SL/TP por tabla de patrón
  6. Fusión de ambas fuentes
  7. Confianza = min(0.95, 0.6 + bonus); bonus = distancia del RSI al
     límite de la política, /100, nunca negativa
  8. Signal nueva (la anterior se reemplaza, no se muta)

ANTI-REPAINTING:
  Solo se evalúan velas CERRADAS: la provisional del buffer nunca entra
  en los cálculos. Dado el mismo buffer la decisión es idéntica.
"""

from __future__ import annotations

from typing import Dict, Literal, Optional, Tuple

from backend.domain.entities.signal import Decision, Signal
from backend.domain.services.candle_buffer import CandleBuffer
from backend.domain.services.cross_detector import CrossDetector, CrossDirection
from backend.domain.services.indicator_calculator import (
    IndicatorCalculator,
    IndicatorSeries,
    IndicatorSnapshot,
)
from backend.domain.services.pattern_matcher import PatternMatcher
from backend.domain.services.risk_calculator import RiskCalculator
from backend.shared.logging.logger import get_logger

logger = get_logger("signal_engine")

BASE_CONFIDENCE = 0.6
MAX_CONFIDENCE = 0.95
MIN_HISTORY_FLOOR = 20


class SignalEngine:
    """
    Motor de decisión BUY/SELL/HOLD.

    No guarda estado de mercado: todo lo que necesita viene en el buffer.
    Solo mantiene contadores de diagnóstico.
    """

    def __init__(
        self,
        indicators: IndicatorCalculator,
        crosses: CrossDetector,
        patterns: PatternMatcher,
        risk: RiskCalculator,
        *,
        policy: Literal["threshold", "strict"] = "threshold",
        rsi_buy_ceiling: float = 60.0,
        rsi_sell_floor: float = 40.0,
        rsi_band_low: float = 50.0,
        rsi_band_high: float = 70.0,
    ) -> None:
        self._indicators = indicators
        self._crosses = crosses
        self._patterns = patterns
        self._risk = risk
        self._policy = policy
        self._rsi_buy_ceiling = rsi_buy_ceiling
        self._rsi_sell_floor = rsi_sell_floor
        self._rsi_band_low = rsi_band_low
        self._rsi_band_high = rsi_band_high

        self._required_history = max(indicators.ema_long_period, MIN_HISTORY_FLOOR)

        # Contadores de diagnóstico
        self._total_evaluated = 0
        self._by_decision: Dict[str, int] = {d.value: 0 for d in Decision}
        self._patterns_found = 0

        logger.info(
            "SignalEngine inicializado (EMA %d/%d, RSI %d, policy=%s, "
            "confirm=%s, SL=%.2f%%, TP=%.2f%%)",
            indicators.ema_short_period, indicators.ema_long_period,
            indicators.rsi_period, policy, crosses.confirm,
            risk.offsets.stop_pct * 100, risk.offsets.target_pct * 100,
        )

    @property
    def required_history(self) -> int:
        return self._required_history

    # ════════════════════════════════════════════════════════════════
    #  PUNTO DE ENTRADA PRINCIPAL
    # ════════════════════════════════════════════════════════════════

    def evaluate(self, buffer: CandleBuffer, instrument: str) -> Signal:
        """
        Evaluar el buffer y producir la Signal de la última vela cerrada.

        Args:
            buffer: Buffer del instrumento activo.
            instrument: Símbolo al que pertenece el buffer.

        Returns:
            Signal (HOLD incluido). Nunca lanza por datos insuficientes.
        """
        self._total_evaluated += 1
        closes = buffer.final_closes()
        last_candle = buffer.last_final
        candle_time = last_candle.open_time if last_candle else None
        n = len(closes)

        # ── 1. Guardia de historia ─────────────────────────────────
        if n < self._required_history:
            return self._emit(Signal(
                instrument=instrument,
                decision=Decision.HOLD,
                price=closes[-1] if closes else None,
                rsi=None,
                ema_short=None,
                ema_long=None,
                stop_loss=None,
                take_profit=None,
                confidence=0.0,
                pattern=None,
                reason=f"insufficient history ({n}/{self._required_history} closes)",
                candle_time=candle_time,
            ))

        # ── 2. Indicadores en la última vela ───────────────────────
        series = self._indicators.compute(closes)
        snapshot = series.at(n - 1)
        price = closes[-1]

        # ── 3. Decisión ────────────────────────────────────────────
        decision, reason, bonus = self._decide(series, snapshot, price)

        # ── 4-6. Niveles de riesgo ─────────────────────────────────
        pattern = self._patterns.match(closes)
        if pattern is not None:
            self._patterns_found += 1
            reason = f"{reason}; pattern {pattern.kind.value}"

        indicator_levels = self._risk.indicator_levels(decision, price)
        pattern_levels = (
            self._risk.pattern_levels(pattern, price) if pattern is not None else None
        )
        levels = self._risk.fuse(decision, indicator_levels, pattern_levels)

        # ── 7. Confianza ───────────────────────────────────────────
        confidence = 0.0
        if decision is not Decision.HOLD:
            confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + max(0.0, bonus))

        return self._emit(Signal(
            instrument=instrument,
            decision=decision,
            price=price,
            rsi=snapshot.rsi,
            ema_short=snapshot.ema_short,
            ema_long=snapshot.ema_long,
            stop_loss=levels.stop_loss if levels else None,
            take_profit=levels.take_profit if levels else None,
            confidence=confidence,
            pattern=pattern,
            reason=reason,
            candle_time=candle_time,
        ))

    def indicator_snapshot(self, buffer: CandleBuffer) -> Optional[IndicatorSnapshot]:
        """Indicadores de la última vela cerrada (para API), None si vacío."""
        closes = buffer.final_closes()
        if not closes:
            return None
        return self._indicators.compute(closes).at(len(closes) - 1)

    # ════════════════════════════════════════════════════════════════
    #  REGLA DE DECISIÓN
    # ════════════════════════════════════════════════════════════════

    def _decide(
        self,
        series: IndicatorSeries,
        snapshot: IndicatorSnapshot,
        price: float,
    ) -> Tuple[Decision, str, float]:
        """Retorna (decisión, motivo, bonus de confianza)."""
        if not snapshot.is_ready:
            return Decision.HOLD, "indicators warming up", 0.0

        rsi = snapshot.rsi
        cross = self._crosses.latest(series.ema_short, series.ema_long)
        if cross is None:
            return Decision.HOLD, f"no EMA cross (RSI {rsi:.1f})", 0.0

        label = "up" if cross.direction is CrossDirection.UP else "down"
        if not cross.confirmed:
            return (
                Decision.HOLD,
                f"EMA cross {label} pending confirmation (RSI {rsi:.1f})",
                0.0,
            )

        if self._policy == "strict":
            result = self._strict(cross.direction, rsi, price, snapshot.ema_long)
        else:
            result = self._threshold(cross.direction, rsi)

        if result is None:
            return (
                Decision.HOLD,
                f"EMA cross {label} rejected by RSI filter (RSI {rsi:.1f})",
                0.0,
            )

        decision, bonus = result
        return decision, f"EMA cross {label} confirmed + RSI {rsi:.1f}", bonus

    def _threshold(
        self, direction: CrossDirection, rsi: float,
    ) -> Optional[Tuple[Decision, float]]:
        if direction is CrossDirection.UP and rsi <= self._rsi_buy_ceiling:
            return Decision.BUY, (self._rsi_buy_ceiling - rsi) / 100
        if direction is CrossDirection.DOWN and rsi >= self._rsi_sell_floor:
            return Decision.SELL, (rsi - self._rsi_sell_floor) / 100
        return None

    def _strict(
        self,
        direction: CrossDirection,
        rsi: float,
        price: float,
        ema_long: float,
    ) -> Optional[Tuple[Decision, float]]:
        low, high = self._rsi_band_low, self._rsi_band_high
        if direction is CrossDirection.UP and low < rsi < high and price > ema_long:
            return Decision.BUY, (high - rsi) / 100
        sell_low, sell_high = 100 - high, 100 - low
        if direction is CrossDirection.DOWN and sell_low < rsi < sell_high and price < ema_long:
            return Decision.SELL, (rsi - sell_low) / 100
        return None

    # ════════════════════════════════════════════════════════════════
    #  HELPERS
    # ════════════════════════════════════════════════════════════════

    def _emit(self, signal: Signal) -> Signal:
        self._by_decision[signal.decision.value] += 1
        if signal.is_actionable:
            logger.info(
                "⚡ SEÑAL %s [%s] price=%.5f SL=%.5f TP=%.5f conf=%.2f | %s",
                signal.decision.value, signal.instrument, signal.price,
                signal.stop_loss, signal.take_profit, signal.confidence,
                signal.reason,
            )
        else:
            logger.debug("HOLD [%s] %s", signal.instrument, signal.reason)
        return signal

    @property
    def stats(self) -> dict:
        """Estadísticas del motor para monitoreo."""
        return {
            "total_evaluated": self._total_evaluated,
            "by_decision": dict(self._by_decision),
            "patterns_found": self._patterns_found,
            "required_history": self._required_history,
            "policy": self._policy,
            "confirm_crosses": self._crosses.confirm,
        }
