"""
KlineSignal – Domain Service: Indicator Calculator
====================================================
Series de indicadores técnicos puras (EMA, RSI de Wilder).

Cada función devuelve una serie ALINEADA con los closes de entrada:
misma longitud, None en las posiciones anteriores al lookback mínimo.

═══════════════════════════════════════════════════════════════════
                    MATEMÁTICA
═══════════════════════════════════════════════════════════════════

─── EMA ─────────────────────────────────────────────────────────
    k = 2 / (length + 1)
    EMA[length-1] = SMA(close[0..length-1])         ← seed
    EMA[i]        = close[i] × k + EMA[i-1] × (1 − k)

─── RSI (Wilder) ───────────────────────────────────────────────
    delta_i = close_i − close_{i-1}
    avg_gain[period] = Σ gain(1..period) / period    ← seed
    avg_loss[period] = Σ loss(1..period) / period
    avg_x[i] = (avg_x[i-1] × (period − 1) + x_i) / period
    RSI = 100 − 100 / (1 + avg_gain / avg_loss)

  avg_loss == 0 se sustituye por un epsilon: el RSI satura cerca de
  100 y nunca produce inf ni NaN.

POR QUÉ SE RECALCULA TODO EN CADA EVALUACIÓN:
- El buffer está acotado (≤ max_candles_buffer), así que recorrer la
  serie completa una vez por vela cerrada es barato.
- Sin estado incremental → no hay nada que invalidar al cambiar de
  instrumento o al resincronizar tras una reconexión.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

Series = List[Optional[float]]

# Sustituto de avg_loss == 0 para evitar división por cero
RSI_EPSILON = 1e-10


@dataclass(frozen=True, slots=True)
class IndicatorSeries:
    """Las tres series que consume el Signal Engine."""

    ema_short: Series
    ema_long: Series
    rsi: Series

    def at(self, index: int) -> "IndicatorSnapshot":
        return IndicatorSnapshot(
            ema_short=self.ema_short[index],
            ema_long=self.ema_long[index],
            rsi=self.rsi[index],
        )


@dataclass(frozen=True, slots=True)
class IndicatorSnapshot:
    """Valores de los indicadores en una vela concreta."""

    ema_short: Optional[float]
    ema_long: Optional[float]
    rsi: Optional[float]

    @property
    def is_ready(self) -> bool:
        return None not in (self.ema_short, self.ema_long, self.rsi)

    def to_dict(self) -> dict:
        return {
            "ema_short": self.ema_short,
            "ema_long": self.ema_long,
            "rsi": self.rsi,
        }


class IndicatorCalculator:
    """
    Calculadora de indicadores técnicos.

    RESPONSABILIDAD:
    Implementar las fórmulas matemáticas. NO mantiene estado entre
    llamadas: los periodos se fijan en el constructor y compute()
    es una función pura de los closes.
    """

    def __init__(self, ema_short: int = 9, ema_long: int = 21, rsi_period: int = 14) -> None:
        self.ema_short_period = ema_short
        self.ema_long_period = ema_long
        self.rsi_period = rsi_period

    def compute(self, closes: Sequence[float]) -> IndicatorSeries:
        """EMA corta, EMA larga y RSI sobre la misma serie de closes."""
        return IndicatorSeries(
            ema_short=self.ema_series(closes, self.ema_short_period),
            ema_long=self.ema_series(closes, self.ema_long_period),
            rsi=self.rsi_series(closes, self.rsi_period),
        )

    @staticmethod
    def ema_series(values: Sequence[float], length: int) -> Series:
        """
        Serie EMA con seed SMA.

        Args:
            values: closes (más antiguo primero)
            length: periodo de la EMA

        Returns:
            Lista de igual longitud; None antes de length-1.
        """
        if length <= 0:
            raise ValueError("length debe ser positivo")

        out: Series = [None] * len(values)
        if len(values) < length:
            return out

        k = 2.0 / (length + 1)
        prev = sum(values[:length]) / length
        out[length - 1] = prev

        for i in range(length, len(values)):
            prev = values[i] * k + prev * (1.0 - k)
            out[i] = prev
        return out

    @staticmethod
    def rsi_series(values: Sequence[float], period: int = 14) -> Series:
        """
        Serie RSI con suavizado de Wilder.

        Returns:
            Lista de igual longitud; None hasta period-1 inclusive.
        """
        if period <= 0:
            raise ValueError("period debe ser positivo")

        out: Series = [None] * len(values)
        if len(values) <= period:
            return out

        total_gain = 0.0
        total_loss = 0.0
        for i in range(1, period + 1):
            delta = values[i] - values[i - 1]
            if delta > 0:
                total_gain += delta
            else:
                total_loss -= delta

        avg_gain = total_gain / period
        avg_loss = total_loss / period
        out[period] = IndicatorCalculator._compute_rsi(avg_gain, avg_loss)

        for i in range(period + 1, len(values)):
            delta = values[i] - values[i - 1]
            gain = delta if delta > 0 else 0.0
            loss = -delta if delta < 0 else 0.0

            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period
            out[i] = IndicatorCalculator._compute_rsi(avg_gain, avg_loss)
        return out

    @staticmethod
    def _compute_rsi(avg_gain: float, avg_loss: float) -> float:
        """
        RSI = 100 − (100 / (1 + RS)),  RS = avg_gain / avg_loss

        avg_loss == 0 → epsilon: solo ganancias satura en ~100,
        sin movimiento alguno da 0 (avg_gain también es 0).
        """
        rs = avg_gain / (avg_loss or RSI_EPSILON)
        return 100.0 - (100.0 / (1.0 + rs))
