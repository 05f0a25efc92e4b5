"""
KlineSignal – Domain Entity: Candle
=====================================
Vela OHLCV inmutable recibida del proveedor de mercado.

Decisiones de diseño:
- frozen=True → una vela no se modifica nunca. Una vela provisional
  (is_final=False) no se "edita": se REEMPLAZA en el buffer por una
  nueva instancia con el mismo open_time.
- Se usa dataclass por rendimiento (más ligera que Pydantic para hot-path).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Candle:
    """Vela OHLCV con timestamp de apertura en milisegundos."""

    symbol: str          # e.g. "ethusdt"
    open_time: int       # epoch ms de apertura
    open: float
    high: float
    low: float
    close: float
    volume: float
    is_final: bool = True

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "symbol": self.symbol,
            "open_time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "is_final": self.is_final,
        }
