"""
KlineSignal – Domain Entity: Signal
=====================================
Señal de trading inmutable generada por el Signal Engine.

DECISIONES DE DISEÑO:
- frozen=True → inmutable una vez generada. La siguiente evaluación
  produce una Signal NUEVA que reemplaza a la anterior; nunca se muta.
- Se genera SOLO al cerrar una vela → las velas provisionales nunca
  producen señales.
- HOLD también es una Signal: lleva el motivo (reason) de por qué no
  se operó, incluido "insufficient history".

CAMPOS:
- instrument:   Símbolo evaluado (e.g. "ethusdt")
- decision:     Decision.BUY / SELL / HOLD
- price:        Close de la última vela cerrada (None si no hay velas)
- rsi, ema_short, ema_long: indicadores en la última vela
- stop_loss, take_profit: niveles fusionados (indicador + patrón)
- confidence:   [0, 0.95]; 0.0 para HOLD
- pattern:      PatternMatch detectado en esta evaluación, o None
- reason:       Explicación legible de la decisión
- generated_at: epoch (seg) de generación
- candle_time:  open_time (ms) de la vela evaluada
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from backend.domain.value_objects.pattern_match import PatternMatch


class Decision(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)


@dataclass(frozen=True, slots=True)
class Signal:
    """Señal de trading inmutable con niveles de riesgo pre-calculados."""

    instrument: str
    decision: Decision
    price: Optional[float]
    rsi: Optional[float]
    ema_short: Optional[float]
    ema_long: Optional[float]
    stop_loss: Optional[float]
    take_profit: Optional[float]
    confidence: float
    pattern: Optional[PatternMatch]
    reason: str
    generated_at: float = field(default_factory=time.time)
    candle_time: Optional[int] = None

    @property
    def is_actionable(self) -> bool:
        return self.decision is not Decision.HOLD

    def to_dict(self) -> dict:
        """Serialización para API / WebSocket."""
        return {
            "instrument": self.instrument,
            "decision": self.decision.value,
            "price": self.price,
            "rsi": _round(self.rsi, 2),
            "ema_short": _round(self.ema_short, 5),
            "ema_long": _round(self.ema_long, 5),
            "stop_loss": _round(self.stop_loss, 5),
            "take_profit": _round(self.take_profit, 5),
            "confidence": round(self.confidence, 2),
            "pattern": self.pattern.to_dict() if self.pattern else None,
            "reason": self.reason,
            "generated_at": self.generated_at,
            "candle_time": self.candle_time,
        }
