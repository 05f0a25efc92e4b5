"""
KlineSignal – Domain Value Object: PatternMatch
=================================================
Resultado de una detección de patrón chartista.

Los niveles estructurales se usan aguas abajo para derivar
stop loss / take profit (ver RiskCalculator.pattern_levels).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PatternKind(str, Enum):
    DOUBLE_TOP = "DOUBLE_TOP"
    DOUBLE_BOTTOM = "DOUBLE_BOTTOM"
    HEAD_SHOULDERS = "HEAD_SHOULDERS"
    INVERSE_HEAD_SHOULDERS = "INVERSE_HEAD_SHOULDERS"
    ASCENDING_TRIANGLE = "ASCENDING_TRIANGLE"
    DESCENDING_TRIANGLE = "DESCENDING_TRIANGLE"
    RISING_WEDGE = "RISING_WEDGE"
    FALLING_WEDGE = "FALLING_WEDGE"
    BULL_FLAG = "BULL_FLAG"
    BEAR_FLAG = "BEAR_FLAG"
    CUP_HANDLE = "CUP_HANDLE"


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Patrón detectado + niveles estructurales de la ventana reciente."""

    kind: PatternKind
    support: float
    resistance: float
    structure_low: float
    structure_high: float

    @property
    def structure_range(self) -> float:
        return self.structure_high - self.structure_low

    def to_dict(self) -> dict:
        return {
            "name": self.kind.value,
            "support": round(self.support, 4),
            "resistance": round(self.resistance, 4),
            "structure_low": round(self.structure_low, 4),
            "structure_high": round(self.structure_high, 4),
        }
