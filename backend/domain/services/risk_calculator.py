"""
KlineSignal – Domain Service: Risk Calculator
===============================================
Cálculos de stop loss / take profit puros.

DOS FUENTES DE NIVELES:
- Indicador: offset fraccional fijo desde el precio de entrada,
  según el perfil de riesgo (RiskOffsets).
- Patrón: niveles estructurales del PatternMatch según una tabla
  por tipo de patrón (ver pattern_levels).

FUSIÓN:
  BUY  → stop = min(indicador, patrón)   target = max(indicador, patrón)
  SELL → stop = max(indicador, patrón)   target = min(indicador, patrón)
  Si solo una fuente produjo nivel, se usa directamente.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from backend.domain.entities.signal import Decision
from backend.domain.value_objects.pattern_match import PatternKind, PatternMatch


@dataclass(frozen=True)
class RiskOffsets:
    """Offsets SL/TP como fracción del precio de entrada."""

    stop_pct: float = 0.002
    target_pct: float = 0.006


RISK_PROFILES: dict[str, RiskOffsets] = {
    "conservative": RiskOffsets(stop_pct=0.002, target_pct=0.006),
    "wide": RiskOffsets(stop_pct=0.005, target_pct=0.015),
}


def resolve_offsets(
    profile: str,
    stop_pct: Optional[float] = None,
    target_pct: Optional[float] = None,
) -> RiskOffsets:
    """Perfil base + overrides opcionales."""
    base = RISK_PROFILES[profile]
    return RiskOffsets(
        stop_pct=stop_pct if stop_pct is not None else base.stop_pct,
        target_pct=target_pct if target_pct is not None else base.target_pct,
    )


@dataclass(frozen=True)
class RiskLevels:
    """Par stop loss / take profit."""

    stop_loss: float
    take_profit: float


# Multiplicadores fijos (stop, target) para patrones sin niveles de estructura
_FIXED_MULTIPLIERS: dict[PatternKind, tuple[float, float]] = {
    PatternKind.BULL_FLAG: (0.99, 1.02),
    PatternKind.BEAR_FLAG: (1.01, 0.98),
    PatternKind.RISING_WEDGE: (0.997, 0.985),
    PatternKind.FALLING_WEDGE: (1.003, 1.015),
}


class RiskCalculator:
    """
    Calculadora de niveles de riesgo.

    NO tiene dependencias externas ni estado mutable.
    """

    def __init__(self, offsets: Optional[RiskOffsets] = None) -> None:
        self._offsets = offsets or RiskOffsets()

    @property
    def offsets(self) -> RiskOffsets:
        return self._offsets

    def indicator_levels(self, decision: Decision, price: float) -> Optional[RiskLevels]:
        """Offsets fijos según la dirección; None para HOLD."""
        stop_pct = self._offsets.stop_pct
        target_pct = self._offsets.target_pct
        if decision is Decision.BUY:
            return RiskLevels(
                stop_loss=price * (1 - stop_pct),
                take_profit=price * (1 + target_pct),
            )
        if decision is Decision.SELL:
            return RiskLevels(
                stop_loss=price * (1 + stop_pct),
                take_profit=price * (1 - target_pct),
            )
        return None

    @staticmethod
    def pattern_levels(pattern: PatternMatch, price: float) -> RiskLevels:
        """
        Niveles implícitos del patrón:

          DOUBLE_TOP / HEAD_SHOULDERS        → SL high,   TP price − rango
          DOUBLE_BOTTOM / INV_HEAD_SHOULDERS → SL low,    TP price + rango
          ASCENDING_TRIANGLE                 → SL soporte, TP price + (R − S)
          DESCENDING_TRIANGLE                → SL resist., TP price − (R − S)
          CUP_HANDLE                         → SL low,    TP price + rango
          BULL_FLAG 0.99/1.02, BEAR_FLAG 1.01/0.98,
          RISING_WEDGE 0.997/0.985, FALLING_WEDGE 1.003/1.015
        """
        kind = pattern.kind
        structure_range = pattern.structure_high - pattern.structure_low
        sr_range = pattern.resistance - pattern.support

        if kind in (PatternKind.DOUBLE_TOP, PatternKind.HEAD_SHOULDERS):
            return RiskLevels(pattern.structure_high, price - structure_range)
        if kind in (
            PatternKind.DOUBLE_BOTTOM,
            PatternKind.INVERSE_HEAD_SHOULDERS,
            PatternKind.CUP_HANDLE,
        ):
            return RiskLevels(pattern.structure_low, price + structure_range)
        if kind is PatternKind.ASCENDING_TRIANGLE:
            return RiskLevels(pattern.support, price + sr_range)
        if kind is PatternKind.DESCENDING_TRIANGLE:
            return RiskLevels(pattern.resistance, price - sr_range)

        stop_mult, target_mult = _FIXED_MULTIPLIERS[kind]
        return RiskLevels(price * stop_mult, price * target_mult)

    @staticmethod
    def fuse(
        decision: Decision,
        indicator: Optional[RiskLevels],
        pattern: Optional[RiskLevels],
    ) -> Optional[RiskLevels]:
        """
        Reconciliar ambas fuentes.

        BUY:  stop más bajo, target más alto.
        SELL: stop más alto, target más bajo.
        """
        if indicator is None:
            return pattern
        if pattern is None:
            return indicator

        if decision is Decision.BUY:
            return RiskLevels(
                stop_loss=min(indicator.stop_loss, pattern.stop_loss),
                take_profit=max(indicator.take_profit, pattern.take_profit),
            )
        if decision is Decision.SELL:
            return RiskLevels(
                stop_loss=max(indicator.stop_loss, pattern.stop_loss),
                take_profit=min(indicator.take_profit, pattern.take_profit),
            )
        return pattern
