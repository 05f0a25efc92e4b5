"""
KlineSignal – Domain Service: Cross Detector
==============================================
Detección de cruces EMA corta / EMA larga sobre series alineadas.

CRUCE REAL:
  Alcista en i: short[i-1] ≤ long[i-1]  AND  short[i] > long[i]
  Bajista en i: short[i-1] ≥ long[i-1]  AND  short[i] < long[i]
  Los cuatro valores deben estar definidos. Ambas condiciones son
  mutuamente excluyentes (short[i] no puede ser > y < long[i] a la vez).

CONFIRMACIÓN (filtro de falsos positivos):
  Con confirm=True un cruce en i solo se reporta si en i+1 el orden que
  implica se mantiene. Si i es la última vela (no existe i+1) el cruce se
  reporta como NO confirmado: el llamador debe tratarlo como provisional
  hasta que cierre una vela más. Se cambia inmediatez por menos ruido.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

Value = Optional[float]


class CrossDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


@dataclass(frozen=True, slots=True)
class CrossResult:
    """Cruce detectado en un índice dado."""

    direction: CrossDirection
    index: int
    confirmed: bool


def _defined(*values: Value) -> bool:
    return all(v is not None for v in values)


class CrossDetector:
    """Detector de cruces con confirmación opcional de una vela."""

    def __init__(self, confirm: bool = True) -> None:
        self._confirm = confirm

    @property
    def confirm(self) -> bool:
        return self._confirm

    # ════════════════════════════════════════════════════════════════
    #  PRIMITIVAS
    # ════════════════════════════════════════════════════════════════

    @staticmethod
    def crossed_up(short: Sequence[Value], long: Sequence[Value], i: int) -> bool:
        if i < 1 or i >= len(short) or i >= len(long):
            return False
        ps, pl, cs, cl = short[i - 1], long[i - 1], short[i], long[i]
        if not _defined(ps, pl, cs, cl):
            return False
        return ps <= pl and cs > cl

    @staticmethod
    def crossed_down(short: Sequence[Value], long: Sequence[Value], i: int) -> bool:
        if i < 1 or i >= len(short) or i >= len(long):
            return False
        ps, pl, cs, cl = short[i - 1], long[i - 1], short[i], long[i]
        if not _defined(ps, pl, cs, cl):
            return False
        return ps >= pl and cs < cl

    # ════════════════════════════════════════════════════════════════
    #  DETECCIÓN CON CONFIRMACIÓN
    # ════════════════════════════════════════════════════════════════

    def detect(
        self,
        short: Sequence[Value],
        long: Sequence[Value],
        i: int,
    ) -> Optional[CrossResult]:
        """
        Cruce en el índice i según el modo de confirmación.

        Returns:
            CrossResult (confirmed=False si i es la última vela y la
            confirmación está activa), o None si no hay cruce o la vela
            siguiente lo contradice.
        """
        if self.crossed_up(short, long, i):
            direction = CrossDirection.UP
        elif self.crossed_down(short, long, i):
            direction = CrossDirection.DOWN
        else:
            return None

        if not self._confirm:
            return CrossResult(direction, i, confirmed=True)

        nxt = i + 1
        if nxt >= len(short) or nxt >= len(long):
            return CrossResult(direction, i, confirmed=False)

        ns, nl = short[nxt], long[nxt]
        if not _defined(ns, nl):
            return None
        holds = ns > nl if direction is CrossDirection.UP else ns < nl
        if not holds:
            return None
        return CrossResult(direction, i, confirmed=True)

    def latest(
        self,
        short: Sequence[Value],
        long: Sequence[Value],
    ) -> Optional[CrossResult]:
        """
        Cruce accionable en la vela más reciente.

        - Sin confirmación: cruce en la última vela.
        - Con confirmación: primero el cruce de la penúltima vela confirmado
          por la última; si no hay, un cruce pendiente en la última vela
          (confirmed=False).
        """
        last = min(len(short), len(long)) - 1
        if last < 1:
            return None
        if not self._confirm:
            return self.detect(short, long, last)

        confirmed = self.detect(short, long, last - 1)
        if confirmed is not None and confirmed.confirmed:
            return confirmed
        return self.detect(short, long, last)
