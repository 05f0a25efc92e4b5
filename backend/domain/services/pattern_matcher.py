"""
KlineSignal – Domain Service: Pattern Matcher
===============================================
Reconocimiento heurístico de patrones chartistas sobre los closes recientes.

═══════════════════════════════════════════════════════════════
              CATÁLOGO (ventanas sobre los últimos closes)
═══════════════════════════════════════════════════════════════

  c[-k] = k-ésimo close desde el final (c[-1] = último)

  DOBLE TECHO / SUELO (pivotes c[-5], c[-3], c[-1]):
    techo: c[-5] < c[-3], |c[-3] − c[-1]| < c[-3]·0.2%, c[-1] < c[-3]
    suelo: espejo

  HOMBRO-CABEZA-HOMBRO (L=c[-7], H=c[-5], R=c[-3]):
    normal:    L < H, R < H, |L − R| < H·1%
    invertido: L > H, R > H, |L − R| < H·1%

  CUÑAS (últimos 10): media 5 primeros vs media 5 últimos
    ascendente: media sube y last10[9] − last10[0] < media_ini·2%
    descendente: media baja y last10[0] − last10[9] < media_ini·2%

  TRIÁNGULOS (últimos 20):
    ascendente:  w[0] < w[9] < w[19] y close a < 0.3% del máximo
    descendente: w[0] > w[9] > w[19] y close a < 0.3% del mínimo

  BANDERAS (últimos 30): mástil = primer tercio (w[0] → w[10])
    alcista: w[10] ≥ w[0]·1.02, bajista: w[10] ≤ w[0]·0.98
    consolidación: |w[29] − w[10]| < w[0]·1.5%

  TAZA CON ASA (últimos 50):
    w[25] < w[0]·0.98, w[25] < w[49]·0.98, |w[0] − w[49]| < w[0]·1.5%

NIVELES:
  support = structure_low  = min(últimos 20)
  resistance = structure_high = max(últimos 20)

PRECEDENCIA:
  scan() devuelve TODOS los patrones que disparan. match() elige el de
  mayor prioridad según PATTERN_PRIORITY (explícita, no por orden de
  evaluación). La tabla está ordenada de forma que el resultado coincide
  con el histórico "gana el último evaluado".
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from backend.domain.value_objects.pattern_match import PatternKind, PatternMatch

# Mayor índice = mayor prioridad
PATTERN_PRIORITY: dict[PatternKind, int] = {
    PatternKind.DOUBLE_TOP: 0,
    PatternKind.DOUBLE_BOTTOM: 1,
    PatternKind.HEAD_SHOULDERS: 2,
    PatternKind.INVERSE_HEAD_SHOULDERS: 3,
    PatternKind.RISING_WEDGE: 4,
    PatternKind.FALLING_WEDGE: 5,
    PatternKind.ASCENDING_TRIANGLE: 6,
    PatternKind.DESCENDING_TRIANGLE: 7,
    PatternKind.BULL_FLAG: 8,
    PatternKind.BEAR_FLAG: 9,
    PatternKind.CUP_HANDLE: 10,
}


@dataclass(frozen=True)
class PatternTolerances:
    """Bandas de tolerancia como fracción del precio."""

    double_pivot: float = 0.002
    shoulders: float = 0.01
    wedge_range: float = 0.02
    triangle_touch: float = 0.003
    flag_pole: float = 0.02
    flag_range: float = 0.015
    cup_depth: float = 0.02
    cup_symmetry: float = 0.015


class PatternMatcher:
    """Detector de patrones sin estado: función pura de los closes."""

    LEVEL_WINDOW = 20

    def __init__(
        self,
        min_history: int = 50,
        tolerances: Optional[PatternTolerances] = None,
    ) -> None:
        # nunca menos que la ventana de la taza con asa (50)
        self._min_history = max(min_history, 50)
        self._tol = tolerances or PatternTolerances()

    # ════════════════════════════════════════════════════════════════
    #  PUNTO DE ENTRADA
    # ════════════════════════════════════════════════════════════════

    def match(self, closes: Sequence[float]) -> Optional[PatternMatch]:
        """Patrón de mayor prioridad, o None."""
        matches = self.scan(closes)
        if not matches:
            return None
        return max(matches, key=lambda m: PATTERN_PRIORITY[m.kind])

    def scan(self, closes: Sequence[float]) -> List[PatternMatch]:
        """Todos los patrones que disparan sobre los closes dados."""
        if len(closes) < self._min_history:
            return []
        values = [float(c) for c in closes]
        if not all(math.isfinite(v) for v in values):
            return []

        kinds: List[PatternKind] = []
        kinds.extend(self._double_pivots(values))
        kinds.extend(self._head_shoulders(values))
        kinds.extend(self._wedges(values))
        kinds.extend(self._triangles(values))
        kinds.extend(self._flags(values))
        kinds.extend(self._cup_handle(values))

        if not kinds:
            return []

        window = values[-self.LEVEL_WINDOW:]
        low, high = min(window), max(window)
        return [
            PatternMatch(
                kind=kind,
                support=low,
                resistance=high,
                structure_low=low,
                structure_high=high,
            )
            for kind in kinds
        ]

    # ════════════════════════════════════════════════════════════════
    #  HEURÍSTICAS
    # ════════════════════════════════════════════════════════════════

    def _double_pivots(self, c: List[float]) -> List[PatternKind]:
        p1, p2, p3 = c[-5], c[-3], c[-1]
        close_enough = abs(p2 - p3) < p2 * self._tol.double_pivot
        if p1 < p2 and close_enough and p3 < p2:
            return [PatternKind.DOUBLE_TOP]
        if p1 > p2 and close_enough and p3 > p2:
            return [PatternKind.DOUBLE_BOTTOM]
        return []

    def _head_shoulders(self, c: List[float]) -> List[PatternKind]:
        left, head, right = c[-7], c[-5], c[-3]
        if abs(left - right) >= head * self._tol.shoulders:
            return []
        if left < head and right < head:
            return [PatternKind.HEAD_SHOULDERS]
        if left > head and right > head:
            return [PatternKind.INVERSE_HEAD_SHOULDERS]
        return []

    def _wedges(self, c: List[float]) -> List[PatternKind]:
        w = c[-10:]
        first_avg = sum(w[:5]) / 5
        last_avg = sum(w[5:]) / 5
        limit = first_avg * self._tol.wedge_range
        if last_avg > first_avg and (w[9] - w[0]) < limit:
            return [PatternKind.RISING_WEDGE]
        if last_avg < first_avg and (w[0] - w[9]) < limit:
            return [PatternKind.FALLING_WEDGE]
        return []

    def _triangles(self, c: List[float]) -> List[PatternKind]:
        w = c[-20:]
        high_line, low_line = max(w), min(w)
        close = c[-1]
        found = []
        if w[0] < w[9] < w[19] and abs(close - high_line) < high_line * self._tol.triangle_touch:
            found.append(PatternKind.ASCENDING_TRIANGLE)
        if w[0] > w[9] > w[19] and abs(close - low_line) < low_line * self._tol.triangle_touch:
            found.append(PatternKind.DESCENDING_TRIANGLE)
        return found

    def _flags(self, c: List[float]) -> List[PatternKind]:
        w = c[-30:]
        pole_start, pole_end = w[0], w[10]
        consolidating = abs(w[29] - pole_end) < pole_start * self._tol.flag_range
        if not consolidating:
            return []
        if pole_end >= pole_start * (1 + self._tol.flag_pole):
            return [PatternKind.BULL_FLAG]
        if pole_end <= pole_start * (1 - self._tol.flag_pole):
            return [PatternKind.BEAR_FLAG]
        return []

    def _cup_handle(self, c: List[float]) -> List[PatternKind]:
        w = c[-50:]
        left, mid, right = w[0], w[25], w[49]
        depth = 1 - self._tol.cup_depth
        cup_shape = mid < left * depth and mid < right * depth
        symmetric = abs(left - right) < left * self._tol.cup_symmetry
        if cup_shape and symmetric:
            return [PatternKind.CUP_HANDLE]
        return []
