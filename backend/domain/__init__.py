"""
KlineSignal – Domain Layer
============================
Núcleo puro del sistema. CERO dependencias de frameworks.

Este módulo contiene:
- entities/: Entidades de negocio (Candle, Signal)
- value_objects/: Objetos inmutables (PatternMatch)
- services/: Servicios de dominio puros (CandleBuffer, IndicatorCalculator,
  CrossDetector, PatternMatcher, RiskCalculator, SignalEngine)
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de:
- infrastructure/
- presentation/
- application/
- Frameworks externos (FastAPI, httpx, websockets, etc.)
"""

from backend.domain.entities.candle import Candle
from backend.domain.entities.signal import Decision, Signal
from backend.domain.value_objects.pattern_match import PatternKind, PatternMatch

__all__ = [
    "Candle",
    "Decision",
    "Signal",
    "PatternKind",
    "PatternMatch",
]
