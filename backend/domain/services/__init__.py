"""Domain services - Pure business logic with no external dependencies."""
from backend.domain.services.candle_buffer import CandleBuffer
from backend.domain.services.cross_detector import CrossDetector, CrossDirection, CrossResult
from backend.domain.services.indicator_calculator import (
    IndicatorCalculator,
    IndicatorSeries,
    IndicatorSnapshot,
)
from backend.domain.services.pattern_matcher import PatternMatcher, PatternTolerances
from backend.domain.services.risk_calculator import (
    RiskCalculator,
    RiskLevels,
    RiskOffsets,
    resolve_offsets,
)
from backend.domain.services.signal_engine import SignalEngine

__all__ = [
    "CandleBuffer",
    "CrossDetector",
    "CrossDirection",
    "CrossResult",
    "IndicatorCalculator",
    "IndicatorSeries",
    "IndicatorSnapshot",
    "PatternMatcher",
    "PatternTolerances",
    "RiskCalculator",
    "RiskLevels",
    "RiskOffsets",
    "resolve_offsets",
    "SignalEngine",
]
