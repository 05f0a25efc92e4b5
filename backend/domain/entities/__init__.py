"""Domain entities."""
from backend.domain.entities.candle import Candle
from backend.domain.entities.signal import Decision, Signal

__all__ = ["Candle", "Decision", "Signal"]
