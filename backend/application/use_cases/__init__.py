"""Application use cases - Business logic orchestration."""

from backend.application.use_cases.process_candle_usecase import (
    ProcessCandleUseCase,
    price_payload,
)
from backend.application.use_cases.switch_instrument_usecase import (
    SwitchInstrumentUseCase,
)

__all__ = [
    "ProcessCandleUseCase",
    "SwitchInstrumentUseCase",
    "price_payload",
]
