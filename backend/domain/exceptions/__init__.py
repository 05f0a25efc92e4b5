"""Domain exceptions."""
from backend.domain.exceptions.domain_errors import (
    DomainError,
    InvalidInstrumentError,
    MalformedMessageError,
    MarketDataError,
    SwitchInProgressError,
)

__all__ = [
    "DomainError",
    "InvalidInstrumentError",
    "MalformedMessageError",
    "MarketDataError",
    "SwitchInProgressError",
]
