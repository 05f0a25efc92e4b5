"""External systems - Binance market data and messaging."""

from backend.infrastructure.external.binance_adapter import (
    BinanceAdapter,
    parse_kline_message,
    parse_kline_row,
)
from backend.infrastructure.external.event_bus_adapter import EventBusAdapter

__all__ = [
    "BinanceAdapter",
    "EventBusAdapter",
    "parse_kline_message",
    "parse_kline_row",
]
