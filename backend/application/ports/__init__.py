"""Application ports - Interfaces to infrastructure."""
from backend.application.ports.event_publisher import IEventPublisher
from backend.application.ports.market_data_provider import IMarketDataProvider

__all__ = [
    "IEventPublisher",
    "IMarketDataProvider",
]
