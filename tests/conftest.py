"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from backend.application.state.engine_state import EngineState
from backend.domain.services.signal_engine import SignalEngine
from backend.infrastructure.external.event_bus_adapter import EventBusAdapter
from tests.factories import (
    FakeMarketDataProvider,
    V_SHAPE_CLOSES,
    build_engine,
    make_candles,
)


@pytest.fixture
def engine() -> SignalEngine:
    """SignalEngine EMA 5/20, RSI 14, política threshold, confirmación activa."""
    return build_engine()


@pytest.fixture
def event_bus() -> EventBusAdapter:
    return EventBusAdapter(max_queue_size=100)


@pytest.fixture
def state() -> EngineState:
    return EngineState()


@pytest.fixture
def fake_provider() -> FakeMarketDataProvider:
    """Históricos: ethusdt en V (41 velas) y btcusdt creciente (30 velas)."""
    return FakeMarketDataProvider({
        "ethusdt": make_candles(V_SHAPE_CLOSES, "ethusdt"),
        "btcusdt": make_candles([50_000.0 + i for i in range(30)], "btcusdt"),
    })
