"""Tests de arranque, cambio de instrumento y resync tras reconexión."""

from __future__ import annotations

import asyncio

import pytest

from backend.application.ports.event_publisher import NOTICE_TOPIC, SIGNAL_TOPIC
from backend.application.use_cases.process_candle_usecase import ProcessCandleUseCase
from backend.application.use_cases.switch_instrument_usecase import SwitchInstrumentUseCase
from backend.domain.entities.signal import Decision
from backend.domain.exceptions import (
    InvalidInstrumentError,
    MarketDataError,
    SwitchInProgressError,
)
from tests.factories import CONFIRMING_CLOSE, V_SHAPE_CLOSES, make_candle

pytestmark = pytest.mark.integration


@pytest.fixture
def switch(fake_provider, event_bus, state, engine) -> SwitchInstrumentUseCase:
    return SwitchInstrumentUseCase(
        fake_provider,
        event_bus,
        state,
        engine,
        interval="1m",
        historical_limit=300,
        buffer_capacity=500,
        fetch_timeout=1.0,
    )


class TestInitialize:
    @pytest.mark.asyncio
    async def test_loads_history_and_starts_stream(self, switch, fake_provider, event_bus, state):
        signals = await event_bus.subscribe(SIGNAL_TOPIC, "t")

        signal = await switch.initialize("ETHUSDT")

        assert state.instrument == "ethusdt"
        assert state.context.buffer.final_count == len(V_SHAPE_CLOSES)
        assert signal.decision is Decision.HOLD
        assert "pending confirmation" in signal.reason
        assert signals.get_nowait() is signal
        assert fake_provider.stream_calls == [("start", "ethusdt")]

    @pytest.mark.asyncio
    async def test_failed_history_leaves_empty_buffer(self, switch, fake_provider, state):
        fake_provider.failing.add("ethusdt")

        signal = await switch.initialize("ethusdt")

        assert state.context.buffer.final_count == 0
        assert signal.decision is Decision.HOLD
        assert signal.reason.startswith("insufficient history")
        assert fake_provider.stream_symbol == "ethusdt"

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_not_fatal(self, switch, fake_provider, state):
        fake_provider.raising["ethusdt"] = KeyError(0)

        signal = await switch.initialize("ethusdt")

        assert state.context.buffer.final_count == 0
        assert signal.reason.startswith("insufficient history")
        assert fake_provider.stream_symbol == "ethusdt"


class TestSwitch:
    @pytest.mark.asyncio
    async def test_buffer_holds_only_new_instrument(self, switch, fake_provider, event_bus, state):
        await switch.initialize("ethusdt")
        notices = await event_bus.subscribe(NOTICE_TOPIC, "t")

        signal = await switch.switch("BTCUSDT")

        assert state.instrument == "btcusdt"
        assert signal.instrument == "btcusdt"
        assert state.context.buffer.final_count == 30
        assert all(c.symbol == "btcusdt" for c in state.context.buffer)
        assert fake_provider.stream_calls[-2:] == [("stop", "ethusdt"), ("start", "btcusdt")]

        notice = notices.get_nowait()
        assert notice["event"] == "instrument_switched"
        assert notice["previous"] == "ethusdt"
        assert notice["symbol"] == "btcusdt"
        assert not state.switch_in_progress

    @pytest.mark.asyncio
    async def test_stale_candles_dropped_after_switch(self, switch, event_bus, state, engine):
        await switch.initialize("ethusdt")
        await switch.switch("btcusdt")
        process = ProcessCandleUseCase(event_bus, state, engine)

        result = await process.handle(make_candle(CONFIRMING_CLOSE, len(V_SHAPE_CLOSES)))

        assert result is None
        assert all(c.symbol == "btcusdt" for c in state.context.buffer)

    @pytest.mark.asyncio
    async def test_invalid_symbol_rejected_without_state_change(self, switch, fake_provider, state):
        await switch.initialize("ethusdt")
        calls_before = list(fake_provider.stream_calls)

        with pytest.raises(InvalidInstrumentError):
            await switch.switch("eth/usdt")

        assert state.instrument == "ethusdt"
        assert fake_provider.stream_calls == calls_before

    @pytest.mark.asyncio
    async def test_concurrent_switch_rejected(self, switch, fake_provider, state):
        await switch.initialize("ethusdt")
        fake_provider.gate = asyncio.Event()

        first = asyncio.create_task(switch.switch("btcusdt"))
        await asyncio.sleep(0.01)
        assert state.switch_in_progress

        with pytest.raises(SwitchInProgressError) as exc_info:
            await switch.switch("solusdt")
        assert exc_info.value.pending_symbol == "btcusdt"

        fake_provider.gate.set()
        signal = await asyncio.wait_for(first, timeout=2.0)
        assert signal.instrument == "btcusdt"
        assert state.instrument == "btcusdt"
        assert "solusdt" not in fake_provider.fetch_calls

    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_previous_context(self, switch, fake_provider, state):
        await switch.initialize("ethusdt")
        previous = state.context
        fake_provider.failing.add("solusdt")

        with pytest.raises(MarketDataError):
            await switch.switch("solusdt")

        assert state.context is previous
        assert fake_provider.stream_calls[-1] == ("start", "ethusdt")
        assert not state.switch_in_progress

    @pytest.mark.asyncio
    async def test_failed_switch_recovers_candles_closed_during_pause(
        self, switch, fake_provider, event_bus, state,
    ):
        await switch.initialize("ethusdt")
        previous = state.context
        signals = await event_bus.subscribe(SIGNAL_TOPIC, "t")
        fake_provider.history["ethusdt"].append(
            make_candle(CONFIRMING_CLOSE, len(V_SHAPE_CLOSES))
        )
        fake_provider.failing.add("solusdt")

        with pytest.raises(MarketDataError):
            await switch.switch("solusdt")

        assert state.context is previous
        assert state.context.buffer.final_count == len(V_SHAPE_CLOSES) + 1
        assert state.last_signal.decision is Decision.BUY
        assert signals.get_nowait() is state.last_signal
        assert fake_provider.stream_calls[-1] == ("start", "ethusdt")

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_market_data_error(
        self, switch, fake_provider, state,
    ):
        await switch.initialize("ethusdt")
        previous = state.context
        fake_provider.raising["solusdt"] = KeyError(0)

        with pytest.raises(MarketDataError):
            await switch.switch("solusdt")

        assert state.context is previous
        assert fake_provider.stream_symbol == "ethusdt"
        assert not state.switch_in_progress

    @pytest.mark.asyncio
    async def test_fetch_timeout_is_market_data_error(self, fake_provider, event_bus, state, engine):
        switch = SwitchInstrumentUseCase(
            fake_provider, event_bus, state, engine, fetch_timeout=0.05,
        )
        await switch.initialize("ethusdt")
        fake_provider.gate = asyncio.Event()

        with pytest.raises(MarketDataError):
            await switch.switch("btcusdt")
        assert state.instrument == "ethusdt"


class TestResync:
    @pytest.mark.asyncio
    async def test_resync_rebuilds_buffer(self, switch, fake_provider, event_bus, state):
        await switch.initialize("ethusdt")
        notices = await event_bus.subscribe(NOTICE_TOPIC, "t")
        fake_provider.history["ethusdt"].append(
            make_candle(CONFIRMING_CLOSE, len(V_SHAPE_CLOSES))
        )

        signal = await switch.resync("ethusdt")

        assert signal.decision is Decision.BUY
        assert state.context.buffer.final_count == len(V_SHAPE_CLOSES) + 1
        assert notices.get_nowait()["event"] == "resync"

    @pytest.mark.asyncio
    async def test_resync_of_inactive_symbol_ignored(self, switch, state):
        await switch.initialize("ethusdt")
        context = state.context

        assert await switch.resync("btcusdt") is None
        assert state.context is context

    @pytest.mark.asyncio
    async def test_failed_resync_keeps_buffer(self, switch, fake_provider, state):
        await switch.initialize("ethusdt")
        context = state.context
        fake_provider.failing.add("ethusdt")

        assert await switch.resync("ethusdt") is None
        assert state.context is context
