"""
KlineSignal – Switch Instrument Use Case
==========================================
Carga de históricos y (re)construcción del contexto activo.

Tres entradas:
  initialize(symbol) → arranque: históricos + stream
  switch(symbol)     → petición del frontend (POST /api/instrument)
  resync(symbol)     → hook del proveedor tras una reconexión

PROCEDIMIENTO DE CAMBIO:
  1. Validar formato del símbolo          → InvalidInstrumentError
  2. Rechazar si ya hay un cambio en curso → SwitchInProgressError
  3. Detener el stream actual
  4. Descargar históricos (con timeout)
       └── fallo → completar el buffer anterior con las velas cerradas
                   durante la pausa, reanudar su stream, MarketDataError
  5. Construir EngineContext NUEVO + señal inicial
  6. Reemplazar contexto, publicar notice + signal
  7. Arrancar el stream del nuevo símbolo

CONCURRENCIA:
- El chequeo de "cambio en curso" se hace ANTES de cualquier await, así
  una segunda petición concurrente se rechaza en lugar de encolarse.
- Las velas del símbolo anterior que aún estén en la cola se descartan
  en ProcessCandleUseCase porque su símbolo ya no coincide.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from backend.application.ports.event_publisher import (
    IEventPublisher,
    NOTICE_TOPIC,
    SIGNAL_TOPIC,
)
from backend.application.ports.market_data_provider import IMarketDataProvider
from backend.application.state.engine_state import EngineContext, EngineState
from backend.domain.entities.candle import Candle
from backend.domain.entities.signal import Signal
from backend.domain.exceptions import (
    InvalidInstrumentError,
    MarketDataError,
    SwitchInProgressError,
)
from backend.domain.services.candle_buffer import CandleBuffer
from backend.domain.services.signal_engine import SignalEngine
from backend.shared.config.settings import normalize_symbol
from backend.shared.logging.logger import get_logger

logger = get_logger("switch_instrument")


class SwitchInstrumentUseCase:
    """Construye y reemplaza el EngineContext del instrumento activo."""

    def __init__(
        self,
        provider: IMarketDataProvider,
        event_bus: IEventPublisher,
        state: EngineState,
        signal_engine: SignalEngine,
        *,
        interval: str = "1m",
        historical_limit: int = 300,
        buffer_capacity: int = 500,
        seed_with_provisional: bool = False,
        fetch_timeout: float = 10.0,
    ) -> None:
        self._provider = provider
        self._event_bus = event_bus
        self._state = state
        self._signal_engine = signal_engine
        self._interval = interval
        self._historical_limit = historical_limit
        self._buffer_capacity = buffer_capacity
        self._seed_with_provisional = seed_with_provisional
        self._fetch_timeout = fetch_timeout
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> str:
        return self._interval

    # ════════════════════════════════════════════════════════════════
    #  ARRANQUE
    # ════════════════════════════════════════════════════════════════

    async def initialize(self, symbol: str) -> Signal:
        """
        Cargar el instrumento inicial y arrancar el stream.

        Un fallo de históricos NO es fatal: se instala un buffer vacío
        (la señal será HOLD "insufficient history") y el stream lo irá
        llenando.
        """
        normalized = self._validate(symbol)
        async with self._lock:
            try:
                candles = await self._fetch(normalized)
            except MarketDataError as e:
                logger.error("Históricos iniciales de '%s' no disponibles: %s", normalized, e)
                candles = []

            signal = await self._install(normalized, candles)
            await self._provider.start_stream(normalized, self._interval)
            return signal

    # ════════════════════════════════════════════════════════════════
    #  CAMBIO DE INSTRUMENTO
    # ════════════════════════════════════════════════════════════════

    async def switch(self, symbol: str) -> Signal:
        """
        Cambiar el instrumento activo.

        Raises:
            InvalidInstrumentError: formato de símbolo inválido
            SwitchInProgressError: ya hay otro cambio en curso
            MarketDataError: no se pudieron cargar los históricos
        """
        normalized = self._validate(symbol)

        if self._lock.locked() or self._state.switch_in_progress:
            raise SwitchInProgressError(
                f"Ya hay un cambio de instrumento en curso ({self._state.pending_symbol})",
                pending_symbol=self._state.pending_symbol,
            )

        async with self._lock:
            self._state.begin_switch(normalized)
            try:
                previous = self._state.context
                logger.info(
                    "🔀 Cambio de instrumento: %s → %s",
                    previous.instrument if previous else None, normalized,
                )

                await self._provider.stop_stream()
                try:
                    candles = await self._fetch(normalized)
                except MarketDataError:
                    if previous is not None:
                        logger.warning(
                            "Cambio a '%s' abortado, reanudando stream de '%s'",
                            normalized, previous.instrument,
                        )
                        await self._catch_up(previous)
                        await self._provider.start_stream(previous.instrument, previous.interval)
                    raise

                signal = await self._install(normalized, candles)
                await self._event_bus.publish(NOTICE_TOPIC, {
                    "event": "instrument_switched",
                    "symbol": normalized,
                    "previous": previous.instrument if previous else None,
                    "interval": self._interval,
                    "candles": len(candles),
                })
                await self._provider.start_stream(normalized, self._interval)
                return signal
            finally:
                self._state.end_switch()

    # ════════════════════════════════════════════════════════════════
    #  RESYNC TRAS RECONEXIÓN
    # ════════════════════════════════════════════════════════════════

    async def resync(self, symbol: str) -> Optional[Signal]:
        """
        Recargar históricos tras una reconexión del stream.

        Se ignora si hay un cambio en curso o si el símbolo ya no es el
        activo. Si la descarga falla se conserva el buffer existente.
        """
        if self._lock.locked() or symbol != self._state.instrument:
            logger.debug("Resync de '%s' omitido", symbol)
            return None

        async with self._lock:
            try:
                candles = await self._fetch(symbol)
            except MarketDataError as e:
                logger.warning("Resync de '%s' fallido, se conserva el buffer: %s", symbol, e)
                return None

            signal = await self._install(symbol, candles)
            await self._event_bus.publish(NOTICE_TOPIC, {
                "event": "resync",
                "symbol": symbol,
                "interval": self._interval,
                "candles": len(candles),
            })
            return signal

    # ════════════════════════════════════════════════════════════════
    #  HELPERS
    # ════════════════════════════════════════════════════════════════

    @staticmethod
    def _validate(symbol: str) -> str:
        normalized = normalize_symbol(symbol)
        if normalized is None:
            raise InvalidInstrumentError(f"Símbolo inválido: {symbol!r}", symbol=symbol)
        return normalized

    async def _fetch(self, symbol: str) -> List[Candle]:
        """Descarga de históricos con timeout → MarketDataError."""
        try:
            return await asyncio.wait_for(
                self._provider.fetch_history(symbol, self._interval, self._historical_limit),
                timeout=self._fetch_timeout,
            )
        except asyncio.TimeoutError as e:
            raise MarketDataError(
                f"Timeout ({self._fetch_timeout:.0f}s) descargando históricos de '{symbol}'",
                symbol=symbol,
            ) from e
        except MarketDataError:
            raise
        except Exception as e:
            logger.error(
                "Error inesperado del proveedor con '%s': %s", symbol, e, exc_info=True,
            )
            raise MarketDataError(
                f"Error inesperado descargando históricos de '{symbol}': {e}", symbol=symbol,
            ) from e

    async def _catch_up(self, context: EngineContext) -> None:
        """
        Añadir al contexto existente las velas que cerraron mientras su
        stream estuvo detenido. El contexto se conserva (misma instancia);
        si la descarga falla se deja tal cual.
        """
        try:
            candles = await self._fetch(context.instrument)
        except MarketDataError as e:
            logger.warning(
                "No se pudo completar el buffer de '%s': %s", context.instrument, e,
            )
            return

        added = context.buffer.merge_history(
            c for c in candles if c.symbol == context.instrument
        )
        if not added:
            return

        logger.info("%d velas recuperadas para '%s'", added, context.instrument)
        signal = self._signal_engine.evaluate(context.buffer, context.instrument)
        context.record(signal)
        await self._event_bus.publish(SIGNAL_TOPIC, signal)

    async def _install(self, symbol: str, candles: List[Candle]) -> Signal:
        """Construir el contexto nuevo, evaluar y reemplazar el activo."""
        buffer = CandleBuffer.from_history(
            (c for c in candles if c.symbol == symbol),
            self._buffer_capacity,
            seed_with_provisional=self._seed_with_provisional,
        )
        context = EngineContext(instrument=symbol, interval=self._interval, buffer=buffer)

        signal = self._signal_engine.evaluate(buffer, symbol)
        context.record(signal)
        self._state.replace(context)

        await self._event_bus.publish(SIGNAL_TOPIC, signal)
        return signal
