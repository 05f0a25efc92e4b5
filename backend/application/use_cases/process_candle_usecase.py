"""
KlineSignal – Process Candle Use Case
=======================================
Caso de uso central: consume velas del EventBus, mantiene el buffer del
contexto activo y dispara el Signal Engine en cada cierre.

FLUJO:
  EventBus (kline topic)
       │
       ▼
  ProcessCandleUseCase.start()  ◄── loop consumiendo de su Queue
       │
       ├── símbolo ≠ contexto activo → descartar (cambio en curso)
       ├── EventBus.publish("price")            → SIEMPRE
       │
       ├── is_final=False → buffer.apply_provisional()   (sin evaluación)
       │
       └── is_final=True  → buffer.apply_final()
                ├── SignalEngine.evaluate(buffer)
                ├── context.record(signal)
                ├── EventBus.publish("signal")
                └── EventBus.publish("pattern")  → solo si hubo patrón

CÓMO SE EVITA REPAINTING:
- Las velas provisionales solo actualizan el precio mostrado; jamás
  producen una señal.
- Una vela cerrada se evalúa exactamente una vez.

UN SOLO ESCRITOR:
- Este use case es el único que muta el buffer del contexto activo
  durante el streaming. El cambio de instrumento reemplaza el contexto
  entero en lugar de vaciar el buffer.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from backend.application.ports.event_publisher import (
    IEventPublisher,
    PATTERN_TOPIC,
    PRICE_TOPIC,
    SIGNAL_TOPIC,
)
from backend.application.ports.market_data_provider import KLINE_TOPIC
from backend.application.state.engine_state import EngineState
from backend.domain.entities.candle import Candle
from backend.domain.entities.signal import Signal
from backend.domain.services.signal_engine import SignalEngine
from backend.shared.logging.logger import get_logger

logger = get_logger("process_candle")


def price_payload(candle: Candle) -> dict:
    """Payload del evento "price" (cada actualización del stream)."""
    return {
        "symbol": candle.symbol,
        "t": candle.open_time,
        "close": candle.close,
        "is_final": candle.is_final,
    }


class ProcessCandleUseCase:
    """Consume velas crudas y produce eventos price / signal / pattern."""

    def __init__(
        self,
        event_bus: IEventPublisher,
        state: EngineState,
        signal_engine: SignalEngine,
    ) -> None:
        self._event_bus = event_bus
        self._state = state
        self._signal_engine = signal_engine
        self._queue: Optional[asyncio.Queue] = None
        self._running = False
        self._processed_count = 0
        self._dropped_count = 0

    async def start(self) -> None:
        """Suscribirse al EventBus y lanzar loop de procesamiento."""
        self._queue = await self._event_bus.subscribe(KLINE_TOPIC, "process_candle_usecase")
        self._running = True
        logger.info("ProcessCandleUseCase iniciado, consumiendo tópico '%s'", KLINE_TOPIC)
        await self._run()

    async def stop(self) -> None:
        self._running = False
        logger.info(
            "ProcessCandleUseCase detenido. Velas procesadas: %d, descartadas: %d",
            self._processed_count, self._dropped_count,
        )

    async def _run(self) -> None:
        """
        Loop principal. Espera en queue.get() con timeout para permitir
        shutdown limpio. Un error en un evento se registra y el loop sigue.
        """
        assert self._queue is not None

        while self._running:
            try:
                try:
                    candle: Candle = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                await self.handle(candle)

            except asyncio.CancelledError:
                logger.info("ProcessCandleUseCase cancelado")
                break
            except Exception as e:
                logger.error("Error procesando vela: %s", e, exc_info=True)
                continue

    # ════════════════════════════════════════════════════════════════
    #  PROCESAMIENTO DE UNA VELA
    # ════════════════════════════════════════════════════════════════

    async def handle(self, candle: Candle) -> Optional[Signal]:
        """
        Procesar una actualización del stream.

        Returns:
            La Signal generada si la vela cerró, None en otro caso.
        """
        context = self._state.context
        if context is None or candle.symbol != context.instrument:
            # Vela de un símbolo que ya no está activo (o aún no lo está)
            self._dropped_count += 1
            logger.debug(
                "Vela de '%s' descartada (activo: %s)",
                candle.symbol, context.instrument if context else None,
            )
            return None

        self._processed_count += 1
        context.candles_received += 1
        await self._event_bus.publish(PRICE_TOPIC, price_payload(candle))

        if not candle.is_final:
            stored = context.buffer.apply_provisional(candle)
            if not stored:
                logger.debug(
                    "Provisional ignorada [%s] t=%d", candle.symbol, candle.open_time,
                )
            return None

        context.buffer.apply_final(candle)
        context.candles_closed += 1

        signal = self._signal_engine.evaluate(context.buffer, context.instrument)
        context.record(signal)

        await self._event_bus.publish(SIGNAL_TOPIC, signal)
        if signal.pattern is not None:
            await self._event_bus.publish(PATTERN_TOPIC, signal.pattern)
        return signal

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "processed": self._processed_count,
            "dropped": self._dropped_count,
        }
