"""
KlineSignal – Main Application Entry Point
============================================
Orquesta todos los componentes: Binance Stream + Candle Buffer +
Indicadores + Patrones + Signal Engine + broadcast WebSocket.

ARQUITECTURA DE ARRANQUE:
  1. Configurar logging
  2. Crear el container (Settings validados → servicios)
  3. FastAPI lifespan startup:
     a. Iniciar WebSocketManager (broadcast a clientes)
     b. Iniciar ProcessCandleUseCase (consumer de velas)
     c. Registrar resync hook en el proveedor
     d. Cargar históricos del instrumento inicial + arrancar stream
  4. FastAPI lifespan shutdown:
     a. Detener todo en orden inverso

FLUJO DE DATOS:
  Binance WS → BinanceAdapter → EventBus(kline) → ProcessCandleUseCase
       → CandleBuffer (cerradas + provisional)
       → [cierre] SignalEngine → IndicatorCalculator (EMA/RSI)
                               → CrossDetector (cruce confirmado)
                               → PatternMatcher + RiskCalculator
       → EventBus(price|signal|pattern|notice) → WebSocketManager → clientes

  uvicorn backend.main:app --host 0.0.0.0 --port 5000
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.container import Container, init_container
from backend.presentation.api.routes import init_routes, router
from backend.shared.config.settings import settings as default_settings
from backend.shared.logging.logger import get_logger, setup_logging

# ─── Logging ────────────────────────────────────────────────────────────
setup_logging(debug=default_settings.debug)
logger = get_logger("main")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Construir la app FastAPI sobre un container (inyectable en tests)."""
    container = container or init_container()
    settings = container.settings
    background_tasks: list[asyncio.Task] = []

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup/shutdown lifecycle de la aplicación.
        Todas las coroutines de larga duración se lanzan como tasks.
        """
        logger.info("=" * 60)
        logger.info("  KlineSignal v0.1")
        logger.info("  Instrumento: %s  (intervalo %s)", settings.symbol, settings.interval)
        logger.info("  Disponibles: %s", ", ".join(settings.available_instruments))
        logger.info("  Históricos: %d velas, buffer máximo: %d",
                    settings.historical_limit, settings.max_candles_buffer)
        logger.info("  Indicadores: EMA %d/%d, RSI %d",
                    settings.ema_short_period, settings.ema_long_period, settings.rsi_period)
        logger.info("  Política: %s (confirmación de cruce: %s), riesgo: %s",
                    settings.signal_policy, settings.confirm_crosses, settings.risk_profile)
        logger.info("=" * 60)

        provider = container.market_data_provider
        switch = container.switch_instrument_usecase
        process_candle = container.process_candle_usecase

        # Inyectar dependencias al router (desde container)
        init_routes(
            container.ws_manager,
            container.engine_state,
            provider,
            signal_engine=container.signal_engine,
            switch_usecase=switch,
            available_instruments=settings.available_instruments,
        )

        # Iniciar WebSocket Manager (broadcast loops)
        await container.ws_manager.start()

        # Iniciar ProcessCandleUseCase como background task
        background_tasks.append(asyncio.create_task(
            process_candle.start(), name="process-candle-usecase",
        ))

        # Resync de históricos tras cada reconexión del stream
        provider.set_resync_hook(switch.resync)

        # Históricos + stream del instrumento inicial
        await switch.initialize(settings.symbol)

        logger.info("✓ Todos los componentes iniciados correctamente")

        yield  # ← La app está corriendo aquí

        # ── SHUTDOWN ──
        logger.info("Iniciando shutdown...")

        await provider.stop_stream()
        await process_candle.stop()
        await container.ws_manager.stop()

        for task in background_tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        await container.event_publisher.unsubscribe_all()
        logger.info("✓ Shutdown completo")

    app = FastAPI(
        title="KlineSignal",
        description="Señales BUY/SELL/HOLD en tiempo real a partir de velas de Binance",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS para clientes locales
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # En producción: restringir a dominios específicos
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Entry point de consola: levantar uvicorn con host/port de Settings."""
    uvicorn.run(
        "backend.main:app",
        host=default_settings.host,
        port=default_settings.port,
        log_level="debug" if default_settings.debug else "info",
    )


if __name__ == "__main__":
    run()
