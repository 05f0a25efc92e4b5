"""
KlineSignal – API Routes (FastAPI)
====================================
Endpoints REST y WebSocket para los clientes.

Endpoints disponibles:
  WS   /ws                → streaming en tiempo real (price/signal/pattern/notice)
  GET  /api/health        → health check + estado del stream
  GET  /api/signal        → última señal
  GET  /api/instruments   → instrumentos disponibles + activo
  POST /api/instrument    → cambiar instrumento activo
  GET  /api/candles       → últimas N velas del buffer
  GET  /api/indicators    → indicadores de la última vela cerrada

ERRORES:
  Las DomainError se traducen a HTTP con el cuerpo de to_dict():
    INVALID_INSTRUMENT → 400
    SWITCH_IN_PROGRESS → 409
    MARKET_DATA_ERROR  → 502
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from backend.domain.exceptions import (
    DomainError,
    InvalidInstrumentError,
    MarketDataError,
    SwitchInProgressError,
)
from backend.presentation.api.schemas import InstrumentRequest
from backend.shared.logging.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()

# Referencias a componentes inyectados desde main.py
_ws_manager = None
_state = None
_provider = None
_signal_engine = None
_switch_usecase = None
_available_instruments: List[str] = []

ERROR_STATUS = {
    InvalidInstrumentError: 400,
    SwitchInProgressError: 409,
    MarketDataError: 502,
}


def init_routes(
    ws_manager,
    state,
    provider,
    signal_engine=None,
    switch_usecase=None,
    available_instruments: Optional[List[str]] = None,
) -> None:
    """Inyectar dependencias desde main.py al arrancar."""
    global _ws_manager, _state, _provider
    global _signal_engine, _switch_usecase, _available_instruments
    _ws_manager = ws_manager
    _state = state
    _provider = provider
    _signal_engine = signal_engine
    _switch_usecase = switch_usecase
    _available_instruments = list(available_instruments or [])


def error_response(error: DomainError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(error), 400)
    return JSONResponse(status_code=status_code, content=error.to_dict())


# ─── WebSocket endpoint para streaming ───────────────────────────────

@router.websocket("/ws")
async def market_stream(websocket: WebSocket) -> None:
    """
    WebSocket endpoint principal.
    El broadcast lo maneja WebSocketManager; este handler solo gestiona
    el ciclo de vida de la conexión.
    """
    if _ws_manager is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    await _ws_manager.connect(websocket)
    try:
        while True:
            try:
                data = await websocket.receive_text()
                logger.debug("Mensaje de cliente WS: %s", data[:100])
            except WebSocketDisconnect:
                break
    finally:
        _ws_manager.disconnect(websocket)


# ─── REST endpoints de estado ──────────────────────────────────────────

@router.get("/api/health")
async def health_check() -> dict:
    """Health check para monitoreo."""
    context = _state.context if _state else None
    return {
        "status": "ok",
        "service": "klinesignal",
        "instrument": context.instrument if context else None,
        "interval": context.interval if context else None,
        "buffer": context.buffer.snapshot() if context else None,
        "stream": _provider.stats if _provider else {},
        "ws_clients": _ws_manager.client_count if _ws_manager else 0,
        "switch_in_progress": _state.switch_in_progress if _state else False,
        "signal_engine": _signal_engine.stats if _signal_engine else {},
    }


@router.get("/api/signal")
async def get_signal() -> dict:
    """Última señal generada (HOLD incluido)."""
    signal = _state.last_signal if _state else None
    if signal is None:
        return {"status": "no_signal"}
    return signal.to_dict()


@router.get("/api/candles")
async def get_candles(count: int = Query(default=50, ge=1, le=1000)) -> dict:
    """Últimas N velas del buffer (cerradas + provisional)."""
    context = _state.context if _state else None
    if context is None:
        return {"symbol": None, "count": 0, "candles": []}

    candles = context.buffer.candles(count)
    return {
        "symbol": context.instrument,
        "interval": context.interval,
        "count": len(candles),
        "candles": [c.to_dict() for c in candles],
    }


@router.get("/api/indicators")
async def get_indicators() -> dict:
    """EMA corta, EMA larga y RSI de la última vela cerrada."""
    context = _state.context if _state else None
    if context is None or _signal_engine is None:
        return {"symbol": None, "ready": False, "indicators": None}

    snapshot = _signal_engine.indicator_snapshot(context.buffer)
    return {
        "symbol": context.instrument,
        "ready": snapshot.is_ready if snapshot else False,
        "indicators": snapshot.to_dict() if snapshot else None,
    }


# ─── Instrumento activo ────────────────────────────────────────────────

@router.get("/api/instruments")
async def get_instruments() -> dict:
    """Instrumentos ofrecidos y el activo."""
    return {
        "active": _state.instrument if _state else None,
        "available": _available_instruments,
        "switch_in_progress": _state.switch_in_progress if _state else False,
    }


@router.post("/api/instrument")
async def set_instrument(body: InstrumentRequest):
    """
    Cambiar el instrumento activo.
    Responde tras cargar históricos y emitir la señal inicial.
    """
    if _switch_usecase is None:
        return JSONResponse(
            status_code=503,
            content={"error": "NOT_READY", "message": "Servidor no inicializado"},
        )

    try:
        signal = await _switch_usecase.switch(body.symbol)
    except DomainError as e:
        logger.warning("Cambio de instrumento rechazado [%s]: %s", e.code, e.message)
        return error_response(e)

    return {
        "status": "ok",
        "symbol": signal.instrument,
        "interval": _switch_usecase.interval,
        "signal": signal.to_dict(),
    }
