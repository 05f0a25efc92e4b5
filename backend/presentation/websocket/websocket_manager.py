"""
KlineSignal – WebSocket Manager (broadcast a clientes)
========================================================
Gestiona conexiones WebSocket de clientes y les envía los eventos del
motor en tiempo real.

ARQUITECTURA:
  EventBus ──(price)───▸ WSManager._broadcast_loop()
  EventBus ──(signal)──▸ WSManager._broadcast_loop()
  EventBus ──(pattern)─▸ WSManager._broadcast_loop()
  EventBus ──(notice)──▸ WSManager._broadcast_loop()
       │
       ▼
  [Cliente WS 1, Cliente WS 2, ...]   {"type": kind, "data": payload}

NO BLOQUEA EL LOOP PRINCIPAL:
- Cada tópico tiene su propio task de broadcast.
- El envío a cada cliente usa asyncio.wait_for con timeout para evitar
  que un cliente lento congele el broadcast.
- Un cliente que falla se elimina sin afectar a los demás.

AL CONECTAR:
- El cliente recibe inmediatamente la última Signal (si existe), así no
  espera al próximo cierre de vela para pintar el estado.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, List, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from backend.application.ports.event_publisher import IEventPublisher, PUBLISH_TOPICS
from backend.application.state.engine_state import EngineState
from backend.shared.logging.logger import get_logger

logger = get_logger("ws_manager")

SEND_TIMEOUT = 5.0


def encode_event(event_type: str, data: Any) -> str:
    """
    Serializar un evento al formato de cable.
    Usa to_dict() si el objeto lo tiene (Signal, PatternMatch, Candle).
    """
    if hasattr(data, "to_dict"):
        payload_data = data.to_dict()
    elif isinstance(data, dict):
        payload_data = data
    else:
        payload_data = str(data)
    return json.dumps({"type": event_type, "data": payload_data})


class WebSocketManager:
    """Gestiona conexiones de clientes y broadcast de eventos."""

    def __init__(self, event_bus: IEventPublisher, state: Optional[EngineState] = None) -> None:
        self._event_bus = event_bus
        self._state = state
        self._clients: Set[WebSocket] = set()
        self._broadcast_tasks: List[asyncio.Task] = []
        self._messages_sent = 0

    async def start(self) -> None:
        """Lanzar un loop de broadcast por cada tópico publicado."""
        for topic in PUBLISH_TOPICS:
            queue = await self._event_bus.subscribe(topic, f"ws_broadcast_{topic}")
            self._broadcast_tasks.append(
                asyncio.create_task(
                    self._broadcast_loop(queue, topic),
                    name=f"ws-broadcast-{topic}",
                )
            )
        logger.info(
            "WebSocketManager iniciado – broadcast loops para %s", ", ".join(PUBLISH_TOPICS),
        )

    async def stop(self) -> None:
        """Cancelar broadcast y cerrar todos los clientes."""
        for task in self._broadcast_tasks:
            task.cancel()
        self._broadcast_tasks = []

        for ws in list(self._clients):
            try:
                await ws.close()
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.debug("Cliente ya cerrado: %s", e)
        self._clients.clear()
        logger.info("WebSocketManager detenido")

    async def connect(self, websocket: WebSocket) -> None:
        """Registrar un nuevo cliente y enviarle la última señal."""
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Cliente WS conectado. Total: %d", len(self._clients))

        last_signal = self._state.last_signal if self._state else None
        if last_signal is not None:
            await websocket.send_text(encode_event("signal", last_signal))

    def disconnect(self, websocket: WebSocket) -> None:
        """Des-registrar un cliente desconectado."""
        self._clients.discard(websocket)
        logger.info("Cliente WS desconectado. Total: %d", len(self._clients))

    async def broadcast(self, event_type: str, data: Any) -> None:
        """Enviar un evento a todos los clientes en paralelo."""
        if not self._clients:
            return

        payload = encode_event(event_type, data)
        disconnected: List[WebSocket] = []
        await asyncio.gather(
            *(self._safe_send(ws, payload, disconnected) for ws in list(self._clients))
        )

        for ws in disconnected:
            self._clients.discard(ws)
        if disconnected:
            logger.info(
                "%d cliente(s) WS eliminados tras fallo de envío. Total: %d",
                len(disconnected), len(self._clients),
            )

    async def _broadcast_loop(self, queue: asyncio.Queue, event_type: str) -> None:
        """
        Loop que consume eventos de una Queue y los envía a todos los clientes.
        Corre indefinidamente en su propio task.
        """
        try:
            while True:
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                try:
                    await self.broadcast(event_type, data)
                except (TypeError, ValueError) as e:
                    logger.error("Evento '%s' no serializable: %s", event_type, e)

        except asyncio.CancelledError:
            pass  # Shutdown limpio

    async def _safe_send(
        self, ws: WebSocket, payload: str, disconnected: List[WebSocket]
    ) -> None:
        """
        Enviar payload a un cliente con timeout.
        Si falla, marcar como desconectado para limpieza.
        """
        try:
            await asyncio.wait_for(ws.send_text(payload), timeout=SEND_TIMEOUT)
            self._messages_sent += 1
        except (WebSocketDisconnect, asyncio.TimeoutError, RuntimeError, OSError) as e:
            logger.debug("Envío fallido a cliente WS: %s", e)
            disconnected.append(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def stats(self) -> dict:
        return {
            "clients": len(self._clients),
            "messages_sent": self._messages_sent,
            "broadcast_loops": len(self._broadcast_tasks),
        }
