"""
KlineSignal – Event Bus (asyncio.Queue fan-out)
=================================================
Implementación de IEventPublisher para desacoplar productores
(BinanceAdapter, use cases) de consumidores (ProcessCandleUseCase,
WebSocketManager).

Arquitectura:
  ┌──────────┐          ┌───────────┐
  │ Binance  │──kline──▸│ Event Bus │──▸ ProcessCandleUseCase
  │ Adapter  │          │ (fan-out) │
  └──────────┘          └───────────┘
  ProcessCandle ──price/signal/pattern──▸ Event Bus ──▸ WebSocketManager

CÓMO SE PROTEGE MEMORIA:
- Cada consumidor tiene su propia asyncio.Queue con maxsize configurable.
- Si un consumidor es lento y su cola se llena, se descarta el evento MÁS
  ANTIGUO de esa cola (drop-oldest): el productor nunca se bloquea.

THREAD-SAFETY:
- asyncio.Queue es safe dentro del mismo event loop, que es nuestro caso.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from backend.application.ports.event_publisher import IEventPublisher
from backend.shared.logging.logger import get_logger

logger = get_logger("event_bus")


class EventBusAdapter(IEventPublisher):
    """Fan-out event bus basado en asyncio.Queue."""

    def __init__(self, max_queue_size: int = 10_000) -> None:
        self._max_queue_size = max_queue_size
        # topic → lista de (queue, nombre_consumidor)
        self._subscribers: Dict[str, List[Tuple[asyncio.Queue, str]]] = {}
        self._lock = asyncio.Lock()
        self._published = 0
        self._dropped = 0

    async def subscribe(self, topic: str, consumer_name: str) -> asyncio.Queue:
        """
        Registrar un consumidor en un tópico.
        Retorna la Queue exclusiva de ese consumidor.
        """
        async with self._lock:
            queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
            self._subscribers.setdefault(topic, []).append((queue, consumer_name))
            logger.info(
                "Consumidor '%s' suscrito a tópico '%s' (max_queue=%d)",
                consumer_name, topic, self._max_queue_size,
            )
            return queue

    async def publish(self, topic: str, data: Any) -> None:
        """
        Publicar un evento a todos los suscriptores de un tópico.
        Política drop-oldest si la cola está llena.
        """
        self._published += 1
        for queue, consumer_name in self._subscribers.get(topic, []):
            if queue.full():
                try:
                    queue.get_nowait()
                    self._dropped += 1
                    logger.warning(
                        "Cola llena para '%s' en tópico '%s' – evento antiguo descartado",
                        consumer_name, topic,
                    )
                except asyncio.QueueEmpty:
                    pass
            try:
                queue.put_nowait(data)
            except asyncio.QueueFull:
                logger.error(
                    "No se pudo encolar evento para '%s' (tópico '%s')",
                    consumer_name, topic,
                )

    async def unsubscribe_all(self, topic: Optional[str] = None) -> None:
        """Desuscribir todos los consumidores (cleanup al shutdown)."""
        async with self._lock:
            if topic:
                self._subscribers.pop(topic, None)
                logger.info("Todos los suscriptores del tópico '%s' eliminados", topic)
            else:
                self._subscribers.clear()
                logger.info("Todos los suscriptores eliminados (shutdown)")

    @property
    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def stats(self) -> dict:
        return {
            "topics": sorted(self._subscribers),
            "subscribers": self.subscriber_count,
            "published": self._published,
            "dropped": self._dropped,
        }
