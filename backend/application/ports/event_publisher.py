"""
KlineSignal – Application Port: Event Publisher
=================================================
Interfaz para publicar eventos a los suscriptores (frontend).

Los use cases publican; la infraestructura decide CÓMO entregar
(asyncio.Queue fan-out → WebSocketManager).
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

# Tipos de evento de la superficie de publicación
PRICE_TOPIC = "price"
SIGNAL_TOPIC = "signal"
PATTERN_TOPIC = "pattern"
NOTICE_TOPIC = "notice"

PUBLISH_TOPICS = (PRICE_TOPIC, SIGNAL_TOPIC, PATTERN_TOPIC, NOTICE_TOPIC)


class IEventPublisher(ABC):
    """Interfaz de publicación por tópicos con colas por consumidor."""

    @abstractmethod
    async def publish(self, topic: str, data: Any) -> None:
        """
        Publica un evento a un tópico.

        Args:
            topic: Nombre del tópico (e.g. "signal", "price")
            data: Objeto con to_dict() o dict serializable a JSON
        """

    @abstractmethod
    async def subscribe(self, topic: str, consumer_name: str) -> asyncio.Queue:
        """Registra un consumidor y retorna su cola exclusiva."""

    @abstractmethod
    async def unsubscribe_all(self, topic: Optional[str] = None) -> None:
        """Elimina suscriptores (shutdown)."""
