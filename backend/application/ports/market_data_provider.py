"""
KlineSignal – Application Port: Market Data Provider
======================================================
Interfaz para obtener datos de mercado.

Los use cases solicitan datos; la infraestructura decide CÓMO
obtenerlos (REST + WebSocket de Binance, fixtures en tests, etc.)

CONTRATO DEL STREAM:
- start_stream() publica cada actualización de vela (cerrada o
  provisional) como Candle en el tópico KLINE_TOPIC del EventBus.
- La reconexión es responsabilidad del proveedor: antes de volver a
  suscribirse invoca el resync hook para recargar históricos y evitar
  huecos en los indicadores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional

from backend.domain.entities.candle import Candle

# Tópico del EventBus para velas crudas del stream
KLINE_TOPIC = "kline"

# El valor de retorno (p.ej. la señal recalculada) se ignora
ResyncHook = Callable[[str], Awaitable[Any]]


class IMarketDataProvider(ABC):
    """
    Interfaz para proveer datos de mercado.

    IMPLEMENTACIONES:
    - BinanceAdapter (real-time + históricos)
    - FakeMarketDataProvider (tests)
    """

    @abstractmethod
    async def fetch_history(
        self,
        symbol: str,
        interval: str,
        limit: int,
    ) -> List[Candle]:
        """
        Obtiene velas históricas CERRADAS.

        Returns:
            Lista de velas ordenadas por open_time ASC, is_final=True

        Raises:
            MarketDataError si la descarga falla
        """

    @abstractmethod
    async def start_stream(self, symbol: str, interval: str) -> None:
        """Inicia (o reinicia) el stream de velas de un símbolo."""

    @abstractmethod
    async def stop_stream(self) -> None:
        """Detiene el stream activo. Idempotente."""

    @abstractmethod
    def set_resync_hook(self, hook: Optional[ResyncHook]) -> None:
        """Registra la coroutine a invocar tras cada reconexión."""

    @property
    @abstractmethod
    def stats(self) -> dict:
        """Estadísticas del proveedor para monitoreo."""
