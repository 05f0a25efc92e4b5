"""
KlineSignal – Binance Market Data Adapter
===========================================
Implementación de IMarketDataProvider sobre la API pública de Binance.

HISTÓRICOS (REST, httpx):
  GET {rest_url}/api/v3/klines?symbol=ETHUSDT&interval=1m&limit=300
  Cada fila: [openTime, open, high, low, close, volume, closeTime, ...]
  La última fila suele ser la vela AÚN ABIERTA (closeTime en el futuro):
  se descarta, el stream la entregará como provisional.

STREAM (WebSocket, websockets):
  {ws_url}/{symbol}@kline_{interval}
  {"e": "kline", "s": "ETHUSDT", "k": {"t", "o", "h", "l", "c", "v", "x", ...}}
  k.x = true → vela cerrada (is_final).

RECONEXIÓN CON DELAY FIJO:
- Ante cualquier desconexión se espera ws_reconnect_delay (3s) y se
  vuelve a conectar. Sin backoff: el stream de Binance es público y el
  intervalo mínimo es de 1 minuto.
- ANTES de resuscribirse se invoca el resync hook, que recarga los
  históricos y reconstruye el buffer → sin huecos en los indicadores.

MENSAJES MALFORMADOS:
- Se registran (WARNING) y se descartan. Nunca tumban el loop.
"""

from __future__ import annotations

import asyncio
import json
import math
import time
from typing import Any, List, Optional, Union

import httpx
import websockets
from websockets.asyncio.client import ClientConnection

from backend.application.ports.event_publisher import IEventPublisher
from backend.application.ports.market_data_provider import (
    IMarketDataProvider,
    KLINE_TOPIC,
    ResyncHook,
)
from backend.domain.entities.candle import Candle
from backend.domain.exceptions import MalformedMessageError, MarketDataError
from backend.shared.config.settings import normalize_symbol
from backend.shared.logging.logger import get_logger

logger = get_logger("binance_adapter")

KLINES_PATH = "/api/v3/klines"


# ════════════════════════════════════════════════════════════════════
#  PARSERS
# ════════════════════════════════════════════════════════════════════

def _finite(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"valor no finito: {value!r}")
    return number


def _flag(value: Any) -> bool:
    # solo booleanos JSON: "false" como string no vale
    if not isinstance(value, bool):
        raise TypeError(f"flag no booleano: {value!r}")
    return value


def parse_kline_row(symbol: str, row: List[Any]) -> Candle:
    """Fila REST de /api/v3/klines → Candle cerrada."""
    return Candle(
        symbol=symbol,
        open_time=int(row[0]),
        open=_finite(row[1]),
        high=_finite(row[2]),
        low=_finite(row[3]),
        close=_finite(row[4]),
        volume=_finite(row[5]),
        is_final=True,
    )


def parse_kline_message(raw: Union[str, bytes]) -> Candle:
    """
    Mensaje del stream kline → Candle.

    Acepta también el formato de stream combinado ({"stream", "data"}).

    Raises:
        MalformedMessageError: JSON inválido, evento no-kline o campos
        ausentes / no numéricos.
    """
    preview = str(raw)[:200]
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError("Mensaje no-JSON", raw=preview) from e

    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        raise MalformedMessageError("Mensaje no es un objeto", raw=preview)

    kline = payload.get("k")
    if payload.get("e") != "kline" or not isinstance(kline, dict):
        raise MalformedMessageError("Evento no-kline", raw=preview)

    symbol = normalize_symbol(kline.get("s") or payload.get("s") or "")
    if symbol is None:
        raise MalformedMessageError("Símbolo ausente o inválido", raw=preview)

    try:
        return Candle(
            symbol=symbol,
            open_time=int(kline["t"]),
            open=_finite(kline["o"]),
            high=_finite(kline["h"]),
            low=_finite(kline["l"]),
            close=_finite(kline["c"]),
            volume=_finite(kline["v"]),
            is_final=_flag(kline["x"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedMessageError(f"Campos de kline inválidos: {e}", raw=preview) from e


# ════════════════════════════════════════════════════════════════════
#  ADAPTER
# ════════════════════════════════════════════════════════════════════

class BinanceAdapter(IMarketDataProvider):
    """
    Proveedor de velas de Binance.

    Ciclo de vida del stream:
      1. start_stream(symbol, interval) → lanza task de conexión
      2. _connect_loop()  → reconexión perpetua con delay fijo
      3. _listen()        → parsear mensajes y publicar velas
      4. stop_stream()    → shutdown limpio
    """

    def __init__(
        self,
        event_bus: IEventPublisher,
        *,
        rest_url: str = "https://api.binance.com",
        ws_url: str = "wss://stream.binance.com:9443/ws",
        reconnect_delay: float = 3.0,
        request_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._event_bus = event_bus
        self._rest_url = rest_url.rstrip("/")
        self._ws_url = ws_url.rstrip("/")
        self._reconnect_delay = reconnect_delay
        self._request_timeout = request_timeout
        self._transport = transport

        self._ws: Optional[ClientConnection] = None
        self._running = False
        self._connect_task: Optional[asyncio.Task] = None
        self._resync_hook: Optional[ResyncHook] = None
        self._symbol: Optional[str] = None
        self._interval: Optional[str] = None

        # Estadísticas de monitoreo
        self._candles_received = 0
        self._malformed_messages = 0
        self._last_candle_time: Optional[int] = None
        self._connected_since = 0.0
        self._reconnect_attempts = 0

    def stream_url(self, symbol: str, interval: str) -> str:
        return f"{self._ws_url}/{symbol.lower()}@kline_{interval}"

    # ──────────────────────── Históricos ─────────────────────────────────

    async def fetch_history(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        params = {"symbol": symbol.upper(), "interval": interval, "limit": limit}
        try:
            async with httpx.AsyncClient(
                base_url=self._rest_url,
                timeout=self._request_timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(KLINES_PATH, params=params)
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPError as e:
            raise MarketDataError(
                f"Error descargando históricos de '{symbol}': {e}", symbol=symbol,
            ) from e
        except ValueError as e:
            raise MarketDataError(
                f"Respuesta no-JSON de Binance para '{symbol}'", symbol=symbol,
            ) from e

        if not isinstance(rows, list):
            raise MarketDataError(
                f"Respuesta inesperada de Binance para '{symbol}': {str(rows)[:200]}",
                symbol=symbol,
            )

        now_ms = int(time.time() * 1000)
        candles: List[Candle] = []
        try:
            for row in rows:
                if not isinstance(row, list):
                    raise TypeError(f"fila no es un array: {str(row)[:100]}")
                if len(row) > 6 and int(row[6]) > now_ms:
                    # Vela aún abierta: llegará por el stream
                    continue
                candles.append(parse_kline_row(symbol.lower(), row))
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise MarketDataError(
                f"Fila de kline inválida para '{symbol}': {e}", symbol=symbol,
            ) from e

        candles.sort(key=lambda c: c.open_time)
        logger.info(
            "📚 %d velas históricas de '%s' (%s) descargadas", len(candles), symbol, interval,
        )
        return candles

    # ──────────────────────── Lifecycle del stream ───────────────────────

    def set_resync_hook(self, hook: Optional[ResyncHook]) -> None:
        self._resync_hook = hook

    async def start_stream(self, symbol: str, interval: str) -> None:
        """Iniciar el stream de un símbolo. Si ya hay uno activo, se reemplaza."""
        if self._running:
            await self.stop_stream()

        self._symbol = symbol.lower()
        self._interval = interval
        self._running = True
        self._reconnect_attempts = 0
        self._connect_task = asyncio.create_task(
            self._connect_loop(self._symbol, interval), name=f"binance-{self._symbol}",
        )
        logger.info("Stream de '%s' (%s) iniciado", self._symbol, interval)

    async def stop_stream(self) -> None:
        """Shutdown limpio: cerrar WS y cancelar el task de conexión."""
        if not self._running and self._connect_task is None:
            return
        self._running = False

        if self._ws is not None:
            try:
                await self._ws.close()
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.debug("Error cerrando WebSocket: %s", e)

        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info(
            "Stream de '%s' detenido. Velas recibidas: %d", self._symbol, self._candles_received,
        )

    # ──────────────────────── Connection Loop ────────────────────────────

    async def _connect_loop(self, symbol: str, interval: str) -> None:
        """
        Loop de conexión con delay fijo.
        En cada reconexión (no en la primera) se resincronizan los
        históricos antes de volver a suscribirse.
        """
        url = self.stream_url(symbol, interval)
        first_attempt = True

        while self._running:
            if not first_attempt:
                await self._resync(symbol)
                if not self._running:
                    break
            first_attempt = False

            try:
                logger.info("Conectando a Binance: %s", url)
                async with websockets.connect(
                    url,
                    close_timeout=10,
                    max_size=2**20,       # 1 MB máximo por mensaje
                ) as ws:
                    self._ws = ws
                    self._connected_since = time.time()
                    logger.info("✓ Conectado a Binance WebSocket (%s)", symbol)
                    await self._listen(ws, symbol)

            except websockets.exceptions.ConnectionClosed as e:
                logger.warning("Conexión cerrada: %s", e)
            except OSError as e:
                logger.error("Error de red: %s", e)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error inesperado en connect_loop: %s", e, exc_info=True)
            finally:
                self._ws = None

            if not self._running:
                break

            self._reconnect_attempts += 1
            logger.info(
                "Reconectando en %.1fs (intento #%d)...",
                self._reconnect_delay, self._reconnect_attempts,
            )
            await asyncio.sleep(self._reconnect_delay)

    async def _resync(self, symbol: str) -> None:
        if self._resync_hook is None:
            return
        try:
            await self._resync_hook(symbol)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Resync de '%s' falló: %s", symbol, e, exc_info=True)

    # ──────────────────────── Listener ───────────────────────────────────

    async def _listen(self, ws: ClientConnection, symbol: str) -> None:
        """Parsear cada mensaje y publicar la vela en el EventBus."""
        async for raw_msg in ws:
            if not self._running:
                break

            try:
                candle = parse_kline_message(raw_msg)
            except MalformedMessageError as e:
                self._malformed_messages += 1
                logger.warning("Mensaje descartado (%s): %s", e.message, e.raw)
                continue

            if candle.symbol != symbol:
                logger.debug("Vela de '%s' en stream de '%s', ignorada", candle.symbol, symbol)
                continue

            self._candles_received += 1
            self._last_candle_time = candle.open_time
            if candle.is_final:
                logger.debug("Vela cerrada [%s] t=%d close=%.5f", symbol, candle.open_time, candle.close)

            # Publicar al EventBus – NUNCA bloquea
            await self._event_bus.publish(KLINE_TOPIC, candle)

    # ──────────────────────── Stats ──────────────────────────────────────

    @property
    def stats(self) -> dict:
        """Estadísticas del proveedor para monitoreo."""
        return {
            "running": self._running,
            "connected": self._ws is not None,
            "symbol": self._symbol,
            "interval": self._interval,
            "candles_received": self._candles_received,
            "malformed_messages": self._malformed_messages,
            "last_candle_time": self._last_candle_time,
            "connected_since": self._connected_since,
            "reconnect_attempts": self._reconnect_attempts,
        }
