"""
KlineSignal – Settings (Pydantic BaseSettings)
================================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.

Los componentes del motor NUNCA leen esta configuración a mitad de un
cálculo: el container construye cada servicio con los valores ya
validados y se los pasa por constructor.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

# Formato de símbolo aceptado por Binance (e.g. "ethusdt", "BTCUSDT")
SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9]{5,20}$")

# La ventana más larga de los patrones (taza con asa) son 50 velas
MIN_PATTERN_HISTORY = 50

VALID_INTERVALS = (
    "1m", "3m", "5m", "15m", "30m",
    "1h", "2h", "4h", "6h", "8h", "12h",
    "1d", "3d", "1w",
)


def normalize_symbol(symbol: str) -> Optional[str]:
    """Símbolo en minúsculas si el formato es válido, None si no."""
    if not isinstance(symbol, str):
        return None
    candidate = symbol.strip()
    if not SYMBOL_PATTERN.match(candidate):
        return None
    return candidate.lower()


class Settings(BaseSettings):
    # ─── Instrumento ────────────────────────────────────────────────────
    symbol: str = Field(default="ethusdt", description="Instrumento activo al arrancar")
    interval: str = Field(default="1m", description="Intervalo de vela (kline)")
    available_instruments: List[str] = Field(
        default=["ethusdt", "btcusdt", "bnbusdt", "solusdt", "xrpusdt"],
        description="Instrumentos ofrecidos al frontend",
    )

    # ─── Candle Buffer ──────────────────────────────────────────────────
    historical_limit: int = Field(
        default=300, description="Velas históricas a cargar al iniciar / cambiar símbolo"
    )
    max_candles_buffer: int = Field(
        default=500, description="Máximo de velas cerradas en memoria"
    )
    seed_with_provisional: bool = Field(
        default=False,
        description="Aceptar una vela provisional como semilla si el buffer está vacío",
    )

    # ─── Indicadores ────────────────────────────────────────────────────
    ema_short_period: int = Field(default=9, description="Periodo EMA rápida")
    ema_long_period: int = Field(default=21, description="Periodo EMA lenta")
    rsi_period: int = Field(default=14, description="Periodo RSI (Wilder)")

    # ─── Signal Engine ──────────────────────────────────────────────────
    signal_policy: Literal["threshold", "strict"] = Field(
        default="threshold",
        description="threshold = techo/piso RSI; strict = banda RSI + precio vs EMA lenta",
    )
    rsi_buy_ceiling: float = Field(default=60.0, description="RSI máximo para BUY")
    rsi_sell_floor: float = Field(default=40.0, description="RSI mínimo para SELL")
    rsi_band_low: float = Field(default=50.0, description="Límite inferior de banda (strict)")
    rsi_band_high: float = Field(default=70.0, description="Límite superior de banda (strict)")
    confirm_crosses: bool = Field(
        default=True, description="Exigir una vela de confirmación tras el cruce EMA"
    )
    risk_profile: Literal["conservative", "wide"] = Field(
        default="conservative", description="Perfil de offsets SL/TP por indicador",
    )
    risk_stop_pct: Optional[float] = Field(
        default=None, description="Override del offset SL como fracción del precio",
    )
    risk_target_pct: Optional[float] = Field(
        default=None, description="Override del offset TP como fracción del precio",
    )
    pattern_min_history: int = Field(
        default=50,
        description="Velas mínimas para buscar patrones chartistas (>= 50, ventana de la taza con asa)",
    )

    # ─── Binance ────────────────────────────────────────────────────────
    binance_rest_url: str = Field(default="https://api.binance.com")
    binance_ws_url: str = Field(default="wss://stream.binance.com:9443/ws")
    history_fetch_timeout: float = Field(
        default=10.0, description="Timeout (seg) de la descarga de históricos"
    )

    # ─── Reconexión ─────────────────────────────────────────────────────
    ws_reconnect_delay: float = Field(
        default=3.0, description="Delay fijo (seg) entre reconexiones del stream"
    )

    # ─── Event Bus ──────────────────────────────────────────────────────
    event_bus_max_queue_size: int = Field(
        default=10_000,
        description="Tamaño máximo de cola del Event Bus para contrapresión",
    )

    # ─── Server ─────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    debug: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    # ─── Validaciones ───────────────────────────────────────────────────

    @field_validator("symbol")
    @classmethod
    def _validate_symbol(cls, value: str) -> str:
        normalized = normalize_symbol(value)
        if normalized is None:
            raise ValueError(f"Símbolo inválido: {value!r}")
        return normalized

    @field_validator("available_instruments")
    @classmethod
    def _validate_instruments(cls, value: List[str]) -> List[str]:
        result = []
        for raw in value:
            normalized = normalize_symbol(raw)
            if normalized is None:
                raise ValueError(f"Símbolo inválido en available_instruments: {raw!r}")
            if normalized not in result:
                result.append(normalized)
        return result

    @field_validator("interval")
    @classmethod
    def _validate_interval(cls, value: str) -> str:
        if value not in VALID_INTERVALS:
            raise ValueError(f"Intervalo no soportado: {value!r}")
        return value

    @field_validator(
        "historical_limit", "max_candles_buffer",
        "ema_short_period", "ema_long_period", "rsi_period",
        "event_bus_max_queue_size",
    )
    @classmethod
    def _validate_positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Debe ser un entero positivo")
        return value

    @field_validator("pattern_min_history")
    @classmethod
    def _validate_pattern_history(cls, value: int) -> int:
        if value < MIN_PATTERN_HISTORY:
            raise ValueError(
                f"pattern_min_history debe ser >= {MIN_PATTERN_HISTORY} (ventana más larga)"
            )
        return value

    @field_validator("rsi_buy_ceiling", "rsi_sell_floor", "rsi_band_low", "rsi_band_high")
    @classmethod
    def _validate_rsi_level(cls, value: float) -> float:
        if not 0.0 <= value <= 100.0:
            raise ValueError("Los umbrales RSI deben estar en [0, 100]")
        return value

    @field_validator("risk_stop_pct", "risk_target_pct")
    @classmethod
    def _validate_pct(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not 0.0 < value < 1.0:
            raise ValueError("Los offsets de riesgo deben estar en (0, 1)")
        return value

    @model_validator(mode="after")
    def _validate_consistency(self) -> "Settings":
        if self.ema_short_period >= self.ema_long_period:
            raise ValueError("ema_short_period debe ser menor que ema_long_period")
        if self.rsi_band_low >= self.rsi_band_high:
            raise ValueError("rsi_band_low debe ser menor que rsi_band_high")
        if self.historical_limit > 1000:
            raise ValueError("historical_limit no puede superar 1000 (límite de Binance)")
        if self.symbol not in self.available_instruments:
            self.available_instruments.insert(0, self.symbol)
        return self


# Singleton global – se importa donde se necesite
settings = Settings()
