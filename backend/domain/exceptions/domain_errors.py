"""
KlineSignal – Domain Exceptions
=================================
Excepciones específicas del dominio.

Ninguna de estas excepciones es fatal para el proceso: las de datos de
mercado se registran y degradan a HOLD; las de control (cambio de
instrumento) se rechazan sincrónicamente sin tocar el estado.

JERARQUÍA:
    DomainError (base)
    ├── InvalidInstrumentError
    ├── SwitchInProgressError
    ├── MarketDataError
    └── MalformedMessageError
"""

from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class InvalidInstrumentError(DomainError):
    """Símbolo con formato inválido en una petición de cambio."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message, code="INVALID_INSTRUMENT")
        self.symbol = symbol


class SwitchInProgressError(DomainError):
    """Ya hay un cambio de instrumento en curso; no se encolan peticiones."""

    def __init__(self, message: str, pending_symbol: Optional[str] = None):
        super().__init__(message, code="SWITCH_IN_PROGRESS")
        self.pending_symbol = pending_symbol


class MarketDataError(DomainError):
    """Fallo del proveedor al descargar históricos (red, HTTP, timeout)."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message, code="MARKET_DATA_ERROR")
        self.symbol = symbol


class MalformedMessageError(DomainError):
    """Mensaje del stream que no se puede convertir en Candle."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message, code="MALFORMED_MESSAGE")
        self.raw = raw
