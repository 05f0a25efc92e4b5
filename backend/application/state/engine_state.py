"""
KlineSignal – Engine State
============================
Estado en memoria del motor: instrumento activo, buffer y última señal.

CONTEXTO EXPLÍCITO (sin singletons de proceso):
- EngineContext agrupa TODO lo que pertenece a un instrumento: símbolo,
  intervalo, CandleBuffer, última Signal y último PatternMatch.
- Cambiar de instrumento = construir un contexto nuevo y reemplazar la
  referencia en EngineState. El contexto anterior se descarta entero,
  así nunca se evalúa un buffer que mezcle velas de dos símbolos.

RACE CONDITIONS:
- Todas las operaciones se ejecutan dentro del mismo event loop asyncio.
- Un único escritor (ProcessCandleUseCase) muta el buffer; la API solo
  lee la última señal.
- El reemplazo de contexto es una asignación atómica (sin await en medio).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from backend.domain.entities.signal import Signal
from backend.domain.services.candle_buffer import CandleBuffer
from backend.domain.value_objects.pattern_match import PatternMatch
from backend.shared.logging.logger import get_logger

logger = get_logger("engine_state")


@dataclass
class EngineContext:
    """Estado de UN instrumento activo."""

    instrument: str
    interval: str
    buffer: CandleBuffer
    created_at: float = field(default_factory=time.time)
    last_signal: Optional[Signal] = None
    last_pattern: Optional[PatternMatch] = None
    candles_received: int = 0
    candles_closed: int = 0

    def record(self, signal: Signal) -> None:
        """La nueva señal reemplaza a la anterior (nunca se muta)."""
        self.last_signal = signal
        self.last_pattern = signal.pattern

    def snapshot(self) -> dict:
        return {
            "instrument": self.instrument,
            "interval": self.interval,
            "buffer": self.buffer.snapshot(),
            "candles_received": self.candles_received,
            "candles_closed": self.candles_closed,
            "last_signal_at": self.last_signal.generated_at if self.last_signal else None,
        }


class EngineState:
    """Contenedor del contexto activo y del flag de cambio en curso."""

    def __init__(self) -> None:
        self._context: Optional[EngineContext] = None
        self._pending_symbol: Optional[str] = None

    @property
    def context(self) -> Optional[EngineContext]:
        return self._context

    @property
    def instrument(self) -> Optional[str]:
        return self._context.instrument if self._context else None

    @property
    def last_signal(self) -> Optional[Signal]:
        return self._context.last_signal if self._context else None

    @property
    def switch_in_progress(self) -> bool:
        return self._pending_symbol is not None

    @property
    def pending_symbol(self) -> Optional[str]:
        return self._pending_symbol

    def replace(self, context: EngineContext) -> Optional[EngineContext]:
        """Instalar un contexto nuevo; retorna el anterior (ya descartado)."""
        previous = self._context
        self._context = context
        logger.info(
            "Contexto activo: '%s' %s (%d velas cerradas)",
            context.instrument, context.interval, context.buffer.final_count,
        )
        return previous

    def begin_switch(self, symbol: str) -> None:
        self._pending_symbol = symbol

    def end_switch(self) -> None:
        self._pending_symbol = None

    def snapshot(self) -> dict:
        """Snapshot completo para diagnóstico / API."""
        return {
            "context": self._context.snapshot() if self._context else None,
            "switch_in_progress": self.switch_in_progress,
            "pending_symbol": self._pending_symbol,
        }
