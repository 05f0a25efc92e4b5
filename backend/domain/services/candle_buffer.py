"""
KlineSignal – Domain Service: Candle Buffer
=============================================
Secuencia acotada de velas del instrumento activo (más antigua primero).

PROTECCIÓN DE MEMORIA:
- Las velas cerradas viven en un collections.deque con maxlen=capacity →
  al superar la capacidad se descarta automáticamente la más antigua
  (FIFO). O(1) en append y pop.
- La vela provisional (a lo sumo UNA, siempre al final) se guarda aparte
  y NO cuenta para la capacidad.

CÓMO SE EVITA REPAINTING:
- Una vela provisional nunca sobrescribe una vela cerrada.
- apply_final() reemplaza la provisional del mismo open_time y la
  convierte en historia inmutable.

VELA PROVISIONAL CON BUFFER VACÍO:
- Por defecto se RECHAZA: el buffer debe sembrarse con al menos una vela
  cerrada (histórico) antes de aceptar actualizaciones provisionales.
- seed_with_provisional=True reproduce el comportamiento antiguo:
  la provisional se guarda como si fuera cerrada.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator, List, Optional

from backend.domain.entities.candle import Candle


class CandleBuffer:
    """Buffer acotado de velas cerradas + una provisional opcional."""

    def __init__(self, capacity: int, *, seed_with_provisional: bool = False) -> None:
        if capacity <= 0:
            raise ValueError("capacity debe ser positivo")
        self._capacity = capacity
        self._seed_with_provisional = seed_with_provisional
        self._finals: deque[Candle] = deque(maxlen=capacity)
        self._provisional: Optional[Candle] = None

    @classmethod
    def from_history(
        cls,
        candles: Iterable[Candle],
        capacity: int,
        *,
        seed_with_provisional: bool = False,
    ) -> "CandleBuffer":
        """Construir un buffer a partir de velas históricas (todas cerradas)."""
        buffer = cls(capacity, seed_with_provisional=seed_with_provisional)
        for candle in candles:
            buffer.apply_final(candle)
        return buffer

    # ════════════════════════════════════════════════════════════════
    #  MUTACIONES
    # ════════════════════════════════════════════════════════════════

    def apply_final(self, candle: Candle) -> None:
        """
        Añadir una vela cerrada.

        Si la provisional pendiente corresponde al mismo periodo, la vela
        cerrada la sustituye. En cualquier caso la marca provisional se limpia.
        Una vela cerrada con el mismo open_time que la última cerrada
        (semilla provisional o solape histórico/stream) la reemplaza.
        """
        self._provisional = None
        if self._finals and self._finals[-1].open_time == candle.open_time:
            self._finals[-1] = candle
            return
        # deque(maxlen=N) descarta la más antigua si se excede
        self._finals.append(candle)

    def apply_provisional(self, candle: Candle) -> bool:
        """
        Registrar una actualización de la vela en curso.

        Retorna True si la vela se almacenó, False si se ignoró.
        """
        if not self._finals and self._provisional is None:
            if not self._seed_with_provisional:
                return False
            # Comportamiento heredado: semilla como si fuera cerrada
            self._finals.append(candle)
            return True

        if self._provisional is not None:
            # Sobrescribir la provisional abierta (nunca una cerrada)
            self._provisional = candle
            return True

        last_final = self._finals[-1]
        if candle.open_time <= last_final.open_time:
            # Periodo ya cerrado (o semilla): la provisional no lo toca
            return False
        self._provisional = candle
        return True

    def merge_history(self, candles: Iterable[Candle]) -> int:
        """
        Completar el buffer con velas cerradas posteriores a la última
        cerrada (hueco tras una pausa del stream). Las anteriores o
        iguales se ignoran. Retorna cuántas se añadieron.
        """
        last = self.last_final
        newer = sorted(
            (c for c in candles if last is None or c.open_time > last.open_time),
            key=lambda c: c.open_time,
        )
        for candle in newer:
            self.apply_final(candle)
        return len(newer)

    def clear(self) -> None:
        self._finals.clear()
        self._provisional = None

    # ════════════════════════════════════════════════════════════════
    #  CONSULTAS
    # ════════════════════════════════════════════════════════════════

    def close_prices(self) -> List[float]:
        """Closes en orden, incluida la provisional final si existe."""
        closes = [c.close for c in self._finals]
        if self._provisional is not None:
            closes.append(self._provisional.close)
        return closes

    def final_closes(self) -> List[float]:
        """Closes solo de velas cerradas (lo que usa la evaluación)."""
        return [c.close for c in self._finals]

    def candles(self, count: Optional[int] = None) -> List[Candle]:
        """Últimas N velas (cerradas + provisional)."""
        items = list(self)
        if count is None:
            return items
        return items[-count:] if count > 0 else []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def final_count(self) -> int:
        return len(self._finals)

    @property
    def has_provisional(self) -> bool:
        return self._provisional is not None

    @property
    def provisional(self) -> Optional[Candle]:
        return self._provisional

    @property
    def last(self) -> Optional[Candle]:
        if self._provisional is not None:
            return self._provisional
        return self._finals[-1] if self._finals else None

    @property
    def last_final(self) -> Optional[Candle]:
        return self._finals[-1] if self._finals else None

    def __len__(self) -> int:
        return len(self._finals) + (1 if self._provisional is not None else 0)

    def __iter__(self) -> Iterator[Candle]:
        yield from self._finals
        if self._provisional is not None:
            yield self._provisional

    def snapshot(self) -> dict:
        """Snapshot para diagnóstico / API."""
        last = self.last
        return {
            "capacity": self._capacity,
            "final_candles": len(self._finals),
            "has_provisional": self._provisional is not None,
            "last_close": last.close if last else None,
            "last_open_time": last.open_time if last else None,
        }
