"""
KlineSignal – API Schemas (Pydantic)
======================================
Schemas de validación para request de la API REST.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class InstrumentRequest(BaseModel):
    """Body para cambiar el instrumento activo."""

    symbol: str = Field(..., min_length=1, max_length=40, description="e.g. 'btcusdt'")
