"""
KlineSignal – Application Layer
=================================
Capa de casos de uso y orquestación.

Este módulo contiene:
- use_cases/: Casos de uso (consumo del stream, cambio de instrumento)
- ports/: Interfaces hacia infraestructura
- state/: Contexto del instrumento activo

REGLA DE DEPENDENCIA:
Esta capa puede importar de:
- domain/ (entidades, servicios, excepciones)
- ports/ propios (interfaces hacia infra)

NO puede importar de:
- infrastructure/ (implementaciones concretas)
- presentation/ (API)
"""

from backend.application.use_cases.process_candle_usecase import ProcessCandleUseCase
from backend.application.use_cases.switch_instrument_usecase import SwitchInstrumentUseCase

__all__ = [
    "ProcessCandleUseCase",
    "SwitchInstrumentUseCase",
]
