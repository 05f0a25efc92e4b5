"""
KlineSignal – Logging configuration
=====================================
Logging legible en stdout para el servicio de señales.

Niveles usados en el proyecto:
  INFO     → ciclo de vida (arranque, stream, cambio de instrumento) y señales
  DEBUG    → actualizaciones provisionales de vela
  WARNING  → mensajes descartados, resync fallido
  ERROR    → fallos inesperados (siempre con exc_info)

Todos los módulos obtienen su logger con get_logger(name), que cuelga del
namespace "klinesignal" para poder filtrar por componente.
"""

from __future__ import annotations

import logging
import sys
from typing import Union

ROOT_NAMESPACE = "klinesignal"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Librerías que en INFO inundan la consola (handshake WS, cada request REST)
NOISY_LOGGERS = ("websockets", "httpx", "httpcore", "uvicorn.access")


def setup_logging(level: Union[int, str] = logging.INFO, debug: bool = False) -> None:
    """
    Configura el root logger una sola vez al arranque.

    Args:
        level: Nivel base (int o nombre, e.g. "DEBUG")
        debug: Fuerza DEBUG en el namespace del proyecto
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    # Evitar handlers duplicados si se llama más de una vez
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger(ROOT_NAMESPACE).setLevel(logging.DEBUG if debug else level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Fábrica de loggers con namespace prefijado."""
    return logging.getLogger(f"{ROOT_NAMESPACE}.{name}")
