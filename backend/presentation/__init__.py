"""
KlineSignal – Presentation Layer
==================================
API HTTP y WebSocket.

Este módulo contiene:
- api/: FastAPI routes y schemas
- websocket/: broadcast a clientes

REGLA DE DEPENDENCIA:
Esta capa llama a use cases de application/ y lee EngineState.
NO accede directamente a infrastructure/.
"""

from backend.presentation.api.routes import init_routes, router
from backend.presentation.websocket.websocket_manager import WebSocketManager

__all__ = [
    "router",
    "init_routes",
    "WebSocketManager",
]
