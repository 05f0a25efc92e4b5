"""
KlineSignal – Infrastructure Layer
====================================
Implementaciones concretas de interfaces.

Este módulo contiene:
- external/: Binance (REST + WebSocket) y Event Bus

REGLA DE DEPENDENCIA:
Esta capa implementa interfaces definidas en application/ports/.

Puede importar de:
- domain/ (entidades, excepciones)
- application/ (ports)
- shared/ (config, logging)
"""
