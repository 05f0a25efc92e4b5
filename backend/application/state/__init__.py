"""Application state - Estado en memoria del motor."""
from backend.application.state.engine_state import EngineContext, EngineState

__all__ = ["EngineContext", "EngineState"]
