"""
Dependency Injection Container.

Este módulo proporciona el contenedor de inyección de dependencias
que gestiona todas las instancias de servicios, puertos y casos de uso.

Clean Architecture: Este contenedor vive en la capa más externa y es el único
lugar donde se crean dependencias concretas. También es el único lugar que
lee Settings: cada servicio recibe sus parámetros ya validados por constructor.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any

# Domain
from backend.domain.services.cross_detector import CrossDetector
from backend.domain.services.indicator_calculator import IndicatorCalculator
from backend.domain.services.pattern_matcher import PatternMatcher
from backend.domain.services.risk_calculator import RiskCalculator, resolve_offsets
from backend.domain.services.signal_engine import SignalEngine

# Application
from backend.application.ports.event_publisher import IEventPublisher
from backend.application.ports.market_data_provider import IMarketDataProvider
from backend.application.state.engine_state import EngineState

# Shared
from backend.shared.config.settings import Settings


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Gestiona el ciclo de vida de todas las dependencias de la aplicación.
    Cada propiedad crea su instancia la primera vez (singleton por container).
    """

    # Configuración
    settings: Settings = field(default_factory=Settings)

    # Ports (implementaciones concretas)
    _event_publisher: Optional[IEventPublisher] = None
    _market_data_provider: Optional[IMarketDataProvider] = None

    # Estado
    _engine_state: Optional[EngineState] = None

    # Domain Services
    _indicator_calculator: Optional[IndicatorCalculator] = None
    _cross_detector: Optional[CrossDetector] = None
    _pattern_matcher: Optional[PatternMatcher] = None
    _risk_calculator: Optional[RiskCalculator] = None
    _signal_engine: Optional[SignalEngine] = None

    # Cache de instancias (use cases, presentación)
    _instances: Dict[str, Any] = field(default_factory=dict)

    # ==================== Domain Services ====================

    @property
    def indicator_calculator(self) -> IndicatorCalculator:
        if self._indicator_calculator is None:
            self._indicator_calculator = IndicatorCalculator(
                ema_short=self.settings.ema_short_period,
                ema_long=self.settings.ema_long_period,
                rsi_period=self.settings.rsi_period,
            )
        return self._indicator_calculator

    @property
    def cross_detector(self) -> CrossDetector:
        if self._cross_detector is None:
            self._cross_detector = CrossDetector(confirm=self.settings.confirm_crosses)
        return self._cross_detector

    @property
    def pattern_matcher(self) -> PatternMatcher:
        if self._pattern_matcher is None:
            self._pattern_matcher = PatternMatcher(
                min_history=self.settings.pattern_min_history,
            )
        return self._pattern_matcher

    @property
    def risk_calculator(self) -> RiskCalculator:
        if self._risk_calculator is None:
            self._risk_calculator = RiskCalculator(resolve_offsets(
                self.settings.risk_profile,
                self.settings.risk_stop_pct,
                self.settings.risk_target_pct,
            ))
        return self._risk_calculator

    @property
    def signal_engine(self) -> SignalEngine:
        """Obtiene o crea el SignalEngine (singleton)."""
        if self._signal_engine is None:
            self._signal_engine = SignalEngine(
                self.indicator_calculator,
                self.cross_detector,
                self.pattern_matcher,
                self.risk_calculator,
                policy=self.settings.signal_policy,
                rsi_buy_ceiling=self.settings.rsi_buy_ceiling,
                rsi_sell_floor=self.settings.rsi_sell_floor,
                rsi_band_low=self.settings.rsi_band_low,
                rsi_band_high=self.settings.rsi_band_high,
            )
        return self._signal_engine

    # ==================== Ports ====================

    @property
    def event_publisher(self) -> IEventPublisher:
        """Obtiene el publicador de eventos."""
        if self._event_publisher is None:
            from backend.infrastructure.external.event_bus_adapter import EventBusAdapter
            self._event_publisher = EventBusAdapter(
                max_queue_size=self.settings.event_bus_max_queue_size,
            )
        return self._event_publisher

    @property
    def market_data_provider(self) -> IMarketDataProvider:
        """Obtiene el proveedor de datos de mercado."""
        if self._market_data_provider is None:
            from backend.infrastructure.external.binance_adapter import BinanceAdapter
            self._market_data_provider = BinanceAdapter(
                self.event_publisher,
                rest_url=self.settings.binance_rest_url,
                ws_url=self.settings.binance_ws_url,
                reconnect_delay=self.settings.ws_reconnect_delay,
                request_timeout=self.settings.history_fetch_timeout,
            )
        return self._market_data_provider

    @property
    def engine_state(self) -> EngineState:
        if self._engine_state is None:
            self._engine_state = EngineState()
        return self._engine_state

    # ==================== Use Cases ====================

    @property
    def process_candle_usecase(self):
        """ProcessCandleUseCase (único escritor del buffer)."""
        if "process_candle" not in self._instances:
            from backend.application.use_cases.process_candle_usecase import ProcessCandleUseCase
            self._instances["process_candle"] = ProcessCandleUseCase(
                event_bus=self.event_publisher,
                state=self.engine_state,
                signal_engine=self.signal_engine,
            )
        return self._instances["process_candle"]

    @property
    def switch_instrument_usecase(self):
        """SwitchInstrumentUseCase (arranque, cambio y resync)."""
        if "switch_instrument" not in self._instances:
            from backend.application.use_cases.switch_instrument_usecase import (
                SwitchInstrumentUseCase,
            )
            self._instances["switch_instrument"] = SwitchInstrumentUseCase(
                provider=self.market_data_provider,
                event_bus=self.event_publisher,
                state=self.engine_state,
                signal_engine=self.signal_engine,
                interval=self.settings.interval,
                historical_limit=self.settings.historical_limit,
                buffer_capacity=self.settings.max_candles_buffer,
                seed_with_provisional=self.settings.seed_with_provisional,
                fetch_timeout=self.settings.history_fetch_timeout,
            )
        return self._instances["switch_instrument"]

    # ==================== Presentation ====================

    @property
    def ws_manager(self):
        if "ws_manager" not in self._instances:
            from backend.presentation.websocket.websocket_manager import WebSocketManager
            self._instances["ws_manager"] = WebSocketManager(
                self.event_publisher, self.engine_state,
            )
        return self._instances["ws_manager"]

    # ==================== Lifecycle ====================

    def reset(self) -> None:
        """Resetea todas las instancias (útil para tests)."""
        self._event_publisher = None
        self._market_data_provider = None
        self._engine_state = None
        self._indicator_calculator = None
        self._cross_detector = None
        self._pattern_matcher = None
        self._risk_calculator = None
        self._signal_engine = None
        self._instances.clear()

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests con fakes).

        Args:
            name: Nombre de la dependencia (ej: 'market_data_provider')
            instance: Instancia a usar
        """
        attr_name = f"_{name}"
        if hasattr(self, attr_name):
            setattr(self, attr_name, instance)
        else:
            raise ValueError(f"Unknown dependency: {name}")


# ==================== Global Container ====================

_container: Optional[Container] = None


def get_container() -> Container:
    """
    Obtiene la instancia global del contenedor.

    Patrón Singleton para asegurar una única instancia
    compartida en toda la aplicación.
    """
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Resetea el contenedor global."""
    global _container
    if _container is not None:
        _container.reset()
    _container = None


def init_container(settings: Optional[Settings] = None) -> Container:
    """
    Inicializa el contenedor con configuración específica.

    Args:
        settings: Configuración opcional. Si es None, se lee del entorno.

    Returns:
        Container inicializado
    """
    global _container
    if settings is None:
        settings = Settings()
    _container = Container(settings=settings)
    return _container


def create_test_container(settings: Optional[Settings] = None, **overrides) -> Container:
    """
    Crea un contenedor de pruebas con dependencias sustituidas.

    Ejemplo:
        container = create_test_container(market_data_provider=fake_provider)
    """
    container = Container(settings=settings or Settings())
    for name, instance in overrides.items():
        container.override(name, instance)
    return container
