"""
Política de resiliencia para las llamadas salientes del Reports Service.

Cada llamada a un servicio backend se ejecuta bajo tres políticas compuestas:
timeout, circuit breaker (uno por tipo de operación) y fallback. El fallback
convierte cualquier fallo en un BackendUnavailableError con un mensaje estable,
de modo que el orquestador nunca ve errores de transporte.
"""

import asyncio
import enum
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, TypeVar

from prometheus_client import Counter, Histogram

from .exceptions import BackendUnavailableError, CallTimeoutError, CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# --- Métricas Prometheus ---
BACKEND_CALLS = Counter(
    "reports_backend_calls_total",
    "Llamadas salientes a servicios backend",
    ["operation", "outcome"]
)
BACKEND_LATENCY = Histogram(
    "reports_backend_call_latency_seconds",
    "Latencia de las llamadas salientes a servicios backend",
    ["operation"]
)
BREAKER_TRANSITIONS = Counter(
    "reports_circuit_breaker_transitions_total",
    "Cambios de estado de los circuit breakers",
    ["operation", "state"]
)
FALLBACK_COUNT = Counter(
    "reports_fallbacks_total",
    "Activaciones del fallback por operación",
    ["operation"]
)


@dataclass(frozen=True)
class ResiliencePolicy:
    """Parámetros de la política. Tiempos en segundos."""
    timeout: float = 1.0
    request_volume_threshold: int = 20
    failure_ratio: float = 0.5
    delay: float = 5.0
    success_threshold: int = 1

    def __post_init__(self):
        if self.timeout <= 0 or self.delay < 0:
            raise ValueError("timeout debe ser positivo y delay no negativo")
        if self.request_volume_threshold < 1 or self.success_threshold < 1:
            raise ValueError("request_volume_threshold y success_threshold deben ser >= 1")
        if not 0 < self.failure_ratio <= 1:
            raise ValueError("failure_ratio debe estar en (0, 1]")


class BreakerState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# Permiso de ejecución: estado en el que se admitió la llamada y generación del breaker
Permit = Tuple[BreakerState, int]


class CircuitBreaker:
    """
    Circuit breaker con ventana deslizante por conteo.

    Se abre cuando la ventana de las últimas `request_volume_threshold` llamadas
    está llena y la proporción de fallos alcanza `failure_ratio`. Tras `delay`
    segundos pasa a semiabierto y deja pasar hasta `success_threshold` sondas.

    Las comprobaciones y actualizaciones no ceden el control al event loop,
    así que son atómicas respecto a otras tareas.
    """

    def __init__(self, operation: str, policy: ResiliencePolicy,
                 clock: Callable[[], float] = time.monotonic):
        self.operation = operation
        self._policy = policy
        self._clock = clock
        self._window: deque = deque(maxlen=policy.request_volume_threshold)
        self._state = BreakerState.CLOSED
        self._generation = 0
        self._opened_at: Optional[float] = None
        self._probes_in_flight = 0
        self._probe_successes = 0

    @property
    def state(self) -> BreakerState:
        self._maybe_half_open()
        return self._state

    def _transition(self, state: BreakerState):
        self._state = state
        self._generation += 1
        self._probes_in_flight = 0
        self._probe_successes = 0
        if state == BreakerState.OPEN:
            self._opened_at = self._clock()
            logger.warning(f"Circuit breaker ABIERTO para '{self.operation}' durante {self._policy.delay}s")
        elif state == BreakerState.CLOSED:
            self._window.clear()
            self._opened_at = None
            logger.info(f"Circuit breaker CERRADO para '{self.operation}'")
        else:
            logger.info(f"Circuit breaker SEMIABIERTO para '{self.operation}'")
        BREAKER_TRANSITIONS.labels(operation=self.operation, state=state.value).inc()

    def _maybe_half_open(self):
        if self._state == BreakerState.OPEN and self._clock() - self._opened_at >= self._policy.delay:
            self._transition(BreakerState.HALF_OPEN)

    def acquire(self) -> Permit:
        """Pide permiso para ejecutar una llamada. Lanza CircuitOpenError si no se concede."""
        self._maybe_half_open()
        if self._state == BreakerState.OPEN:
            raise CircuitOpenError(self.operation)
        if self._state == BreakerState.HALF_OPEN:
            if self._probes_in_flight >= self._policy.success_threshold:
                raise CircuitOpenError(self.operation)
            self._probes_in_flight += 1
        return (self._state, self._generation)

    def _is_current(self, permit: Permit) -> bool:
        # Resultados de llamadas admitidas antes de un cambio de estado se descartan
        return permit == (self._state, self._generation)

    def record_success(self, permit: Permit):
        if not self._is_current(permit):
            return
        if self._state == BreakerState.HALF_OPEN:
            self._probes_in_flight -= 1
            self._probe_successes += 1
            if self._probe_successes >= self._policy.success_threshold:
                self._transition(BreakerState.CLOSED)
        else:
            self._window.append(False)

    def record_failure(self, permit: Permit):
        if not self._is_current(permit):
            return
        if self._state == BreakerState.HALF_OPEN:
            self._transition(BreakerState.OPEN)
            return
        self._window.append(True)
        if len(self._window) == self._window.maxlen:
            failures = sum(1 for failed in self._window if failed)
            if failures / len(self._window) >= self._policy.failure_ratio:
                self._transition(BreakerState.OPEN)

    def release(self, permit: Permit):
        """Libera un permiso sin registrar resultado (llamada cancelada)."""
        if self._is_current(permit) and self._state == BreakerState.HALF_OPEN:
            self._probes_in_flight -= 1


class BreakerRegistry:
    """Breakers del proceso, uno por tipo de operación. Se crea una vez al arrancar."""

    def __init__(self, policy: ResiliencePolicy, clock: Callable[[], float] = time.monotonic):
        self._policy = policy
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, operation: str) -> CircuitBreaker:
        breaker = self._breakers.get(operation)
        if breaker is None:
            breaker = CircuitBreaker(operation, self._policy, self._clock)
            self._breakers[operation] = breaker
        return breaker

    def states(self) -> Dict[str, str]:
        return {name: breaker.state.value for name, breaker in self._breakers.items()}


# Productor de fallback: (operación, parámetros, causa) -> error terminal
FallbackProducer = Callable[[str, Dict[str, Any], BaseException], BackendUnavailableError]


def unavailable(label: str, message: str) -> FallbackProducer:
    """Crea un fallback que registra el fallo y devuelve un BackendUnavailableError con `message`."""
    def producer(operation: str, params: Dict[str, Any], failure: BaseException) -> BackendUnavailableError:
        logger.error(f"FALLBACK ACTIVO ({label}) para {params}. Causa: {failure}")
        FALLBACK_COUNT.labels(operation=operation).inc()
        return BackendUnavailableError(message, operation=operation)
    return producer


class ResilientCaller:
    """Ejecuta llamadas salientes bajo timeout, circuit breaker y fallback."""

    def __init__(self, registry: BreakerRegistry, policy: ResiliencePolicy,
                 fallbacks: Mapping[str, FallbackProducer]):
        self.registry = registry
        self._policy = policy
        self._fallbacks = dict(fallbacks)

    async def call(self, operation: str, fn: Callable[[], Awaitable[T]], **params: Any) -> T:
        """
        Ejecuta `fn` protegida para el tipo de operación `operation`.

        Args:
            operation: Tipo de operación; selecciona breaker y fallback.
            fn: Función sin argumentos que devuelve la corrutina de la llamada remota.
            **params: Parámetros identificativos, solo para los mensajes.

        Returns:
            El resultado de la llamada.

        Raises:
            BackendUnavailableError: si la llamada falló por cualquier motivo.
        """
        fallback = self._fallbacks[operation]
        breaker = self.registry.get(operation)

        try:
            permit = breaker.acquire()
        except CircuitOpenError as exc:
            BACKEND_CALLS.labels(operation=operation, outcome="rejected").inc()
            raise fallback(operation, params, exc) from exc

        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(fn(), timeout=self._policy.timeout)
        except asyncio.TimeoutError:
            breaker.record_failure(permit)
            BACKEND_CALLS.labels(operation=operation, outcome="timeout").inc()
            failure = CallTimeoutError(operation, self._policy.timeout)
            raise fallback(operation, params, failure) from failure
        except asyncio.CancelledError:
            breaker.release(permit)
            raise
        except Exception as exc:
            breaker.record_failure(permit)
            BACKEND_CALLS.labels(operation=operation, outcome="error").inc()
            raise fallback(operation, params, exc) from exc
        finally:
            BACKEND_LATENCY.labels(operation=operation).observe(time.perf_counter() - start_time)

        breaker.record_success(permit)
        BACKEND_CALLS.labels(operation=operation, outcome="success").inc()
        return result
