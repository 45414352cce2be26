"""Jerarquía de errores del Reports Service."""

from typing import Optional


class ReportsError(Exception):
    """Error base de todos los fallos del servicio de reportes."""


class ValidationError(ReportsError):
    """Parámetros de entrada inválidos. Se detecta antes de cualquier llamada remota."""


class CallTimeoutError(ReportsError):
    """Una llamada protegida superó su tiempo máximo."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"La operación '{operation}' superó el timeout de {timeout:.3f}s")


class CircuitOpenError(ReportsError):
    """El circuit breaker de la operación está abierto; la llamada no se intentó."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Circuit breaker abierto para la operación '{operation}'")


class BackendUnavailableError(ReportsError):
    """
    Fallo terminal producido por el fallback cuando la llamada remota no pudo completarse.
    Es el único error de llamadas remotas que cruza la frontera del core.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)
