# reports_service/utils.py
"""Carga de configuración desde el entorno (.env) para el Reports Service."""

import os
import logging

from dotenv import load_dotenv

from .resilience import ResiliencePolicy

logger = logging.getLogger(__name__)

REQUIRED_VARS = ["ACCOUNT_SERVICE_URL", "CUSTOMER_SERVICE_URL", "TRANSACTIONS_SERVICE_URL"]


def load_env_vars():
    """Carga variables de entorno y verifica que las esenciales existan."""
    load_dotenv()

    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        msg = f"Variables de entorno faltantes: {', '.join(missing)}"
        logger.critical(msg)
        raise EnvironmentError(msg)


def _ms_to_seconds(name: str, default_ms: int) -> float:
    return int(os.getenv(name, default_ms)) / 1000.0


def load_resilience_policy() -> ResiliencePolicy:
    """
    Construye la política de resiliencia a partir del entorno.
    Valores por defecto: timeout 1s, ventana 20, ratio 0.5, delay 5s.
    """
    policy = ResiliencePolicy(
        timeout=_ms_to_seconds("REPORTS_TIMEOUT_MS", 1000),
        request_volume_threshold=int(os.getenv("REPORTS_CB_REQUEST_VOLUME", 20)),
        failure_ratio=float(os.getenv("REPORTS_CB_FAILURE_RATIO", 0.5)),
        delay=_ms_to_seconds("REPORTS_CB_DELAY_MS", 5000),
        success_threshold=int(os.getenv("REPORTS_CB_SUCCESS_THRESHOLD", 1)),
    )
    logger.info(f"Política de resiliencia cargada: {policy}")
    return policy


def load_summary_timeout() -> float:
    """Plazo total (segundos) para la orquestación del resumen consolidado."""
    return _ms_to_seconds("REPORTS_SUMMARY_TIMEOUT_MS", 2500)
