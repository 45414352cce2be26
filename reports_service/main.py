"""Servicio FastAPI de reportes. Orquesta los servicios de cuentas, clientes y transacciones."""

import asyncio
import logging
import os
import time
from datetime import date
from typing import List, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from . import schemas
from .clients import AccountServiceClient, CustomerServiceClient, TransactionsServiceClient
from .exceptions import BackendUnavailableError, ValidationError
from .orchestrator import ReportsOrchestrator
from .resilience import BreakerRegistry
from .utils import load_env_vars, load_resilience_policy, load_summary_timeout

# Configura logger
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Reports Service",
    description="Genera reportes de saldos, movimientos, comisiones, SPD y resumen consolidado.",
    version="1.0.0"
)

# --- Métricas Prometheus ---
REQUEST_COUNT = Counter("reports_requests_total", "Total requests", ["method", "endpoint", "status_code"])
REQUEST_LATENCY = Histogram("reports_request_latency_seconds", "Request latency", ["endpoint"])


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = None
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as exc:
        logger.error(f"Middleware error: {exc}", exc_info=True)
        response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
    finally:
        latency = time.time() - start_time
        endpoint = request.url.path
        if endpoint.startswith("/reports/consolidated/"):
            endpoint = "/reports/consolidated/{customer_id}"
        final_status_code = getattr(response, 'status_code', status_code)
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status_code=final_status_code).inc()
    return response


# --- Manejadores de errores del core ---

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validación fallida en {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Parámetros inválidos en {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Parámetros de consulta inválidos."})


@app.exception_handler(BackendUnavailableError)
async def backend_unavailable_handler(request: Request, exc: BackendUnavailableError):
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


# --- Ciclo de vida ---

@app.on_event("startup")
async def startup_event():
    """Crea el cliente HTTP compartido, el registro de breakers y el orquestador."""
    load_env_vars()
    policy = load_resilience_policy()
    client = httpx.AsyncClient()
    registry = BreakerRegistry(policy)

    app.state.http_client = client
    app.state.registry = registry
    app.state.summary_timeout = load_summary_timeout()
    app.state.orchestrator = ReportsOrchestrator.build(
        AccountServiceClient(client, os.getenv("ACCOUNT_SERVICE_URL")),
        CustomerServiceClient(client, os.getenv("CUSTOMER_SERVICE_URL")),
        TransactionsServiceClient(client, os.getenv("TRANSACTIONS_SERVICE_URL")),
        policy,
        registry,
    )
    logger.info("Reports Service iniciado.")


@app.on_event("shutdown")
async def shutdown_event():
    """Cierra el cliente HTTP al apagar la aplicación."""
    client = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
        logger.info("Cliente HTTP del Reports Service cerrado.")


def get_orchestrator(request: Request) -> ReportsOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        logger.error("Orquestador no inicializado.")
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Servicio de reportes no inicializado.")
    return orchestrator


def get_summary_timeout(request: Request) -> float:
    return getattr(request.app.state, "summary_timeout", None) or load_summary_timeout()


def get_registry(request: Request) -> Optional[BreakerRegistry]:
    return getattr(request.app.state, "registry", None)


# --- Endpoints de Salud y Métricas ---

@app.get("/metrics", tags=["Monitoring"])
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health", tags=["Monitoring"])
def health_check(registry: Optional[BreakerRegistry] = Depends(get_registry)):
    return {
        "status": "ok",
        "service": "reports_service",
        "circuit_breakers": registry.states() if registry else {},
    }


# --- Endpoints de Reportes ---

@app.get("/reports/balances", response_model=List[schemas.BalanceReport], tags=["Reports"])
async def get_balances(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    orchestrator: ReportsOrchestrator = Depends(get_orchestrator),
):
    """Saldos disponibles de todas las cuentas y tarjetas de un cliente."""
    balances = await orchestrator.get_balances(customer_id)
    if not balances:
        logger.warning(f"No se encontraron cuentas para el cliente: {customer_id}")
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No se encontraron cuentas.")
    return balances


@app.get("/reports/movements", response_model=List[schemas.Transaction], tags=["Reports"])
async def get_movements(
    account_id: Optional[str] = Query(None, alias="accountId"),
    orchestrator: ReportsOrchestrator = Depends(get_orchestrator),
):
    """Movimientos de una cuenta bancaria o tarjeta de crédito."""
    transactions = await orchestrator.get_transactions(account_id)
    if not transactions:
        logger.warning(f"No se encontraron movimientos para la cuenta: {account_id}")
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No se encontraron movimientos.")
    return transactions


@app.get("/reports/commissions", response_model=List[schemas.CommissionReportItem], tags=["Reports"])
async def get_commissions(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    orchestrator: ReportsOrchestrator = Depends(get_orchestrator),
):
    """Suma de comisiones cobradas por producto en un rango de fechas."""
    items = await orchestrator.get_commissions_report(start_date, end_date)
    if not items:
        logger.warning(f"No se encontraron comisiones en el rango {start_date} a {end_date}")
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No se encontraron comisiones para generar el reporte.")
    logger.info(f"Reporte de comisiones generado. {len(items)} productos agregados.")
    return items


@app.get("/reports/daily-average-balance", response_model=schemas.DailyAverageBalanceReport, tags=["Reports"])
async def get_daily_average_balance(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    orchestrator: ReportsOrchestrator = Depends(get_orchestrator),
):
    """Saldo Promedio Diario (SPD) de un cliente en un rango de fechas."""
    return await orchestrator.get_daily_average_balance(customer_id, start_date, end_date)


@app.get("/reports/consolidated/{customer_id}", response_model=schemas.ConsolidatedSummary, tags=["Reports"])
async def get_consolidated_summary(
    customer_id: str,
    orchestrator: ReportsOrchestrator = Depends(get_orchestrator),
    summary_timeout: float = Depends(get_summary_timeout),
):
    """Datos del cliente y todos sus productos, obtenidos en paralelo."""
    try:
        return await asyncio.wait_for(orchestrator.get_consolidated_summary(customer_id), timeout=summary_timeout)
    except asyncio.TimeoutError:
        logger.error(f"Resumen consolidado para {customer_id} superó el plazo de {summary_timeout}s")
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "El resumen consolidado superó el tiempo máximo.")
