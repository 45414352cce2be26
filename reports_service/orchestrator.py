"""
Orquestación de los reportes.

Cada operación compone una o varias llamadas a los servicios backend, siempre a
través del ResilientCaller, y delega el cálculo en `aggregation` y la forma
final en `assembler`.
"""

import asyncio
import logging
from datetime import date
from typing import Dict, List, Optional

from . import aggregation, assembler
from .clients import AccountServiceClient, CustomerServiceClient, TransactionsServiceClient
from .exceptions import ValidationError
from .resilience import BreakerRegistry, FallbackProducer, ResiliencePolicy, ResilientCaller, unavailable
from .schemas import (
    BalanceReport,
    CommissionReportItem,
    ConsolidatedSummary,
    DailyAverageBalanceReport,
    Transaction,
)

logger = logging.getLogger(__name__)

# --- Tipos de operación protegidos (uno por breaker) ---
BALANCES = "balances"
TRANSACTIONS = "transactions"
COMMISSIONS = "commissions"
DAILY_AVERAGE_BALANCE = "daily_average_balance"
SUMMARY_CUSTOMER = "summary_customer"
SUMMARY_ACCOUNTS = "summary_accounts"

_QUICK_QUERY_MESSAGE = "El servicio de reportes rápidos está temporalmente no disponible."
_SUMMARY_MESSAGE = ("El servicio de resumen consolidado está inoperativo. "
                    "No se pudo completar la orquestación de datos.")

FALLBACKS: Dict[str, FallbackProducer] = {
    BALANCES: unavailable("Consulta Rápida", _QUICK_QUERY_MESSAGE),
    TRANSACTIONS: unavailable("Consulta Rápida", _QUICK_QUERY_MESSAGE),
    COMMISSIONS: unavailable(
        "Comisiones",
        "El servicio de reporte de comisiones está inoperativo. No se pudieron obtener los datos brutos.",
    ),
    DAILY_AVERAGE_BALANCE: unavailable(
        "SPD",
        "El servicio de reporte SPD está inoperativo. No se pudieron obtener datos históricos.",
    ),
    SUMMARY_CUSTOMER: unavailable("Resumen Consolidado - Cliente", _SUMMARY_MESSAGE),
    SUMMARY_ACCOUNTS: unavailable("Resumen Consolidado - Productos", _SUMMARY_MESSAGE),
}


def _require_id(value: Optional[str], message: str):
    if value is None or not value.strip():
        raise ValidationError(message)


def validate_customer_id(customer_id: Optional[str]):
    _require_id(customer_id, "El ID de cliente es obligatorio.")


def validate_account_id(account_id: Optional[str]):
    _require_id(account_id, "El ID de cuenta es obligatorio.")


def validate_date_range(start_date: Optional[date], end_date: Optional[date]):
    if start_date is None or end_date is None:
        raise ValidationError("startDate y endDate son requeridos.")
    if start_date > end_date:
        raise ValidationError("startDate no puede ser posterior a endDate.")


class ReportsOrchestrator:
    """Expone las cinco operaciones de reporte del servicio."""

    def __init__(self, accounts: AccountServiceClient, customers: CustomerServiceClient,
                 transactions: TransactionsServiceClient, caller: ResilientCaller):
        self.accounts = accounts
        self.customers = customers
        self.transactions = transactions
        self.caller = caller

    @classmethod
    def build(cls, accounts: AccountServiceClient, customers: CustomerServiceClient,
              transactions: TransactionsServiceClient, policy: ResiliencePolicy,
              registry: Optional[BreakerRegistry] = None) -> "ReportsOrchestrator":
        """Crea el orquestador con la tabla de fallbacks estándar."""
        caller = ResilientCaller(registry or BreakerRegistry(policy), policy, FALLBACKS)
        return cls(accounts, customers, transactions, caller)

    async def get_balances(self, customer_id: str) -> List[BalanceReport]:
        validate_customer_id(customer_id)
        logger.info(f"Iniciando reporte de saldos para el cliente: {customer_id}")
        accounts = await self.caller.call(
            BALANCES,
            lambda: self.accounts.get_accounts_by_customer(customer_id),
            customer_id=customer_id,
        )
        logger.info(f"Se encontraron {len(accounts)} cuentas para el cliente: {customer_id}")
        return assembler.build_balance_reports(aggregation.map_balances(accounts))

    async def get_transactions(self, account_id: str) -> List[Transaction]:
        validate_account_id(account_id)
        logger.info(f"Iniciando reporte de movimientos para la cuenta: {account_id}")
        transactions = await self.caller.call(
            TRANSACTIONS,
            lambda: self.transactions.get_transactions_by_account(account_id),
            account_id=account_id,
        )
        logger.info(f"Se encontraron {len(transactions)} movimientos para la cuenta: {account_id}")
        return transactions

    async def get_commissions_report(self, start_date: date, end_date: date) -> List[CommissionReportItem]:
        validate_date_range(start_date, end_date)
        logger.info(f"Iniciando reporte de comisiones para rango: {start_date} a {end_date}")

        records = await self.caller.call(
            COMMISSIONS,
            lambda: self.transactions.get_commissions_report_data(start_date, end_date),
            start_date=start_date,
            end_date=end_date,
        )
        return assembler.build_commission_items(aggregation.aggregate_commissions(records))

    async def get_daily_average_balance(self, customer_id: str, start_date: date,
                                        end_date: date) -> DailyAverageBalanceReport:
        """
        Saldo Promedio Diario (SPD) de un cliente.

        Raises:
            ValidationError: ID vacío o rango de fechas inválido (sin llamada remota).
            BackendUnavailableError: el historial de saldos no pudo obtenerse.
        """
        validate_customer_id(customer_id)
        validate_date_range(start_date, end_date)
        logger.info(f"SPD cálculo iniciado para customerId: {customer_id}, rango: [{start_date} - {end_date}]")

        snapshots = await self.caller.call(
            DAILY_AVERAGE_BALANCE,
            lambda: self.accounts.get_daily_balances_by_customer(customer_id, start_date, end_date),
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
        )
        if not snapshots:
            logger.warning(f"SPD: No se encontró historial para customerId {customer_id} en el rango.")

        average = aggregation.calculate_daily_average(start_date, end_date, snapshots)
        return assembler.build_daily_average_report(customer_id, start_date, end_date, average)

    async def get_consolidated_summary(self, customer_id: str) -> ConsolidatedSummary:
        """
        Resumen consolidado: cliente y productos se piden en paralelo, cada llamada
        con su propia protección. Si cualquiera falla, falla la operación completa
        (gana el primer fallo); nunca se devuelve un resumen parcial.
        """
        validate_customer_id(customer_id)
        logger.info(f"Iniciando orquestación de resumen consolidado para cliente: {customer_id}")

        customer_call = self.caller.call(
            SUMMARY_CUSTOMER,
            lambda: self.customers.get_customer_by_id(customer_id),
            customer_id=customer_id,
        )
        accounts_call = self.caller.call(
            SUMMARY_ACCOUNTS,
            lambda: self.accounts.get_accounts_by_customer(customer_id),
            customer_id=customer_id,
        )
        try:
            customer, accounts = await asyncio.gather(customer_call, accounts_call)
        except Exception as exc:
            logger.error(f"Fallo en la orquestación consolidada para cliente {customer_id}. Causa: {exc}")
            raise

        logger.debug(f"Consolidando {len(accounts)} productos para cliente {customer.id}")
        return assembler.build_consolidated_summary(customer, accounts)
