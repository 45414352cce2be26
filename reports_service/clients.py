"""Clientes HTTP asíncronos para los servicios backend (account, customer, transactions)."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter

from .schemas import Account, CommissionRecord, Customer, DailyBalanceSnapshot, Transaction

logger = logging.getLogger(__name__)

_ACCOUNTS = TypeAdapter(List[Account])
_SNAPSHOTS = TypeAdapter(List[DailyBalanceSnapshot])
_TRANSACTIONS = TypeAdapter(List[Transaction])
_COMMISSIONS = TypeAdapter(List[CommissionRecord])


class BaseServiceClient:
    """Cliente base. Cualquier respuesta 4xx/5xx se convierte en excepción (raise_for_status)."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, service_name: str):
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.service_name = service_name

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"Llamando a {self.service_name}: GET {url} {params or ''}")
        response = await self._client.get(url, params=params)
        response.raise_for_status()
        # Los importes JSON se leen como Decimal para no perder dígitos
        return response.json(parse_float=Decimal)


class AccountServiceClient(BaseServiceClient):
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        super().__init__(client, base_url, "account-service")

    async def get_accounts_by_customer(self, customer_id: str) -> List[Account]:
        data = await self._get("/accounts", params={"customerId": customer_id})
        return _ACCOUNTS.validate_python(data)

    async def get_daily_balances_by_customer(self, customer_id: str, start_date: date,
                                             end_date: date) -> List[DailyBalanceSnapshot]:
        """Historial de saldos EOD de todos los productos del cliente en el rango (inclusive)."""
        data = await self._get(
            "/accounts/daily-balances",
            params={
                "customerId": customer_id,
                "startDate": start_date.isoformat(),
                "endDate": end_date.isoformat(),
            },
        )
        return _SNAPSHOTS.validate_python(data)


class CustomerServiceClient(BaseServiceClient):
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        super().__init__(client, base_url, "customer-service")

    async def get_customer_by_id(self, customer_id: str) -> Customer:
        data = await self._get(f"/customers/{customer_id}")
        return Customer.model_validate(data)


class TransactionsServiceClient(BaseServiceClient):
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        super().__init__(client, base_url, "transactions-service")

    async def get_transactions_by_account(self, account_id: str) -> List[Transaction]:
        data = await self._get("/transactions", params={"accountId": account_id})
        return _TRANSACTIONS.validate_python(data)

    async def get_commissions_report_data(self, start_date: date, end_date: date) -> List[CommissionRecord]:
        """Detalle de comisiones (una por transacción) en el rango de fechas."""
        data = await self._get(
            "/transactions/commissions",
            params={"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
        )
        return _COMMISSIONS.validate_python(data)
