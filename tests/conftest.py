# tests/conftest.py
import asyncio
import inspect
from typing import Any, Callable, Dict, List

import httpx
import pytest

from reports_service.clients import AccountServiceClient, CustomerServiceClient, TransactionsServiceClient
from reports_service.orchestrator import ReportsOrchestrator
from reports_service.resilience import BreakerRegistry, ResiliencePolicy

ACCOUNTS_URL = "http://accounts.test"
CUSTOMERS_URL = "http://customers.test"
TRANSACTIONS_URL = "http://transactions.test"


class FakeClock:
    """Reloj manual para controlar el delay de los circuit breakers."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeBackend:
    """
    Simula los tres servicios backend detrás de un httpx.MockTransport.
    Las rutas se registran por path; los handlers pueden ser síncronos o async.
    """

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], Any]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, path: str, handler: Callable[[httpx.Request], Any]):
        self.routes[path] = handler

    def json(self, path: str, payload: Any, status_code: int = 200):
        self.on(path, lambda request: httpx.Response(status_code, json=payload))

    def raw_json(self, path: str, body: str):
        """Responde con el JSON literal, sin pasar por floats de Python."""
        self.on(path, lambda request: httpx.Response(
            200, content=body.encode(), headers={"content-type": "application/json"}))

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result


def account_payload(account_id: str = "A1", product_type: str = "PASSIVE", balance: Any = 100,
                    amount_used: Any = None, **extra) -> Dict[str, Any]:
    payload = {
        "id": account_id,
        "customerId": "C1",
        "accountNumber": f"00{account_id}",
        "productType": product_type,
        "accountType": "SAVINGS",
        "balance": balance,
        "amountUsed": amount_used,
        "openingDate": "2025-01-10T09:30:00",
        "monthlyMovements": 3,
        "status": "ACTIVE",
        "holders": ["C1"],
        "signatories": [],
    }
    payload.update(extra)
    return payload


def customer_payload(customer_id: str = "C1", **extra) -> Dict[str, Any]:
    payload = {
        "id": customer_id,
        "type": "PERSONAL",
        "email": "ana@example.com",
        "phone": "999888777",
        "firstName": "Ana",
        "lastName": "Torres",
        "dni": "12345678",
    }
    payload.update(extra)
    return payload


def snapshot_payload(day: str, balance_eod: Any, product_type: str = "PASSIVE",
                     product_id: str = "A1") -> Dict[str, Any]:
    return {
        "productId": product_id,
        "accountType": "SAVINGS",
        "productType": product_type,
        "date": day,
        "balanceEOD": balance_eod,
        "amountUsedEOD": None,
    }


def commission_payload(product_name: str, fee: Any, product_type: str = "PASSIVE",
                       account_id: str = "A1") -> Dict[str, Any]:
    return {
        "accountId": account_id,
        "productType": product_type,
        "productName": product_name,
        "fee": fee,
        "transactionDate": "2025-01-15T10:00:00",
    }


def transaction_payload(tx_id: str = "T1", tx_type: str = "DEPOSIT", amount: Any = "50.00") -> Dict[str, Any]:
    return {
        "id": tx_id,
        "accountId": "A1",
        "customerId": "C1",
        "transactionType": tx_type,
        "amount": amount,
        "transactionDate": "2025-01-15T10:00:00",
        "description": "Depósito en ventanilla",
    }


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> ResiliencePolicy:
    return ResiliencePolicy(timeout=0.5, request_volume_threshold=4, failure_ratio=0.5,
                            delay=5.0, success_threshold=1)


@pytest.fixture
def http_client(backend):
    """AsyncClient sobre el FakeBackend, cerrado al terminar el test."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    yield client
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(client.aclose())
    finally:
        loop.close()


@pytest.fixture
def make_orchestrator(http_client, policy, clock):
    """Fábrica de orquestadores conectados al FakeBackend."""
    def factory(policy_override: ResiliencePolicy = None) -> ReportsOrchestrator:
        effective = policy_override or policy
        return ReportsOrchestrator.build(
            AccountServiceClient(http_client, ACCOUNTS_URL),
            CustomerServiceClient(http_client, CUSTOMERS_URL),
            TransactionsServiceClient(http_client, TRANSACTIONS_URL),
            effective,
            BreakerRegistry(effective, clock),
        )
    return factory
