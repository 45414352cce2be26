# tests/test_clients.py
from datetime import date
from decimal import Decimal

import httpx
import pytest

from reports_service.clients import AccountServiceClient, CustomerServiceClient, TransactionsServiceClient
from reports_service.schemas import CustomerType, ProductType, SnapshotProductType, TransactionType

from .conftest import (
    ACCOUNTS_URL,
    CUSTOMERS_URL,
    TRANSACTIONS_URL,
    account_payload,
    commission_payload,
    customer_payload,
    snapshot_payload,
    transaction_payload,
)


@pytest.mark.asyncio
async def test_accounts_are_decoded_from_camel_case(backend, http_client):
    backend.json("/accounts", [account_payload("A1", "ACTIVE", "1500.00", "200.00", creditType="CREDIT_CARD")])
    client = AccountServiceClient(http_client, ACCOUNTS_URL + "/")

    [account] = await client.get_accounts_by_customer("C1")

    assert account.product_type == ProductType.ACTIVE
    assert account.amount_used == Decimal("200.00")
    assert account.account_number == "00A1"
    assert backend.requests[0].url.params["customerId"] == "C1"
    assert str(backend.requests[0].url).startswith("http://accounts.test/accounts?")


@pytest.mark.asyncio
async def test_daily_balances_send_iso_dates_and_keep_snapshot_enum(backend, http_client):
    backend.json("/accounts/daily-balances", [snapshot_payload("2025-01-02", "10.50")])
    client = AccountServiceClient(http_client, ACCOUNTS_URL)

    [snapshot] = await client.get_daily_balances_by_customer("C1", date(2025, 1, 1), date(2025, 1, 31))

    params = backend.requests[0].url.params
    assert (params["startDate"], params["endDate"]) == ("2025-01-01", "2025-01-31")
    assert snapshot.product_type == SnapshotProductType.PASSIVE
    assert snapshot.product_type != ProductType.PASSIVE
    assert snapshot.snapshot_date == date(2025, 1, 2)
    assert snapshot.balance_eod == Decimal("10.50")


@pytest.mark.asyncio
async def test_customer_is_fetched_by_path(backend, http_client):
    backend.json("/customers/C9", customer_payload("C9", type="BUSINESS", businessName="ACME SAC", ruc="20123456789"))
    client = CustomerServiceClient(http_client, CUSTOMERS_URL)

    customer = await client.get_customer_by_id("C9")

    assert customer.type == CustomerType.BUSINESS
    assert customer.business_name == "ACME SAC"


@pytest.mark.asyncio
async def test_transactions_and_commissions(backend, http_client):
    backend.json("/transactions", [transaction_payload("T1", "CONSUMPTION", "12.30")])
    backend.json("/transactions/commissions", [commission_payload("CREDIT_CARD", "1.25", "ACTIVE")])
    client = TransactionsServiceClient(http_client, TRANSACTIONS_URL)

    [transaction] = await client.get_transactions_by_account("A1")
    [record] = await client.get_commissions_report_data(date(2025, 1, 1), date(2025, 1, 31))

    assert transaction.type == TransactionType.CONSUMPTION
    assert transaction.amount == Decimal("12.30")
    assert record.fee == Decimal("1.25")
    assert backend.requests[0].url.params["accountId"] == "A1"


@pytest.mark.asyncio
async def test_error_status_raises(backend, http_client):
    backend.json("/customers/C1", {"detail": "boom"}, status_code=500)
    client = CustomerServiceClient(http_client, CUSTOMERS_URL)

    with pytest.raises(httpx.HTTPStatusError):
        await client.get_customer_by_id("C1")


@pytest.mark.asyncio
async def test_unknown_or_null_snapshot_product_type_decodes_as_none(backend, http_client):
    backend.json("/accounts/daily-balances", [
        snapshot_payload("2025-01-01", "100"),
        snapshot_payload("2025-01-02", "50", product_type=None),
        snapshot_payload("2025-01-02", "70", product_type="LOAN"),
    ])
    client = AccountServiceClient(http_client, ACCOUNTS_URL)

    snapshots = await client.get_daily_balances_by_customer("C1", date(2025, 1, 1), date(2025, 1, 2))

    assert [s.product_type for s in snapshots] == [SnapshotProductType.PASSIVE, None, None]
    assert snapshots[2].balance_eod == Decimal("70")


@pytest.mark.asyncio
async def test_json_numbers_keep_every_digit(backend, http_client):
    backend.raw_json(
        "/transactions/commissions",
        '[{"productType": "PASSIVE", "productName": "BIG", "fee": 1234567890123456.78}]',
    )
    client = TransactionsServiceClient(http_client, TRANSACTIONS_URL)

    [record] = await client.get_commissions_report_data(date(2025, 1, 1), date(2025, 1, 31))

    assert record.fee == Decimal("1234567890123456.78")
