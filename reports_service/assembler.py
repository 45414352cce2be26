"""Construcción de los reportes finales a partir de los resultados de la orquestación."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Tuple

from .schemas import (
    Account,
    BalanceReport,
    CommissionReportItem,
    ConsolidatedSummary,
    Customer,
    DailyAverageBalanceReport,
    ProductType,
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_balance_reports(balances: List[Tuple[Account, Decimal]]) -> List[BalanceReport]:
    return [
        BalanceReport(
            account_id=account.id,
            product_type=account.product_type,
            available_balance=available,
        )
        for account, available in balances
    ]


def build_commission_items(groups: List[Tuple[str, ProductType, Decimal]]) -> List[CommissionReportItem]:
    return [
        CommissionReportItem(product_name=name, product_type=product_type, total_fees=total)
        for name, product_type, total in groups
    ]


def build_daily_average_report(customer_id: str, start_date: date, end_date: date,
                               average: Decimal) -> DailyAverageBalanceReport:
    return DailyAverageBalanceReport(
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        daily_average_balance=average,
    )


def full_name(customer: Customer) -> str:
    """Nombre a mostrar. Omite partes nulas; sin nombre personal usa la razón social."""
    parts = [part.strip() for part in (customer.first_name, customer.last_name) if part and part.strip()]
    if parts:
        return " ".join(parts)
    return customer.business_name or ""


def build_consolidated_summary(customer: Customer, accounts: List[Account],
                               clock: Callable[[], str] = utc_now_iso) -> ConsolidatedSummary:
    """Une cliente y productos; estampa processingTimestamp en el momento del ensamblado."""
    return ConsolidatedSummary(
        customer_id=customer.id,
        full_name=full_name(customer),
        products=list(accounts),
        processing_timestamp=clock(),
    )
