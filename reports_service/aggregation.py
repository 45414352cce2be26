"""
Lógica de negocio pura de los reportes: saldo disponible, agregación de comisiones
y Saldo Promedio Diario (SPD). Sin I/O; la ausencia de datos nunca es un error.
"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Tuple

from .schemas import Account, CommissionRecord, DailyBalanceSnapshot, ProductType, SnapshotProductType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def available_balance(account: Account) -> Decimal:
    """Saldo disponible: en créditos (ACTIVE) se descuenta lo utilizado; en depósitos es el saldo."""
    if account.product_type == ProductType.ACTIVE:
        amount_used = account.amount_used if account.amount_used is not None else ZERO
        return account.balance - amount_used
    return account.balance


def map_balances(accounts: Iterable[Account]) -> List[Tuple[Account, Decimal]]:
    """Empareja cada cuenta con su saldo disponible, conservando el orden de entrada."""
    return [(account, available_balance(account)) for account in accounts]


def aggregate_commissions(records: List[CommissionRecord]) -> List[Tuple[str, ProductType, Decimal]]:
    """
    Agrupa las comisiones brutas por productName y suma los fees.

    El productType de cada grupo es el del primer registro del grupo; se asume
    consistente dentro del grupo y solo se avisa si no lo es.

    Returns:
        Lista de (productName, productType, totalFees), una entrada por producto.
    """
    if not records:
        logger.info("No se encontraron comisiones en el rango especificado.")
        return []

    logger.debug(f"{len(records)} registros detallados recibidos. Iniciando agregación.")

    groups: Dict[str, List[CommissionRecord]] = defaultdict(list)
    for record in records:
        groups[record.product_name].append(record)

    result = []
    for product_name, items in groups.items():
        product_type = items[0].product_type
        if any(item.product_type != product_type for item in items):
            logger.warning(
                f"Comisiones de '{product_name}' con productType mixto; se usa {product_type.value}"
            )
        total_fees = sum((item.fee for item in items), ZERO)
        result.append((product_name, product_type, total_fees))
    return result


def effective_balance(snapshot: DailyBalanceSnapshot) -> Decimal:
    """Parte del snapshot que cuenta para el SPD: solo el saldo EOD de productos PASSIVE."""
    if snapshot.product_type == SnapshotProductType.PASSIVE:
        return snapshot.balance_eod if snapshot.balance_eod is not None else ZERO
    # Los créditos no cuentan como saldo a favor
    return ZERO


def calculate_daily_average(start_date: date, end_date: date,
                            snapshots: List[DailyBalanceSnapshot]) -> Decimal:
    """
    Saldo Promedio Diario = (suma de saldos EOD PASSIVE) / (días del periodo, inclusive),
    redondeado a 2 decimales con HALF_UP.
    """
    if not snapshots:
        return ZERO.quantize(CENTS)

    total_days = (end_date - start_date).days + 1
    total = sum((effective_balance(snapshot) for snapshot in snapshots), ZERO)
    average = (total / Decimal(total_days)).quantize(CENTS, rounding=ROUND_HALF_UP)

    logger.info(f"SPD calculado: Suma Total: {total} / Días: {total_days} = {average}")
    return average
