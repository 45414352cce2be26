"""Modelos Pydantic (schemas) de los contratos con los servicios backend y de los reportes generados."""

import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class FrozenModel(BaseModel):
    """Base inmutable. Los backends hablan camelCase; internamente usamos snake_case."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# --- Enumeraciones ---

class ProductType(str, enum.Enum):
    """Clasificación del producto según el account-service."""
    ACTIVE = "ACTIVE"    # Crédito (activo del banco)
    PASSIVE = "PASSIVE"  # Depósito (pasivo del banco)


class SnapshotProductType(enum.Enum):
    """
    Clasificación usada por el historial de saldos diarios.
    Comparte vocabulario con ProductType pero viene de otro contrato; no se unifican.
    No hereda de str, así que nunca es igual a un ProductType.
    """
    ACTIVE = "ACTIVE"
    PASSIVE = "PASSIVE"


class CreditType(str, enum.Enum):
    PERSONAL = "PERSONAL"
    BUSINESS = "BUSINESS"
    CREDIT_CARD = "CREDIT_CARD"


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"          # Depósito de dinero en una cuenta
    WITHDRAWAL = "WITHDRAWAL"    # Retiro de dinero de una cuenta
    PAYMENT = "PAYMENT"          # Pago de créditos
    CONSUMPTION = "CONSUMPTION"  # Consumo con tarjeta de débito o crédito


class CustomerType(str, enum.Enum):
    PERSONAL = "PERSONAL"
    BUSINESS = "BUSINESS"


# --- Contratos de los servicios backend ---

class Account(FrozenModel):
    """Cuenta o producto de un cliente, tal como lo devuelve el account-service."""
    id: str
    customer_id: Optional[str] = None
    account_number: Optional[str] = None
    product_type: ProductType
    account_type: Optional[str] = None
    credit_type: Optional[CreditType] = None
    balance: Decimal
    # Solo tiene sentido para productos ACTIVE
    amount_used: Optional[Decimal] = None
    opening_date: Optional[datetime] = None
    monthly_movements: Optional[int] = None
    specific_deposit_date: Optional[datetime] = None
    status: Optional[str] = None
    holders: List[str] = Field(default_factory=list)
    signatories: List[str] = Field(default_factory=list)


class Transaction(FrozenModel):
    """Movimiento de una cuenta (transactions-service)."""
    id: str
    account_id: Optional[str] = None
    customer_id: Optional[str] = None
    type: TransactionType = Field(alias="transactionType")
    amount: Decimal
    timestamp: Optional[datetime] = Field(default=None, alias="transactionDate")
    description: Optional[str] = None


class DailyBalanceSnapshot(FrozenModel):
    """Saldo al final del día (EOD) de un producto."""
    product_id: str
    account_type: Optional[str] = None
    # None si el historial trae un productType nulo o desconocido; no suma al SPD
    product_type: Optional[SnapshotProductType] = None
    snapshot_date: date = Field(alias="date")
    balance_eod: Optional[Decimal] = Field(default=None, alias="balanceEOD")
    amount_used_eod: Optional[Decimal] = Field(default=None, alias="amountUsedEOD")

    @field_validator("product_type", mode="before")
    @classmethod
    def unknown_product_type_as_none(cls, value):
        if value is None or isinstance(value, SnapshotProductType):
            return value
        try:
            return SnapshotProductType(value)
        except ValueError:
            logger.warning(f"productType desconocido en historial de saldos: {value!r}; se ignora")
            return None


class CommissionRecord(FrozenModel):
    """Comisión cobrada en una transacción (registro bruto)."""
    account_id: Optional[str] = None
    product_type: ProductType
    product_name: str
    fee: Decimal
    transaction_date: Optional[datetime] = None


class Customer(FrozenModel):
    """Datos personales o empresariales del cliente (customer-service)."""
    id: str
    type: Optional[CustomerType] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dni: Optional[str] = None
    business_name: Optional[str] = None
    ruc: Optional[str] = None
    legal_representative: Optional[str] = None


# --- Reportes ---

class BalanceReport(FrozenModel):
    account_id: str
    product_type: ProductType
    available_balance: Decimal


class CommissionReportItem(FrozenModel):
    """Línea agregada del reporte de comisiones, una por producto."""
    product_name: str
    product_type: ProductType
    total_fees: Decimal


class DailyAverageBalanceReport(FrozenModel):
    """Resultado del cálculo del Saldo Promedio Diario (SPD)."""
    customer_id: str
    start_date: date
    end_date: date
    daily_average_balance: Decimal


class ConsolidatedSummary(FrozenModel):
    """Datos del cliente junto con todos sus productos."""
    customer_id: str
    full_name: str
    products: List[Account]
    processing_timestamp: str
