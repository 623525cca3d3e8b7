"""Transactions, balances and branch finance records."""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, StrEnum
from typing import Any, Mapping, TypeVar

from poserp.utils import get_time_zone

E = TypeVar("E", bound=Enum)


class ValidationError(ValueError):
    """Raised when a value is not one of the accepted choices."""


class TransactionType(StrEnum):
    CREDIT = "credit"  # money received into an account
    DEBIT = "debit"  # money spent or withdrawn


class InitiatorType(StrEnum):
    SALARY = "salary"
    RENT = "rent"
    UTILITIES = "utilities"
    OTHER = "other"
    SALES = "sale"
    SUPPLIER = "supplier"
    BNPL = "bnpl"


class PaymentMethod(StrEnum):
    CASH = "cash"
    BANK = "bank"
    TERMINAL = "terminal"
    ONLINE_PAYMENT = "online_payment"
    CHEQUE = "cheque"
    ONLINE_TRANSFER = "online_transfer"
    UNDEFINED = "undefined"


_VALID_PAYMENT_METHODS = (
    PaymentMethod.CASH,
    PaymentMethod.BANK,
    PaymentMethod.TERMINAL,
    PaymentMethod.ONLINE_PAYMENT,
    PaymentMethod.CHEQUE,
    PaymentMethod.ONLINE_TRANSFER,
)

_VALID_INITIATOR_TYPES = (
    InitiatorType.SALARY,
    InitiatorType.RENT,
    InitiatorType.UTILITIES,
    InitiatorType.OTHER,
    InitiatorType.SALES,
    InitiatorType.SUPPLIER,
)


def _as_enum(enum_cls: type[E], value: Any) -> E | str:
    """Return the enum member for ``value``, or the raw string if it is not one."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def validate_payment_method(payment_method: str) -> PaymentMethod:
    if payment_method not in _VALID_PAYMENT_METHODS:
        raise ValidationError(f"invalid payment method: {payment_method}")
    return PaymentMethod(payment_method)


def validate_transaction_type(transaction_type: str) -> TransactionType:
    if transaction_type not in (TransactionType.CREDIT, TransactionType.DEBIT):
        raise ValidationError("invalid transaction type")
    return TransactionType(transaction_type)


def validate_initiator_type(initiator_type: str) -> InitiatorType:
    if initiator_type not in _VALID_INITIATOR_TYPES:
        raise ValidationError("invalid initiator type")
    return InitiatorType(initiator_type)


@dataclass
class TransactionBase:
    amount: int = 0
    description: str = ""
    type: TransactionType | str = ""
    payment_method: PaymentMethod | str = ""

    def to_document(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "description": self.description,
            "type": str(self.type),
            "payment_method": str(self.payment_method),
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> TransactionBase:
        document = document or {}
        return cls(
            amount=document.get("amount", 0),
            description=document.get("description", ""),
            type=_as_enum(TransactionType, document.get("type", "")),
            payment_method=_as_enum(PaymentMethod, document.get("payment_method", "")),
        )


def new_transaction_base(
    amount: int, description: str, transaction_type: TransactionType | str
) -> TransactionBase:
    return TransactionBase(amount=amount, description=description, type=transaction_type)


@dataclass
class Transaction:
    base: TransactionBase
    initiator_type: InitiatorType | str
    id: str = ""
    branch_id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def amount(self) -> int:
        return self.base.amount

    @property
    def description(self) -> str:
        return self.base.description

    @property
    def payment_method(self) -> PaymentMethod | str:
        return self.base.payment_method

    def to_document(self) -> dict[str, Any]:
        return {
            "transactionbase": self.base.to_document(),
            "type": str(self.initiator_type),
            "_id": self.id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "branch_id": self.branch_id,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Transaction:
        return cls(
            base=TransactionBase.from_document(document.get("transactionbase")),
            initiator_type=_as_enum(InitiatorType, document.get("type", "")),
            id=document.get("_id", ""),
            branch_id=document.get("branch_id", ""),
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )


def new_transaction(
    base: TransactionBase, initiator_type: InitiatorType | str, branch_id: str
) -> Transaction:
    """Create a transaction with a fresh id, stamped in the business time zone."""
    now = datetime.now(get_time_zone())
    return Transaction(
        base=dataclasses.replace(base),
        initiator_type=initiator_type,
        id=str(uuid.uuid4()),
        branch_id=branch_id,
        created_at=now,
        updated_at=now,
    )


@dataclass
class TransactionQueryParams:
    description: str = ""
    amount_min: int = 0
    amount_max: int = 0
    date_min: datetime | None = None
    date_max: datetime | None = None
    payment_method: str = ""
    type_of_transaction: str = ""
    initiator_type: str = ""
    count: int = 0
    page: int = 0

    def validate(self) -> None:
        """Raise ``ValidationError`` for any set choice field with a bad value."""
        if self.payment_method:
            validate_payment_method(self.payment_method)
        if self.type_of_transaction:
            validate_transaction_type(self.type_of_transaction)
        if self.initiator_type:
            validate_initiator_type(self.initiator_type)


@dataclass
class Balance:
    cash: int = 0
    bank: int = 0
    terminal: int = 0
    mobile_apps: int = 0

    def to_document(self) -> dict[str, int]:
        return dataclasses.asdict(self)

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> Balance:
        document = document or {}
        return cls(**{f.name: document.get(f.name, 0) for f in dataclasses.fields(cls)})


@dataclass
class Finance:
    balance: Balance = field(default_factory=Balance)
    total_income: int = 0
    total_expenses: int = 0
    debt: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "balance": self.balance.to_document(),
            "total_income": self.total_income,
            "total_expenses": self.total_expenses,
            "debt": self.debt,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> Finance:
        document = document or {}
        return cls(
            balance=Balance.from_document(document.get("balance")),
            total_income=document.get("total_income", 0),
            total_expenses=document.get("total_expenses", 0),
            debt=document.get("debt", 0),
        )


@dataclass
class BranchFinance:
    finance: Finance = field(default_factory=Finance)
    suppliers: list[str] = field(default_factory=list)
    branch_id: str = ""
    branch_name: str = ""
    details: Any = None

    def to_document(self) -> dict[str, Any]:
        return {
            "finance": self.finance.to_document(),
            "suppliers": list(self.suppliers),
            "branch_id": self.branch_id,
            "branch_name": self.branch_name,
            "details": self.details,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> BranchFinance:
        return cls(
            finance=Finance.from_document(document.get("finance")),
            suppliers=list(document.get("suppliers") or []),
            branch_id=document.get("branch_id", ""),
            branch_name=document.get("branch_name", ""),
            details=document.get("details"),
        )


@dataclass
class NewBranchFinanceInput:
    branch_name: str = ""
    details: Any = None