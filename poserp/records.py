"""Journals, suppliers and users."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

import uuid

from bson import ObjectId

from poserp.finance import Transaction, TransactionBase

_UINT32 = 2**32


@dataclass
class Branch:
    name: str = ""
    location: str = ""
    phone: str = ""
    id: str = ""


BRANCH_NAMES: dict[str, Branch] = {
    "Xonobod": Branch(name="Xonobod", location="Xonobod", phone="[phone]"),
    "Yangi Hayot": Branch(
        name="Yangi Hayot",
        location="Yangi Hayot Qo'rg'ontepa mahallasi",
        phone="[phone]",
    ),
    "Polevoy": Branch(name="Polevoy", location="Polevoy Savatchi mahallasi", phone="[phone]"),
}


def does_branch_exist(branch: str) -> bool:
    return branch in BRANCH_NAMES


@dataclass
class Journal:
    branch: Branch = field(default_factory=Branch)
    date: datetime | None = None
    id: ObjectId = field(default_factory=ObjectId)
    shift_is_closed: bool = False
    terminal_income: int = 0
    cash_left: int = 0
    total: int = 0
    operations: list[Transaction] = field(default_factory=list)

    def number_of_operations(self) -> int:
        return len(self.operations)


def sum_of_totals(journals: Iterable[Journal]) -> int:
    """Sum journal totals, wrapping as an unsigned 32-bit counter."""
    return sum(journal.total for journal in journals) % _UINT32


@dataclass
class NewJournalEntryInput:
    branch_name_or_id: str = ""
    date: datetime | None = None


@dataclass
class TotalValueQueryParams:
    min: int = -1
    max: int = 30000000
    use: bool = False


@dataclass
class JournalQueryParams:
    branch_id: str = ""
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = 1
    page_size: int = 10
    total: TotalValueQueryParams = field(default_factory=TotalValueQueryParams)


@dataclass
class JournalOperationInput:
    base: TransactionBase = field(default_factory=TransactionBase)
    supplier_transaction: bool = False
    supplier_id: str = ""


@dataclass
class CloseJournalEntryInput:
    cash_left: int = 0
    terminal_income: int = 0


@dataclass
class SupplierBase:
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    inn: str = ""
    notes: str = ""
    branch: str = ""


@dataclass
class FinancialData:
    balance: int = 0
    transactions: list[Transaction] = field(default_factory=list)
    total_income: int = 0
    total_expenses: int = 0


@dataclass
class Supplier(SupplierBase):
    id: str = ""
    financial_data: FinancialData = field(default_factory=FinancialData)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
        }
        for key in ("email", "inn", "notes"):
            if value := getattr(self, key):
                document[key] = value
        document.update(
            branch=self.branch,
            _id=self.id,
            financial_data={
                "balance": self.financial_data.balance,
                "transactions": [t.to_document() for t in self.financial_data.transactions],
                "total_income": self.financial_data.total_income,
                "total_expenses": self.financial_data.total_expenses,
            },
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Supplier:
        financial = document.get("financial_data") or {}
        return cls(
            name=document.get("name", ""),
            address=document.get("address", ""),
            phone=document.get("phone", ""),
            email=document.get("email", ""),
            inn=document.get("inn", ""),
            notes=document.get("notes", ""),
            branch=document.get("branch", ""),
            id=document.get("_id", ""),
            financial_data=FinancialData(
                balance=financial.get("balance", 0),
                transactions=[
                    Transaction.from_document(t) for t in financial.get("transactions") or []
                ],
                total_income=financial.get("total_income", 0),
                total_expenses=financial.get("total_expenses", 0),
            ),
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )


@dataclass
class User:
    id: str = ""
    email: str = ""
    username: str = ""
    password: str = ""
    role: str = ""
    phone: str = ""
    branch: str = ""


def new_user(
    username: str, password: str, email: str, role: str, phone: str, branch: str
) -> User:
    return User(
        id=str(uuid.uuid4()),
        username=username,
        password=password,
        email=email,
        role=role,
        phone=phone,
        branch=branch,
    )