"""Supplier transactions and their effect on supplier and branch finances."""

from __future__ import annotations

import logging
from typing import Any

from poserp.finance import (
    InitiatorType,
    PaymentMethod,
    Transaction,
    TransactionBase,
    TransactionType,
    new_transaction,
)

log = logging.getLogger(__name__)


class SupplierNotFound(LookupError):
    """Raised when the supplier of a transaction does not exist."""


def _is_credit(transaction: Transaction) -> bool:
    return transaction.base.type == TransactionType.CREDIT


def _is_debit(transaction: Transaction) -> bool:
    return transaction.base.type == TransactionType.DEBIT


def supplier_update(transaction: Transaction) -> dict[str, Any]:
    """Build the update that records a transaction on the supplier.

    A credit (we paid the supplier) raises the supplier's balance and income;
    a debit (the supplier delivered to us) lowers the balance and adds to expenses.
    """
    amount = transaction.amount
    return {
        "$push": {"financial_data.transactions": transaction.to_document()},
        "$inc": {
            "financial_data.balance": amount if _is_credit(transaction) else -amount,
            "financial_data.total_income": amount if _is_credit(transaction) else 0,
            "financial_data.total_expenses": amount if _is_debit(transaction) else 0,
        },
    }


def branch_finance_update(transaction: Transaction) -> dict[str, Any]:
    """Build the update that moves the branch's debt and balance for a supplier transaction."""
    amount = transaction.amount
    if _is_debit(transaction):
        debt = amount
    elif _is_credit(transaction):
        debt = -amount
    else:
        debt = 0
    increments: dict[str, int] = {"finance.debt": debt}

    paid_out = -amount if _is_credit(transaction) else 0
    method = str(transaction.payment_method)
    if method == PaymentMethod.CASH:
        increments["finance.balance.cash"] = paid_out
    elif method in (PaymentMethod.BANK, PaymentMethod.ONLINE_PAYMENT):
        increments["finance.balance.bank"] = paid_out
    elif method == PaymentMethod.ONLINE_TRANSFER:
        increments["finance.balance.mobile_apps"] = paid_out
    return {"$inc": increments}


def new_supplier_transaction(
    base: TransactionBase,
    supplier_id: str,
    branch_id: str,
    transactions: Any,
    finances: Any,
    suppliers: Any,
    session: Any = None,
) -> Transaction:
    """Store a supplier transaction and update the supplier and branch finances."""
    transaction = new_transaction(base, InitiatorType.SUPPLIER, branch_id)
    log.info("created supplier transaction %s (%s)", transaction.id, transaction.base.type)

    transactions.insert_one(transaction.to_document(), session=session)

    result = suppliers.update_one(
        {"_id": supplier_id}, supplier_update(transaction), session=session
    )
    if result.matched_count == 0:
        log.error("supplier %s not found", supplier_id)
        raise SupplierNotFound("supplier not found")

    finances.update_one(
        {"branch_id": branch_id}, branch_finance_update(transaction), session=session
    )
    log.info("branch %s finance updated", branch_id)
    return transaction