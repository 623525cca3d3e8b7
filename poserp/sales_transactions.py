"""Sales transactions and the branch balances they move."""

from __future__ import annotations

import dataclasses
import logging
from http import HTTPStatus
from typing import Any, Mapping

from pymongo.errors import PyMongoError

from poserp.activity import ActivityType, RequestContext, log_activity_with_context
from poserp.database import start_transaction
from poserp.finance import (
    InitiatorType,
    PaymentMethod,
    Transaction,
    TransactionBase,
    TransactionType,
    new_transaction,
    validate_payment_method,
)
from poserp.output import ApiResponse, ErrorInfo, new_output

log = logging.getLogger(__name__)

_UINT32_MAX = 2**32 - 1

_BALANCE_FIELDS: dict[str, str] = {
    PaymentMethod.CASH: "finance.balance.cash",
    PaymentMethod.BANK: "finance.balance.bank",
    PaymentMethod.TERMINAL: "finance.balance.terminal",
    PaymentMethod.ONLINE_PAYMENT: "finance.balance.mobile_apps",
    PaymentMethod.ONLINE_TRANSFER: "finance.balance.mobile_apps",
}


class FinanceNotFound(LookupError):
    """Raised when a branch has no finance record."""


def balance_field(payment_method: PaymentMethod | str) -> str | None:
    """Return the finance field a payment method books into, if any."""
    return _BALANCE_FIELDS.get(str(payment_method))


def _adjust_balance(
    finances: Any, branch_id: str, payment_method: PaymentMethod | str, delta: int, session: Any
) -> None:
    increments: dict[str, int] = {}
    if (path := balance_field(payment_method)) is not None:
        increments[path] = delta
    result = finances.update_one(
        {"branch_id": branch_id}, {"$inc": increments}, session=session
    )
    if result.matched_count == 0:
        log.error("no finance found for branch %s", branch_id)
        raise FinanceNotFound("no finance found for the branch")


def increment_balance(
    finances: Any, branch_id: str, base: TransactionBase, session: Any = None
) -> None:
    """Add the amount to the branch balance of its payment method."""
    _adjust_balance(finances, branch_id, base.payment_method, base.amount, session)


def decrement_balance(
    finances: Any, branch_id: str, transaction: Transaction, session: Any = None
) -> None:
    """Take the amount off the branch balance of its payment method."""
    _adjust_balance(finances, branch_id, transaction.payment_method, -transaction.amount, session)


def create_sales_transaction(
    base: TransactionBase,
    branch_id: str,
    transactions: Any,
    finances: Any,
    session: Any = None,
) -> Transaction:
    """Store a credit sale and add it to the branch balance."""
    base = dataclasses.replace(base, type=TransactionType.CREDIT)
    validate_payment_method(base.payment_method)
    transaction = new_transaction(base, InitiatorType.SALES, branch_id)
    transactions.insert_one(transaction.to_document(), session=session)
    increment_balance(finances, branch_id, base, session)
    log.info("created sales transaction %s of %d", transaction.id, transaction.amount)
    return transaction


def delete_sales_transaction(
    transaction_id: str, transactions: Any, finances: Any, session: Any = None
) -> Transaction:
    """Delete a sale and take its amount back off the branch balance."""
    document = transactions.find_one({"_id": transaction_id}, session=session)
    if document is None:
        raise LookupError(f"transaction {transaction_id} not found")
    transaction = Transaction.from_document(document)
    transactions.delete_one({"_id": transaction_id}, session=session)
    decrement_balance(finances, transaction.branch_id, transaction, session)
    return transaction


def _parse_transaction_base(body: Any) -> TransactionBase:
    if not isinstance(body, Mapping):
        raise ValueError("request body must be a JSON object")
    amount = body.get("amount", 0)
    if isinstance(amount, bool) or not isinstance(amount, int) or not 0 <= amount <= _UINT32_MAX:
        raise ValueError(f"invalid amount: {amount!r}")
    for key in ("description", "type", "payment_method"):
        if not isinstance(body.get(key, ""), str):
            raise ValueError(f"invalid {key}")
    return TransactionBase.from_document(body)


def _transaction_json(transaction: Transaction) -> dict[str, Any]:
    return {
        "amount": transaction.amount,
        "description": transaction.description,
        "payment_method": str(transaction.payment_method),
        "type": str(transaction.initiator_type),
        "id": transaction.id,
        "branch_id": transaction.branch_id,
    }


def _failure(error: BaseException, status: HTTPStatus) -> ApiResponse:
    return ApiResponse(
        body=new_output([], ErrorInfo(str(error), int(status))), status=int(status)
    )


_HANDLED_ERRORS = (ValueError, LookupError, PyMongoError)


class SalesTransactionsController:
    """Handlers for creating and deleting sales transactions."""

    def __init__(self, db: Any, cache: Any = None) -> None:
        self.transactions = db["transactions"]
        self.finances = db["finance"]
        self.products = db["products"]
        self.activities = db["activities"]
        self.cache = cache
        self._client = db.client

    def create_sales_transaction(
        self, context: RequestContext, branch_id: str, body: Any
    ) -> ApiResponse:
        try:
            base = _parse_transaction_base(body)
        except ValueError as error:
            log.error("failed to parse transaction: %s", error)
            return _failure(error, HTTPStatus.BAD_REQUEST)
        try:
            with start_transaction(self._client) as session:
                log_activity_with_context(
                    context, ActivityType.CREATE_TRANSACTION, base, self.activities
                )
                transaction = create_sales_transaction(
                    base, branch_id, self.transactions, self.finances, session
                )
        except _HANDLED_ERRORS as error:
            log.error("failed to create sales transaction: %s", error)
            return _failure(error, HTTPStatus.INTERNAL_SERVER_ERROR)
        return ApiResponse(
            body=new_output(_transaction_json(transaction)), status=int(HTTPStatus.CREATED)
        )

    def delete_sales_transaction(
        self, context: RequestContext, transaction_id: str
    ) -> ApiResponse:
        try:
            with start_transaction(self._client) as session:
                log_activity_with_context(
                    context, ActivityType.DELETE_TRANSACTION, transaction_id, self.activities
                )
                transaction = delete_sales_transaction(
                    transaction_id, self.transactions, self.finances, session
                )
        except _HANDLED_ERRORS as error:
            log.error("failed to delete sales transaction %s: %s", transaction_id, error)
            return _failure(error, HTTPStatus.INTERNAL_SERVER_ERROR)
        return ApiResponse(body=new_output(_transaction_json(transaction)))