"""Handlers for querying and maintaining stored transactions."""

from __future__ import annotations

import logging
from datetime import datetime
from http import HTTPStatus
from typing import Any, Mapping

from pymongo.errors import PyMongoError

from poserp.finance import (
    InitiatorType,
    PaymentMethod,
    Transaction,
    TransactionBase,
    TransactionQueryParams,
    TransactionType,
    ValidationError,
    new_transaction,
)
from poserp.output import ApiResponse, ErrorInfo, new_error, new_output

log = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_COUNT = 10
_UINT32_MAX = 2**32 - 1

_STRING_PARAMS = ("description", "payment_method", "type_of_transaction", "initiator_type")
_AMOUNT_PARAMS = ("amount_min", "amount_max")
_PAGING_PARAMS = ("count", "page")
_DATE_PARAMS = ("date_min", "date_max")

_INITIATOR_TYPES = (
    InitiatorType.SALARY,
    InitiatorType.RENT,
    InitiatorType.UTILITIES,
    InitiatorType.OTHER,
    InitiatorType.SALES,
    InitiatorType.SUPPLIER,
)
_TRANSACTION_TYPES = (TransactionType.CREDIT, TransactionType.DEBIT)
_PAYMENT_METHODS = (
    PaymentMethod.CASH,
    PaymentMethod.BANK,
    PaymentMethod.TERMINAL,
    PaymentMethod.ONLINE_PAYMENT,
    PaymentMethod.CHEQUE,
    PaymentMethod.ONLINE_TRANSFER,
)


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid {name}")
    return int(value)


def _parse_date(name: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"invalid {name}")


def _parse_query_params(
    params: TransactionQueryParams | Mapping[str, Any] | None,
) -> TransactionQueryParams:
    if params is None:
        return TransactionQueryParams()
    if isinstance(params, TransactionQueryParams):
        return params
    if not isinstance(params, Mapping):
        raise ValueError("query parameters must be a mapping")

    values: dict[str, Any] = {}
    for name in _STRING_PARAMS:
        value = params.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"invalid {name}")
        values[name] = value
    for name in _AMOUNT_PARAMS:
        value = params.get(name)
        if value in (None, ""):
            continue
        amount = _parse_int(name, value)
        if not 0 <= amount <= _UINT32_MAX:
            raise ValueError(f"invalid {name}")
        values[name] = amount
    for name in _PAGING_PARAMS:
        value = params.get(name)
        if value in (None, ""):
            continue
        values[name] = _parse_int(name, value)
    for name in _DATE_PARAMS:
        value = params.get(name)
        if value in (None, ""):
            continue
        values[name] = _parse_date(name, value)
    return TransactionQueryParams(**values)


def build_transaction_filter(params: TransactionQueryParams) -> dict[str, Any]:
    """Build the database filter for a transaction query.

    A maximum amount replaces a minimum one, and a minimum date replaces a
    maximum one: each range keeps only one bound.
    """
    criteria: dict[str, Any] = {}
    if params.description:
        criteria["description"] = params.description
    if params.amount_min:
        criteria["amount"] = {"$gte": params.amount_min}
    if params.amount_max:
        criteria["amount"] = {"$lte": params.amount_max}
    if params.payment_method:
        criteria["payment_method"] = params.payment_method
    if params.type_of_transaction:
        criteria["transactionbase.type"] = params.type_of_transaction
    if params.initiator_type:
        criteria["type"] = params.initiator_type
    if params.date_max is not None:
        criteria["created_at"] = {"$lte": params.date_max}
    if params.date_min is not None:
        criteria["created_at"] = {"$gte": params.date_min}
    return criteria


def create_transaction(
    base: TransactionBase,
    initiator_type: InitiatorType | str,
    branch_id: str,
    collection: Any,
) -> str:
    """Store a new transaction and return its id."""
    transaction = new_transaction(base, initiator_type, branch_id)
    collection.insert_one(transaction.to_document())
    return transaction.id


def _transaction_json(transaction: Transaction) -> dict[str, Any]:
    return {
        "amount": transaction.amount,
        "description": transaction.description,
        "payment_method": str(transaction.payment_method),
        "type": str(transaction.initiator_type),
        "id": transaction.id,
        "branch_id": transaction.branch_id,
    }


def _failure(message: str, status: HTTPStatus) -> ApiResponse:
    return ApiResponse(
        body=new_output([], ErrorInfo(message, int(status))), status=int(status)
    )


class TransactionsController:
    """Handlers over the transactions collection."""

    def __init__(self, db: Any) -> None:
        self.collection = db["transactions"]

    def get_transactions(
        self,
        branch_id: str,
        params: TransactionQueryParams | Mapping[str, Any] | None,
    ) -> ApiResponse:
        """Return one page of transactions, newest first."""
        if not branch_id:
            log.warning("branch_id is required but not provided")
            return ApiResponse(
                body=new_output(
                    None, new_error("branch_id is required", int(HTTPStatus.BAD_REQUEST))
                ),
                status=int(HTTPStatus.UNAUTHORIZED),
            )
        try:
            query = _parse_query_params(params)
        except ValueError as error:
            log.error("error parsing query params: %s", error)
            return _failure("invalid query params", HTTPStatus.BAD_REQUEST)
        try:
            query.validate()
        except ValidationError as error:
            log.error("error validating query params: %s", error)
            return _failure(str(error), HTTPStatus.BAD_REQUEST)

        criteria = build_transaction_filter(query)
        page = query.page or DEFAULT_PAGE
        count = query.count or DEFAULT_COUNT
        try:
            documents = list(
                self.collection.find(
                    criteria,
                    skip=count * (page - 1),
                    limit=count,
                    sort=[("created_at", -1)],
                )
            )
        except PyMongoError as error:
            log.error("error finding transactions: %s", error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)

        transactions = [Transaction.from_document(d) for d in documents]
        log.info("retrieved %d transactions", len(transactions))
        return ApiResponse(body=new_output([_transaction_json(t) for t in transactions]))

    def get_transaction_by_id(self, transaction_id: str) -> ApiResponse:
        try:
            document = self.collection.find_one({"_id": transaction_id})
        except PyMongoError as error:
            log.error("error finding transaction %s: %s", transaction_id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
        if document is None:
            log.error("transaction %s not found", transaction_id)
            return _failure(
                f"transaction {transaction_id} not found", HTTPStatus.INTERNAL_SERVER_ERROR
            )
        return ApiResponse(
            body=new_output(_transaction_json(Transaction.from_document(document)))
        )

    def update_transaction(
        self,
        transaction_id: str,
        amount: str = "",
        description: str = "",
        transaction_type: str = "",
    ) -> ApiResponse:
        """Set the given non-empty fields of a transaction, as they were given."""
        changes: dict[str, Any] = {}
        if amount:
            changes["amount"] = amount
        if description:
            changes["description"] = description
        if transaction_type:
            changes["type"] = transaction_type
        try:
            self.collection.update_one({"_id": transaction_id}, {"$set": changes})
        except PyMongoError as error:
            log.error("error updating transaction %s: %s", transaction_id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
        return ApiResponse(
            body=new_output({"message": "transaction was succesfully updated"})
        )

    def delete_transaction(self, transaction_id: str) -> ApiResponse:
        try:
            self.collection.delete_one({"_id": transaction_id})
        except PyMongoError as error:
            log.error("error deleting transaction %s: %s", transaction_id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
        return ApiResponse(
            body=new_output({"message": "transaction was succesfully deleted"})
        )

    def initiator_types(self) -> ApiResponse:
        return ApiResponse(body=new_output([str(t) for t in _INITIATOR_TYPES]))

    def transaction_types(self) -> ApiResponse:
        return ApiResponse(body=new_output([str(t) for t in _TRANSACTION_TYPES]))

    def payment_methods(self) -> ApiResponse:
        return ApiResponse(body=new_output([str(m) for m in _PAYMENT_METHODS]))