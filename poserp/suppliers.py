"""Handlers for suppliers and the transactions made with them."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, fields
from datetime import datetime
from http import HTTPStatus
from typing import Any, Mapping

from pymongo.errors import PyMongoError

from poserp.activity import ActivityType, RequestContext, log_activity_with_context
from poserp.database import start_transaction
from poserp.finance import (
    BranchFinance,
    Transaction,
    TransactionBase,
    ValidationError,
    validate_transaction_type,
)
from poserp.output import ApiResponse, ErrorInfo, new_output
from poserp.records import FinancialData, Supplier, SupplierBase
from poserp.supplier_ledger import new_supplier_transaction
from poserp.utils import get_time_zone

log = logging.getLogger(__name__)

_UINT32_MAX = 2**32 - 1
_SUPPLIER_FIELDS = tuple(f.name for f in fields(SupplierBase))
_UPDATABLE_FIELDS = ("email", "inn", "name", "address", "phone", "notes")


@dataclass
class SupplierQuery:
    """Filters accepted when listing suppliers; empty fields are ignored."""

    name: str = ""
    inn: str = ""
    branch: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""


def _string_fields(body: Any, names: tuple[str, ...]) -> dict[str, str]:
    if not isinstance(body, Mapping):
        raise ValueError("request body must be a JSON object")
    values: dict[str, str] = {}
    for name in names:
        value = body.get(name)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValueError(f"invalid {name}")
        values[name] = value
    return values


def _parse_query(query: SupplierQuery | Mapping[str, Any] | None) -> SupplierQuery:
    if query is None:
        return SupplierQuery()
    if isinstance(query, SupplierQuery):
        return query
    return SupplierQuery(**_string_fields(query, tuple(f.name for f in fields(SupplierQuery))))


def _parse_supplier_base(body: Any) -> SupplierBase:
    return SupplierBase(**_string_fields(body, _SUPPLIER_FIELDS))


def _parse_transaction_base(body: Any) -> TransactionBase:
    if not isinstance(body, Mapping):
        raise ValueError("request body must be a JSON object")
    amount = body.get("amount", 0)
    if isinstance(amount, bool) or not isinstance(amount, int) or not 0 <= amount <= _UINT32_MAX:
        raise ValueError(f"invalid amount: {amount!r}")
    _string_fields(body, ("description", "type", "payment_method"))
    return TransactionBase.from_document(body)


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


def _transaction_json(transaction: Transaction) -> dict[str, Any]:
    return {
        "amount": transaction.amount,
        "description": transaction.description,
        "payment_method": str(transaction.payment_method),
        "type": str(transaction.initiator_type),
        "id": transaction.id,
        "branch_id": transaction.branch_id,
    }


def _supplier_json(supplier: Supplier) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": supplier.name,
        "address": supplier.address,
        "phone": supplier.phone,
    }
    for key in ("email", "inn", "notes"):
        if value := getattr(supplier, key):
            data[key] = value
    financial = supplier.financial_data
    data.update(
        branch=supplier.branch,
        id=supplier.id,
        financial_data={
            "balance": financial.balance,
            "transactions": [_transaction_json(t) for t in financial.transactions],
            "total_income": financial.total_income,
            "total_expenses": financial.total_expenses,
        },
        created_at=_iso(supplier.created_at),
        updated_at=_iso(supplier.updated_at),
    )
    return data


def _failure(message: str, status: HTTPStatus) -> ApiResponse:
    return ApiResponse(
        body=new_output([], ErrorInfo(message, int(status))), status=int(status)
    )


def _branch_filter(name_or_id: str) -> dict[str, Any]:
    return {"$or": [{"branch_id": name_or_id}, {"branch_name": name_or_id}]}


class SuppliersController:
    """Handlers that list, create, change and delete suppliers."""

    def __init__(self, db: Any) -> None:
        self.suppliers = db["suppliers"]
        self.transactions = db["transactions"]
        self.finances = db["finance"]
        self.activities = db["activities"]
        self.db = db
        self._client = db.client

    def _find_branch(self, name_or_id: str) -> BranchFinance | None:
        document = self.finances.find_one(_branch_filter(name_or_id))
        return BranchFinance.from_document(document) if document is not None else None

    def get_suppliers(self, query: SupplierQuery | Mapping[str, Any] | None) -> ApiResponse:
        """List suppliers matching every non-empty filter."""
        try:
            params = _parse_query(query)
        except ValueError as error:
            log.error("failed to parse supplier query: %s", error)
            return _failure(str(error), HTTPStatus.BAD_REQUEST)

        criteria: dict[str, Any] = {}
        try:
            if params.name:
                criteria["name"] = params.name
            if params.inn:
                criteria["inn"] = params.inn
            if params.branch:
                branch = self._find_branch(params.branch)
                if branch is None:
                    log.error("branch %s not found", params.branch)
                    return _failure("Branch not found", HTTPStatus.NOT_FOUND)
                criteria["branch"] = branch.branch_id
            for key in ("email", "phone", "address", "notes"):
                if value := getattr(params, key):
                    criteria[key] = value
            suppliers = [Supplier.from_document(d) for d in self.suppliers.find(criteria)]
        except PyMongoError as error:
            log.error("failed to find suppliers: %s", error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)

        log.debug("retrieved %d suppliers", len(suppliers))
        return ApiResponse(body=new_output([_supplier_json(s) for s in suppliers]))

    def get_supplier_by_id(self, supplier_id: str) -> ApiResponse:
        try:
            document = self.suppliers.find_one({"_id": supplier_id})
        except PyMongoError as error:
            log.error("failed to find supplier %s: %s", supplier_id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
        if document is None:
            log.debug("supplier %s not found", supplier_id)
            return _failure("Supplier not found", HTTPStatus.NOT_FOUND)
        return ApiResponse(body=new_output(_supplier_json(Supplier.from_document(document))))

    def create_supplier(self, context: RequestContext, body: Any) -> ApiResponse:
        """Create a supplier attached to the branch named (by id or name) in the body."""
        try:
            base = _parse_supplier_base(body)
        except ValueError as error:
            log.error("failed to parse supplier: %s", error)
            return _failure(str(error), HTTPStatus.BAD_REQUEST)

        now = datetime.now(get_time_zone())
        supplier = Supplier(
            **{name: getattr(base, name) for name in _SUPPLIER_FIELDS},
            id=str(uuid.uuid4()),
            financial_data=FinancialData(),
            created_at=now,
            updated_at=now,
        )
        log_activity_with_context(
            context, ActivityType.CREATE_SUPPLIER, supplier, self.activities
        )

        try:
            branch = self._find_branch(base.branch)
        except PyMongoError as error:
            log.error("failed to look up branch %s: %s", base.branch, error)
            branch = None
        if branch is None:
            log.error("branch %s not found", base.branch)
            return _failure("Branch not found", HTTPStatus.NOT_FOUND)

        supplier.branch = branch.branch_id
        try:
            self.suppliers.insert_one(supplier.to_document())
            self.finances.update_one(
                _branch_filter(base.branch),
                {"$push": {"suppliers": {"$each": [supplier.id]}}},
            )
        except PyMongoError as error:
            log.error("failed to store supplier %s: %s", supplier.id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)

        log.debug("created supplier %s", supplier.id)
        return ApiResponse(
            body=new_output(_supplier_json(supplier)), status=int(HTTPStatus.CREATED)
        )

    def update_supplier(self, supplier_id: str, body: Any) -> ApiResponse:
        """Change the non-empty fields given; the branch is never changed."""
        try:
            base = _parse_supplier_base(body)
        except ValueError as error:
            log.error("failed to parse supplier update: %s", error)
            return _failure(str(error), HTTPStatus.BAD_REQUEST)

        changes: dict[str, Any] = {"updated_at": datetime.now(get_time_zone())}
        for key in _UPDATABLE_FIELDS:
            if value := getattr(base, key):
                changes[key] = value

        try:
            result = self.suppliers.update_one({"_id": supplier_id}, {"$set": changes})
        except PyMongoError as error:
            log.error("failed to update supplier %s: %s", supplier_id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
        if result.matched_count == 0:
            return _failure("Supplier not found", HTTPStatus.NOT_FOUND)
        return ApiResponse(body=new_output({"message": "Supplier updated successfully"}))

    def delete_supplier(self, supplier_id: str) -> ApiResponse:
        try:
            result = self.suppliers.delete_one({"_id": supplier_id})
        except PyMongoError as error:
            log.error("failed to delete supplier %s: %s", supplier_id, error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
        if result.deleted_count == 0:
            return _failure("Supplier not found", HTTPStatus.NOT_FOUND)
        return ApiResponse(body=new_output({"message": "Supplier deleted successfully"}))

    def new_transaction(self, branch_id: str, supplier_id: str, body: Any) -> ApiResponse:
        """Record a payment to or a delivery from a supplier in one database transaction."""
        try:
            base = _parse_transaction_base(body)
            validate_transaction_type(base.type)
        except ValueError as error:
            log.error("invalid supplier transaction: %s", error)
            return _failure(str(error), HTTPStatus.BAD_REQUEST)

        try:
            with start_transaction(self._client) as session:
                transaction = new_supplier_transaction(
                    base,
                    supplier_id,
                    branch_id,
                    self.transactions,
                    self.finances,
                    self.suppliers,
                    session,
                )
        except (LookupError, ValidationError, PyMongoError) as error:
            log.error("supplier transaction aborted: %s", error)
            return _failure(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)

        log.info("supplier transaction %s committed", transaction.id)
        return ApiResponse(
            body=new_output(_transaction_json(transaction)), status=int(HTTPStatus.CREATED)
        )