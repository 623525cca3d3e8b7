"""Recording of user activity in the activities collection."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from http import HTTPStatus
from typing import Any

from pymongo.errors import PyMongoError

log = logging.getLogger(__name__)

UNKNOWN_USER = "unknown"


class ActivityType(StrEnum):
    LOGIN = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout_success"
    LOGOUT_FAILED = "logout_failed"
    REGISTER = "register_success"
    REGISTER_FAILED = "register_failed"
    CREATE_TRANSACTION = "create_transaction"
    CREATE_JOURNAL = "create_journal"
    CLOSE_JOURNAL = "close_journal"
    CREATE_SUPPLIER = "create_supplier"
    CREATE_PRODUCT = "create_product"
    EDIT_TRANSACTION = "edit_transaction"
    EDIT_SUPPLIER = "edit_supplier"
    EDIT_PRODUCT = "edit_product"
    DELETE_TRANSACTION = "delete_transaction"
    REOPEN_JOURNAL = "reopen_journal"
    DELETE_SUPPLIER = "delete_supplier"
    DELETE_PRODUCT = "delete_product"
    CLOSE_SALES_SESSION = "close_sales_session"
    OPEN_SALES_SESSION = "open_sales_session"
    PRODUCT_INCOME = "product_income"
    PRODUCT_TRANSFER = "product_transfer"
    CREATE_OPERATION = "create_operation"
    EDIT_OPERATION = "edit_operation"
    DELETE_OPERATION = "delete_operation"
    CREATE_FINANCE = "create_finance"
    EDIT_FINANCE = "edit_finance"
    DELETE_FINANCE = "delete_finance"


def _now() -> datetime:
    return datetime.now().astimezone()


def _as_document(data: Any) -> Any:
    """Turn a model object into something the database can store."""
    to_document = getattr(data, "to_document", None)
    if callable(to_document):
        return to_document()
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return dataclasses.asdict(data)
    return data


@dataclass
class Activity:
    user_id: str
    action: ActivityType | str
    data: Any = None
    ip: str = ""
    date: datetime = field(default_factory=_now)
    status: int = int(HTTPStatus.OK)

    def to_document(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "action": str(self.action),
            "data": _as_document(self.data),
            "ip": self.ip,
            "date": self.date,
            "status": self.status,
        }


@dataclass
class RequestContext:
    """What a handler knows about the request it serves."""

    ip: str = ""
    status: int = int(HTTPStatus.OK)
    user: str | None = None


def log_activity(
    user: str,
    action: ActivityType | str,
    data: Any,
    ip: str,
    status: int,
    collection: Any,
) -> Activity:
    """Store an activity; a failure to store it is logged, not raised."""
    activity = Activity(user_id=user, action=action, data=data, ip=ip, status=status)
    try:
        collection.insert_one(activity.to_document())
    except PyMongoError:
        log.exception("failed to insert activity")
    return activity


def log_activity_with_context(
    context: RequestContext, action: ActivityType | str, data: Any, collection: Any
) -> Activity:
    """Store an activity for the user and address of the current request."""
    user = context.user
    if not isinstance(user, str):
        log.error("user not found in request context")
        user = UNKNOWN_USER
    return log_activity(user, action, data, context.ip, context.status, collection)


def record_activity(activity: Activity, collection: Any) -> None:
    """Store an activity, letting database errors propagate."""
    collection.insert_one(activity.to_document())