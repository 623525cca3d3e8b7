"""Handlers for sales sessions kept in the cache."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from poserp.catalog import Product, ProductPlaceType
from poserp.database import start_transaction
from poserp.output import ApiResponse, new_output, return_error
from poserp.sales_session import (
    SalesSession,
    get_sales_session,
    get_sales_sessions_by_branch,
    new_sales_session,
)

log = logging.getLogger(__name__)

_HANDLED_ERRORS = (ValueError, LookupError, PyMongoError, RedisError)


def _session_json(session: SalesSession) -> dict[str, Any]:
    return json.loads(session.to_json())


def _parse_product_item(body: Any) -> tuple[str, int]:
    if not isinstance(body, Mapping):
        raise ValueError("request body must be a JSON object")
    product_id = body.get("id", "")
    quantity = body.get("quantity", 0)
    if not isinstance(product_id, str):
        raise ValueError("invalid id")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError(f"invalid quantity: {quantity!r}")
    return product_id, quantity


class SalesSessionController:
    """Handlers that open, fill, close and drop sales sessions."""

    def __init__(self, db: Any, cache: Any) -> None:
        self.transactions = db["transactions"]
        self.finances = db["finance"]
        self.products = db["products"]
        self.activities = db["activities"]
        self.cache = cache
        self._client = db.client

    def open_sales_session(self, branch_id: str) -> ApiResponse:
        log.info("opening sales session for branch %s", branch_id)
        try:
            if self.finances.count_documents({"_id": branch_id}) == 0:
                log.error("branch %s not found", branch_id)
                raise LookupError("branch not found")
            session = new_sales_session(branch_id, self.cache)
        except _HANDLED_ERRORS as error:
            return return_error(error)
        return ApiResponse(body=new_output([_session_json(session)]))

    def add_product_item(self, session_id: str, body: Any) -> ApiResponse:
        """Add a product at the price of each branch it is stocked in."""
        try:
            product_id, quantity = _parse_product_item(body)
            session = get_sales_session(session_id, self.cache)
            document = self.products.find_one({"_id": product_id})
            if document is None:
                raise LookupError(f"product {product_id} not found")
            product = Product.from_document(document)
            for distribution in product.quantity_distribution:
                if distribution.place.place_type == ProductPlaceType.BRANCH:
                    session.add_product_item(
                        product_id, quantity, distribution.price, self.cache
                    )
        except _HANDLED_ERRORS as error:
            log.error("failed to add product to session %s: %s", session_id, error)
            return return_error(error)
        return ApiResponse(body=new_output([_session_json(session)]))

    def close_sales_session(self, session_id: str) -> ApiResponse:
        """Total the session, drop it from the cache and report the total."""
        log.info("closing sales session %s", session_id)
        try:
            session = get_sales_session(session_id, self.cache)
            with start_transaction(self._client):
                total_price = sum(
                    item.price * item.quantity for item in session.products.values()
                )
                session.delete(self.cache)
        except _HANDLED_ERRORS as error:
            log.error("failed to close sales session %s: %s", session_id, error)
            return return_error(error)
        log.info("sales session %s closed with total %d", session_id, total_price)
        return ApiResponse(
            body=new_output({"total_price": total_price, "session": _session_json(session)})
        )

    def get_sales_session(self, session_id: str) -> ApiResponse:
        try:
            session = get_sales_session(session_id, self.cache)
        except _HANDLED_ERRORS as error:
            return return_error(error)
        return ApiResponse(body=new_output([_session_json(session)]))

    def get_branch_sessions(self, branch_id: str) -> ApiResponse:
        try:
            sessions = get_sales_sessions_by_branch(branch_id, self.cache)
        except _HANDLED_ERRORS as error:
            return return_error(error)
        return ApiResponse(body=new_output([_session_json(s) for s in sessions]))

    def delete_sales_session(self, session_id: str) -> ApiResponse:
        try:
            session = get_sales_session(session_id, self.cache)
            session.delete(self.cache)
        except _HANDLED_ERRORS as error:
            return return_error(error)
        return ApiResponse(body=new_output([_session_json(session)]))