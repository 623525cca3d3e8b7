"""Sales sessions kept in the cache while a sale is being assembled."""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from poserp.catalog import SalesSessionItem

log = logging.getLogger(__name__)

KEY_PREFIX = "sales_session:"
SESSION_TTL = timedelta(hours=1)
_SCAN_BATCH = 100
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


class SessionNotFound(LookupError):
    """Raised when a session is not in the cache."""


def _key(session_id: str) -> str:
    return KEY_PREFIX + session_id


def _parse_time(text: str) -> datetime:
    # Timestamps may carry nanoseconds; datetime keeps only microseconds.
    return datetime.fromisoformat(_EXTRA_FRACTION.sub(r"\1", text))


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class SalesSession:
    id: str
    branch_id: str
    created_at: datetime = field(default_factory=_now)
    products: dict[str, SalesSessionItem] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "branch_id": self.branch_id,
                "created_at": self.created_at.isoformat(),
                "product_items": {
                    product_id: item.to_document() for product_id, item in self.products.items()
                },
            }
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> SalesSession:
        data: dict[str, Any] = json.loads(text)
        return cls(
            id=data.get("id", ""),
            branch_id=data.get("branch_id", ""),
            created_at=_parse_time(data["created_at"]),
            products={
                product_id: SalesSessionItem.from_document(item)
                for product_id, item in (data.get("product_items") or {}).items()
            },
        )

    def _save(self, cache: Any) -> None:
        cache.set(_key(self.id), self.to_json(), ex=SESSION_TTL)

    def delete(self, cache: Any) -> None:
        log.info("deleting sales session %s", self.id)
        cache.delete(_key(self.id))

    def add_product_item(self, product_id: str, quantity: int, price: int, cache: Any) -> None:
        """Add ``quantity`` of a product; an existing item keeps its original price."""
        log.info("adding product %s x%d to session %s", product_id, quantity, self.id)
        existing = self.products.get(product_id)
        if existing is not None:
            self.products[product_id] = SalesSessionItem(
                quantity=existing.quantity + quantity, price=existing.price
            )
        else:
            self.products[product_id] = SalesSessionItem(quantity=quantity, price=price)
        self._save(cache)

    def remove_product_item(self, product_id: str, cache: Any) -> None:
        log.info("removing product %s from session %s", product_id, self.id)
        self.products.pop(product_id, None)
        self._save(cache)


def new_sales_session(branch_id: str, cache: Any) -> SalesSession:
    """Create a session for a branch and store it in the cache for an hour."""
    log.info("creating sales session for branch %s", branch_id)
    session = SalesSession(id=str(uuid.uuid4()), branch_id=branch_id)
    session._save(cache)
    return session


def get_sales_session(session_id: str, cache: Any) -> SalesSession:
    raw = cache.get(_key(session_id))
    if raw is None:
        raise SessionNotFound(f"sales session {session_id} not found")
    return SalesSession.from_json(raw)


def get_sales_sessions_by_branch(branch_id: str, cache: Any) -> list[SalesSession]:
    """Return every cached session that belongs to the branch."""
    log.info("getting sales sessions of branch %s", branch_id)
    keys = list(cache.scan_iter(match=KEY_PREFIX + "*", count=_SCAN_BATCH))
    sessions = []
    for key in keys:
        raw = cache.get(key)
        if raw is None:
            raise SessionNotFound(f"sales session key {key!r} not found")
        sessions.append(SalesSession.from_json(raw))
    return [session for session in sessions if session.branch_id == branch_id]