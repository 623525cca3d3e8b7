"""Products, customers and buy-now-pay-later records."""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Mapping

from poserp.finance import ValidationError
from poserp.output import new_output


class ProductPlaceType(StrEnum):
    BRANCH = "branch"
    WAREHOUSE = "warehouse"


def _place_type(value: Any) -> ProductPlaceType | str:
    try:
        return ProductPlaceType(value)
    except ValueError:
        return value


@dataclass
class ProductQuantityInfo:
    quantity: int = 0
    unit: str = ""


@dataclass
class ProductPlace:
    id: str = ""
    place_type: ProductPlaceType | str = ""

    def to_document(self) -> dict[str, Any]:
        return {"id": self.id, "place_type": str(self.place_type)}

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> ProductPlace:
        document = document or {}
        return cls(
            id=document.get("id", ""),
            place_type=_place_type(document.get("place_type", "")),
        )


@dataclass
class ProductDistribution(ProductQuantityInfo):
    """How much of a product is kept at one place, and at what price."""

    place: ProductPlace = field(default_factory=ProductPlace)
    price: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "productquantityinfo": {"quantity": self.quantity, "unit": self.unit},
            "place": self.place.to_document(),
            "price": self.price,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> ProductDistribution:
        info = document.get("productquantityinfo") or {}
        return cls(
            quantity=info.get("quantity", 0),
            unit=info.get("unit", ""),
            place=ProductPlace.from_document(document.get("place")),
            price=document.get("price", 0),
        )


@dataclass
class PriceDistribution:
    price: int = 0
    place: ProductPlace = field(default_factory=ProductPlace)


@dataclass
class ManufacturerInfo:
    name: str = ""
    country: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""


@dataclass
class IncomeHistory:
    date: str = ""
    price: int = 0
    quantity: int = 0
    uploaded_to: ProductPlace = field(default_factory=ProductPlace)
    supplier_id: str = ""

    def to_document(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "price": self.price,
            "quantity": self.quantity,
            "uploaded_to": self.uploaded_to.to_document(),
            "supplier_id": self.supplier_id,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> IncomeHistory:
        return cls(
            date=document.get("date", ""),
            price=document.get("price", 0),
            quantity=document.get("quantity", 0),
            uploaded_to=ProductPlace.from_document(document.get("uploaded_to")),
            supplier_id=document.get("supplier_id", ""),
        )


@dataclass
class ProductItem:
    """A single item of a product type, tracked for expiry."""

    expire: datetime | None = None
    price: int = 0


@dataclass
class ProductBase:
    name: str = ""
    description: str = ""
    manufacturer: ManufacturerInfo = field(default_factory=ManufacturerInfo)
    category: list[str] = field(default_factory=list)
    sku: str = ""
    minimum_stock_alert: int = 0


@dataclass
class Product(ProductBase):
    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    quantity_distribution: list[ProductDistribution] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    income_history: list[IncomeHistory] = field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "description": self.description,
            "manufacturer": dataclasses.asdict(self.manufacturer),
            "category": list(self.category),
            "sku": self.sku,
            "minimum_stock_alert": self.minimum_stock_alert,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "quantity_distribution": [d.to_document() for d in self.quantity_distribution],
            "images": list(self.images),
            "income_history": [h.to_document() for h in self.income_history],
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Product:
        manufacturer = document.get("manufacturer") or {}
        return cls(
            id=document.get("_id", ""),
            name=document.get("name", ""),
            description=document.get("description", ""),
            manufacturer=ManufacturerInfo(
                **{
                    f.name: manufacturer.get(f.name, "")
                    for f in dataclasses.fields(ManufacturerInfo)
                }
            ),
            category=list(document.get("category") or []),
            sku=document.get("sku", ""),
            minimum_stock_alert=document.get("minimum_stock_alert", 0),
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
            quantity_distribution=[
                ProductDistribution.from_document(d)
                for d in document.get("quantity_distribution") or []
            ],
            images=list(document.get("images") or []),
            income_history=[
                IncomeHistory.from_document(h) for h in document.get("income_history") or []
            ],
        )


def new_product(base: ProductBase) -> Product:
    """Create a product from its base data with a fresh id and empty stock."""
    now = datetime.now().astimezone()
    values = {f.name: getattr(base, f.name) for f in dataclasses.fields(ProductBase)}
    values["category"] = list(base.category)
    return Product(
        **values,
        id=str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
    )


@dataclass
class ProductQueryParams:
    branch_id: str = ""
    category: str = ""
    sku: str = ""
    price_min: float = 0.0
    price_max: float = 0.0


@dataclass
class SalesSessionItem:
    quantity: int = 0
    price: int = 0

    def to_document(self) -> dict[str, int]:
        return {"quantity": self.quantity, "price": self.price}

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> SalesSessionItem:
        document = document or {}
        return cls(quantity=document.get("quantity", 0), price=document.get("price", 0))


class BNPLStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class NewBNPLInput:
    customer_id: str = ""
    total_amount: int = 0
    calculate_total_amount: bool = False
    branch_id: str = ""
    products: dict[str, SalesSessionItem] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise ``ValidationError`` when a required field is empty."""
        if not self.customer_id:
            raise ValidationError("customer_id is required")
        if not self.branch_id:
            raise ValidationError("branch_id is required")


@dataclass
class BNPL:
    id: str = ""
    customer_id: str = ""
    total_amount: int = 0
    branch_id: str = ""
    products: dict[str, SalesSessionItem] = field(default_factory=dict)
    paid_amount: int = 0
    status: BNPLStatus | str = ""
    transactions: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def update_created_at(self) -> None:
        self.created_at = datetime.now().astimezone()


@dataclass
class CustomerBase:
    name: str = ""
    phone: str = ""
    address: str = ""
    additional_info: dict[str, str] = field(default_factory=dict)


@dataclass
class Customer(CustomerBase):
    id: str = ""
    bnpls: list[BNPL] = field(default_factory=list)
    purchase_history: list[Any] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def update_created_at(self) -> None:
        self.created_at = datetime.now().astimezone()


def new_customer_query_output(
    customers: list[Customer], total: int, page: int, count: int
) -> dict[str, Any]:
    """Wrap one page of customers in the response envelope."""
    return new_output(
        [{"customers": customers, "total": total, "page": page, "count": count}]
    )