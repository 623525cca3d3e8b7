from fnmatch import fnmatch

import pytest

from poserp.catalog import (
    ProductBase,
    ProductDistribution,
    ProductPlace,
    ProductPlaceType,
    new_product,
)
from poserp.sales_handlers import SalesSessionController
from poserp.sales_session import SessionNotFound, get_sales_session


class FakeCache:
    def __init__(self):
        self.store = {}

    def set(self, key, value, ex=None):
        self.store[key] = value

    def get(self, key):
        return self.store.get(key)

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    def scan_iter(self, match=None, count=None):
        yield from [k for k in list(self.store) if match is None or fnmatch(k, match)]


class FakeCollection:
    def __init__(self, docs=()):
        self.docs = list(docs)

    def _matches(self, doc, filt):
        return all(doc.get(k) == v for k, v in filt.items())

    def count_documents(self, filt):
        return sum(1 for d in self.docs if self._matches(d, filt))

    def find_one(self, filt):
        return next((d for d in self.docs if self._matches(d, filt)), None)


class FakeSession:
    def __init__(self):
        self.in_transaction = False
        self.committed = False
        self.ended = False

    def start_transaction(self):
        self.in_transaction = True

    def commit_transaction(self):
        self.in_transaction = False
        self.committed = True

    def abort_transaction(self):
        self.in_transaction = False

    def end_session(self):
        self.ended = True


class FakeClient:
    def __init__(self):
        self.sessions = []

    def start_session(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeDB:
    def __init__(self, collections):
        self.collections = collections
        self.client = FakeClient()

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


BRANCH_PRICE = 1500


@pytest.fixture
def product():
    item = new_product(ProductBase(name="Milk"))
    item.quantity_distribution = [
        ProductDistribution(
            quantity=10,
            place=ProductPlace(id="b1", place_type=ProductPlaceType.BRANCH),
            price=BRANCH_PRICE,
        ),
        ProductDistribution(
            quantity=50,
            place=ProductPlace(id="w1", place_type=ProductPlaceType.WAREHOUSE),
            price=900,
        ),
    ]
    return item


@pytest.fixture
def setup(product):
    db = FakeDB(
        {
            "finance": FakeCollection([{"_id": "b1", "branch_id": "b1"}]),
            "products": FakeCollection([product.to_document()]),
        }
    )
    cache = FakeCache()
    return SalesSessionController(db, cache), cache, db


def test_open_session_stores_it(setup):
    controller, cache, _ = setup
    response = controller.open_sales_session("b1")
    assert response.status == 200
    assert response.body["error"] is None
    data = response.body["data"][0]
    assert data["branch_id"] == "b1"
    assert data["product_items"] == {}
    assert get_sales_session(data["id"], cache).branch_id == "b1"


def test_open_session_unknown_branch(setup):
    controller, cache, _ = setup
    response = controller.open_sales_session("nowhere")
    assert response.status == 500
    assert response.body["error"][0]["message"] == "branch not found"
    assert cache.store == {}


def test_add_product_uses_branch_price(setup, product):
    controller, cache, _ = setup
    session_id = controller.open_sales_session("b1").body["data"][0]["id"]
    response = controller.add_product_item(session_id, {"id": product.id, "quantity": 2})
    assert response.status == 200
    items = response.body["data"][0]["product_items"]
    assert items == {product.id: {"quantity": 2, "price": BRANCH_PRICE}}
    stored = get_sales_session(session_id, cache)
    assert stored.products[product.id].quantity == 2


def test_add_product_twice_accumulates(setup, product):
    controller, cache, _ = setup
    session_id = controller.open_sales_session("b1").body["data"][0]["id"]
    controller.add_product_item(session_id, {"id": product.id, "quantity": 2})
    response = controller.add_product_item(session_id, {"id": product.id, "quantity": 3})
    item = response.body["data"][0]["product_items"][product.id]
    assert item == {"quantity": 5, "price": BRANCH_PRICE}


def test_add_product_unknown_session(setup, product):
    controller, _, _ = setup
    response = controller.add_product_item("missing", {"id": product.id, "quantity": 1})
    assert response.status == 500
    assert response.body["data"] is None


def test_add_product_unknown_product(setup):
    controller, _, _ = setup
    session_id = controller.open_sales_session("b1").body["data"][0]["id"]
    response = controller.add_product_item(session_id, {"id": "nope", "quantity": 1})
    assert response.status == 500
    assert "nope" in response.body["error"][0]["message"]


def test_add_product_bad_body(setup):
    controller, _, _ = setup
    session_id = controller.open_sales_session("b1").body["data"][0]["id"]
    response = controller.add_product_item(session_id, {"id": "x", "quantity": "many"})
    assert response.status == 500


def test_close_session_totals_and_removes(setup, product):
    controller, cache, db = setup
    session_id = controller.open_sales_session("b1").body["data"][0]["id"]
    quantity = 3
    controller.add_product_item(session_id, {"id": product.id, "quantity": quantity})
    response = controller.close_sales_session(session_id)
    assert response.status == 200
    assert response.body["data"]["total_price"] == BRANCH_PRICE * quantity
    assert response.body["data"]["session"]["id"] == session_id
    with pytest.raises(SessionNotFound):
        get_sales_session(session_id, cache)
    assert db.client.sessions[-1].committed
    assert db.client.sessions[-1].ended


def test_close_unknown_session(setup):
    controller, _, _ = setup
    assert controller.close_sales_session("missing").status == 500


def test_get_session_round_trip(setup):
    controller, _, _ = setup
    opened = controller.open_sales_session("b1").body["data"][0]
    response = controller.get_sales_session(opened["id"])
    assert response.status == 200
    assert response.body["data"][0] == opened


def test_branch_sessions_filtered(setup):
    controller, _, db = setup
    db["finance"].docs.append({"_id": "b2", "branch_id": "b2"})
    first = controller.open_sales_session("b1").body["data"][0]["id"]
    second = controller.open_sales_session("b1").body["data"][0]["id"]
    controller.open_sales_session("b2")
    response = controller.get_branch_sessions("b1")
    ids = {s["id"] for s in response.body["data"]}
    assert ids == {first, second}


def test_delete_session(setup):
    controller, cache, _ = setup
    session_id = controller.open_sales_session("b1").body["data"][0]["id"]
    response = controller.delete_sales_session(session_id)
    assert response.body["data"][0]["id"] == session_id
    assert controller.get_sales_session(session_id).status == 500
    assert controller.delete_sales_session(session_id).status == 500