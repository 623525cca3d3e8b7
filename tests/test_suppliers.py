import copy
from types import SimpleNamespace

import pytest
from pymongo.errors import PyMongoError

from poserp.activity import RequestContext
from poserp.finance import BranchFinance
from poserp.suppliers import SupplierQuery, SuppliersController


def _get_path(document, path):
    for part in path.split("."):
        if not isinstance(document, dict) or part not in document:
            return None
        document = document[part]
    return document


def _set_path(document, path, value):
    *parents, last = path.split(".")
    for part in parents:
        document = document.setdefault(part, {})
    document[last] = value


def _matches(document, criteria):
    for key, value in criteria.items():
        if key == "$or":
            if not any(_matches(document, option) for option in value):
                return False
        elif _get_path(document, key) != value:
            return False
    return True


def _apply(document, update):
    for operator, changes in update.items():
        for path, value in changes.items():
            if operator == "$set":
                _set_path(document, path, copy.deepcopy(value))
            elif operator == "$inc":
                _set_path(document, path, (_get_path(document, path) or 0) + value)
            elif operator == "$push":
                items = _get_path(document, path)
                if items is None:
                    items = []
                    _set_path(document, path, items)
                if isinstance(value, dict) and "$each" in value:
                    items.extend(copy.deepcopy(value["$each"]))
                else:
                    items.append(copy.deepcopy(value))


class FakeCollection:
    def __init__(self):
        self.documents = []

    def find_one(self, criteria, session=None):
        for document in self.documents:
            if _matches(document, criteria):
                return copy.deepcopy(document)
        return None

    def find(self, criteria, session=None):
        return [copy.deepcopy(d) for d in self.documents if _matches(d, criteria)]

    def insert_one(self, document, session=None):
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document.get("_id"))

    def update_one(self, criteria, update, session=None):
        for document in self.documents:
            if _matches(document, criteria):
                _apply(document, update)
                return SimpleNamespace(matched_count=1)
        return SimpleNamespace(matched_count=0)

    def delete_one(self, criteria, session=None):
        for position, document in enumerate(self.documents):
            if _matches(document, criteria):
                del self.documents[position]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class BrokenCollection(FakeCollection):
    def find(self, criteria, session=None):
        raise PyMongoError("database unavailable")


class FakeSession:
    def __init__(self):
        self.in_transaction = False
        self.committed = False
        self.aborted = False

    def start_transaction(self):
        self.in_transaction = True

    def commit_transaction(self):
        self.in_transaction = False
        self.committed = True

    def abort_transaction(self):
        self.in_transaction = False
        self.aborted = True

    def end_session(self):
        pass


class FakeClient:
    def __init__(self):
        self.sessions = []

    def start_session(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeDatabase:
    def __init__(self):
        self.collections = {}
        self.client = FakeClient()

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def db():
    database = FakeDatabase()
    for branch_id, name in (("branch-x", "Xonobod"), ("branch-p", "Polevoy")):
        database["finance"].insert_one(
            BranchFinance(branch_id=branch_id, branch_name=name).to_document()
        )
    return database


@pytest.fixture
def controller(db):
    return SuppliersController(db)


@pytest.fixture
def context():
    return RequestContext(ip="127.0.0.1", status=200, user="admin")


SUPPLIERS = [
    {"name": "Supplier One", "email": "supplier1@example.com", "phone": "[phone]",
     "address": "Address One", "inn": "inn-1", "notes": "Notes for Supplier One",
     "branch": "Xonobod"},
    {"name": "Supplier Two", "email": "supplier2@example.com", "phone": "[phone]",
     "address": "Address Two", "inn": "inn-2", "notes": "Notes for Supplier Two",
     "branch": "Xonobod"},
    {"name": "Supplier Three", "email": "supplier3@example.com", "phone": "[phone]",
     "address": "Address Three", "inn": "inn-3", "notes": "Notes for Supplier Three",
     "branch": "Xonobod"},
    {"name": "Supplier Four", "email": "supplier4@example.com", "phone": "[phone]",
     "address": "Address Four", "inn": "inn-4", "notes": "Notes for Supplier Four",
     "branch": "Polevoy"},
    {"name": "Supplier Five", "email": "supplier5@example.com", "phone": "[phone]",
     "address": "Address Five", "inn": "inn-5", "notes": "Notes for Supplier Five",
     "branch": "Polevoy"},
]


def _create_all(controller, context):
    return [controller.create_supplier(context, body) for body in SUPPLIERS]


def test_create_suppliers(controller, context):
    for body, response in zip(SUPPLIERS, _create_all(controller, context)):
        assert response.status == 201
        assert response.body["error"] is None
        assert response.body["data"]["name"] == body["name"]


def test_create_supplier_resolves_branch_and_registers_it(controller, context, db):
    response = controller.create_supplier(context, SUPPLIERS[0])
    supplier_id = response.body["data"]["id"]
    assert response.body["data"]["branch"] == "branch-x"
    finance = db["finance"].find_one({"branch_id": "branch-x"})
    assert finance["suppliers"] == [supplier_id]
    stored = db["suppliers"].find_one({"_id": supplier_id})
    assert stored["branch"] == "branch-x"
    assert stored["financial_data"]["balance"] == 0


def test_create_supplier_logs_activity(controller, context, db):
    controller.create_supplier(context, SUPPLIERS[0])
    activities = db["activities"].documents
    assert len(activities) == 1
    assert activities[0]["action"] == "create_supplier"
    assert activities[0]["user_id"] == "admin"


def test_create_supplier_unknown_branch(controller, context, db):
    body = dict(SUPPLIERS[0], branch="Nowhere")
    response = controller.create_supplier(context, body)
    assert response.status == 404
    assert response.body["error"][0]["message"] == "Branch not found"
    assert db["suppliers"].documents == []


def test_create_supplier_bad_body(controller, context):
    response = controller.create_supplier(context, {"name": 5})
    assert response.status == 400
    assert response.body["error"][0]["code"] == 400


def test_get_suppliers(controller, context):
    _create_all(controller, context)
    response = controller.get_suppliers(SupplierQuery())
    assert response.status == 200
    assert len(response.body["data"]) == 5


def test_get_suppliers_filtered_by_branch_name(controller, context):
    _create_all(controller, context)
    response = controller.get_suppliers({"branch": "Polevoy"})
    names = sorted(s["name"] for s in response.body["data"])
    assert names == ["Supplier Five", "Supplier Four"]


def test_get_suppliers_filtered_by_name(controller, context):
    _create_all(controller, context)
    response = controller.get_suppliers(SupplierQuery(name="Supplier Two"))
    assert [s["email"] for s in response.body["data"]] == ["supplier2@example.com"]


def test_get_suppliers_empty(controller):
    response = controller.get_suppliers(SupplierQuery())
    assert response.body["data"] == []


def test_get_suppliers_unknown_branch(controller):
    response = controller.get_suppliers(SupplierQuery(branch="Nowhere"))
    assert response.status == 404


def test_get_suppliers_database_error(db):
    db.collections["suppliers"] = BrokenCollection()
    response = SuppliersController(db).get_suppliers(SupplierQuery())
    assert response.status == 500
    assert response.body["error"][0]["message"] == "database unavailable"


def test_get_supplier_by_id(controller, context):
    created = _create_all(controller, context)
    supplier_id = created[0].body["data"]["id"]
    response = controller.get_supplier_by_id(supplier_id)
    assert response.status == 200
    assert response.body["data"]["id"] == supplier_id


def test_get_missing_supplier(controller):
    response = controller.get_supplier_by_id("123")
    assert response.status == 404
    assert response.body["error"][0]["message"] == "Supplier not found"


def test_supplier_lifecycle(controller, context, db):
    db["finance"].insert_one(
        BranchFinance(branch_id="branch-t", branch_name="Test Branch").to_document()
    )
    created = controller.create_supplier(context, {
        "name": "Test Supplier", "email": "test@example.com", "phone": "[phone]",
        "address": "Test Address", "inn": "inn-test", "notes": "Test Notes",
        "branch": "Test Branch",
    })
    assert created.status == 201
    supplier_id = created.body["data"]["id"]

    updated = controller.update_supplier(supplier_id, {"name": "Updated Test Supplier"})
    assert updated.status == 200
    assert updated.body["data"] == {"message": "Supplier updated successfully"}
    stored = controller.get_supplier_by_id(supplier_id).body["data"]
    assert stored["name"] == "Updated Test Supplier"
    assert stored["address"] == "Test Address"

    paid = controller.new_transaction("branch-t", supplier_id, {
        "amount": 1000, "type": "credit", "description": "Test Transaction",
    })
    assert paid.status == 201
    assert paid.body["data"]["amount"] == 1000

    deleted = controller.delete_supplier(supplier_id)
    assert deleted.status == 200
    assert deleted.body["data"] == {"message": "Supplier deleted successfully"}
    assert controller.delete_supplier(supplier_id).status == 404


def test_update_missing_supplier(controller):
    response = controller.update_supplier("missing", {"name": "x"})
    assert response.status == 404


def test_update_bad_body(controller):
    response = controller.update_supplier("any", ["not", "an", "object"])
    assert response.status == 400


SUPPLIER_TRANSACTIONS = [
    {"amount": 10000000, "description": "Test Transaction 1", "type": "debit", "payment_method": "bank"},
    {"amount": 20000000, "description": "Test Transaction 2", "type": "debit", "payment_method": "bank"},
    {"amount": 15000000, "description": "Test Transaction 3", "type": "debit", "payment_method": "bank"},
    {"amount": 5000000, "description": "Test Transaction 3", "type": "credit", "payment_method": "cash"},
    {"amount": 2500000, "description": "Test Transaction 3", "type": "credit", "payment_method": "bank"},
    {"amount": 3000000, "description": "Test Transaction 3", "type": "credit", "payment_method": "bank"},
    {"amount": 4000000, "description": "Test Transaction 3", "type": "credit", "payment_method": "cash"},
    {"amount": 1000000, "description": "Test Transaction 3", "type": "credit", "payment_method": "online_transfer"},
]


def test_new_supplier_transactions_move_balances(controller, context, db):
    created = controller.create_supplier(context, SUPPLIERS[0])
    supplier_id = created.body["data"]["id"]
    branch_id = created.body["data"]["branch"]

    for body in SUPPLIER_TRANSACTIONS:
        response = controller.new_transaction(branch_id, supplier_id, body)
        assert response.status == 201
        assert response.body["error"] is None
        assert response.body["data"]["type"] == "supplier"

    finance = db["finance"].find_one({"branch_id": branch_id})["finance"]
    assert finance["debt"] == 29500000
    assert finance["balance"]["bank"] == -5500000
    assert finance["balance"]["cash"] == -9000000
    assert finance["balance"]["mobile_apps"] == -1000000

    supplier = controller.get_supplier_by_id(supplier_id).body["data"]
    assert supplier["financial_data"]["total_income"] == 15500000
    assert supplier["financial_data"]["total_expenses"] == 45000000
    assert supplier["financial_data"]["balance"] == 15500000 - 45000000
    assert len(supplier["financial_data"]["transactions"]) == 8
    assert len(db["transactions"].documents) == 8
    assert all(s.committed for s in db.client.sessions)


def test_new_transaction_invalid_type(controller, context):
    created = controller.create_supplier(context, SUPPLIERS[0])
    response = controller.new_transaction(
        "branch-x", created.body["data"]["id"], {"amount": 10, "type": "gift"}
    )
    assert response.status == 400
    assert response.body["error"][0]["message"] == "invalid transaction type"


def test_new_transaction_bad_amount(controller):
    response = controller.new_transaction("branch-x", "any", {"amount": -1, "type": "credit"})
    assert response.status == 400


def test_new_transaction_unknown_supplier(controller, db):
    response = controller.new_transaction(
        "branch-x", "missing", {"amount": 10, "type": "credit", "payment_method": "cash"}
    )
    assert response.status == 500
    assert response.body["error"][0]["message"] == "supplier not found"
    assert db.client.sessions[0].aborted
    finance = db["finance"].find_one({"branch_id": "branch-x"})["finance"]
    assert finance["balance"]["cash"] == 0