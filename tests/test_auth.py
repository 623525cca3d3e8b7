import pytest
from pymongo.errors import PyMongoError

from poserp.activity import RequestContext
from poserp.auth import AuthenticationError, Middlewares


class FakeCollection:
    def __init__(self, documents=None):
        self.documents = list(documents or [])

    def find_one(self, filter, session=None):
        for document in self.documents:
            if all(document.get(k) == v for k, v in filter.items()):
                return dict(document)
        return None


class FailingCollection:
    def find_one(self, filter, session=None):
        raise PyMongoError("timeout")


def make_db(users):
    return {"users": users, "activities": FakeCollection()}


def test_authorize_sets_user_in_context():
    users = FakeCollection(
        [{"_id": "u1", "username": "alice", "email": "alice@example.com", "role": "admin"}]
    )
    middlewares = Middlewares(make_db(users))
    context = RequestContext(ip="127.0.0.1")
    user = middlewares.authorize(context, "alice")
    assert context.user == "alice"
    assert user.id == "u1"
    assert user.email == "alice@example.com"
    assert user.role == "admin"


def test_authorize_unknown_user_raises():
    middlewares = Middlewares(make_db(FakeCollection([{"_id": "u1", "username": "alice"}])))
    context = RequestContext()
    with pytest.raises(AuthenticationError):
        middlewares.authorize(context, "mallory")
    assert context.user is None


def test_authorize_database_error_raises_authentication_error():
    middlewares = Middlewares(make_db(FailingCollection()))
    with pytest.raises(AuthenticationError):
        middlewares.authorize(RequestContext(), "alice")


def test_middlewares_use_named_collections():
    users = FakeCollection()
    activities = FakeCollection()
    middlewares = Middlewares({"users": users, "activities": activities})
    assert middlewares.user_collection is users
    assert middlewares.activities_collection is activities