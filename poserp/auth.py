"""Request authorisation against the users collection."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pymongo.errors import PyMongoError

from poserp.activity import RequestContext
from poserp.records import User

log = logging.getLogger(__name__)


class AuthenticationError(PermissionError):
    """Raised when the request's user cannot be found; answered with 401."""


def _user_from_document(document: Mapping[str, Any]) -> User:
    return User(
        id=document.get("_id", ""),
        email=document.get("email", ""),
        username=document.get("username", ""),
        password=document.get("password", ""),
        role=document.get("role", ""),
        phone=document.get("phone", ""),
        branch=document.get("branch", ""),
    )


class Middlewares:
    """Request middleware backed by the users and activities collections."""

    def __init__(self, db: Any) -> None:
        self.user_collection = db["users"]
        self.activities_collection = db["activities"]

    def authorize(self, context: RequestContext, username: str) -> User:
        """Look up the token's user and attach its name to the request context."""
        try:
            document = self.user_collection.find_one({"username": username})
        except PyMongoError as error:
            log.error("failed to find user: %s", error)
            raise AuthenticationError(str(error)) from error
        if document is None:
            log.error("failed to find user %s", username)
            raise AuthenticationError(f"user {username} not found")
        user = _user_from_document(document)
        context.user = user.username
        return user