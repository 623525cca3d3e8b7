"""Connections to the document database and the cache."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from pymongo import MongoClient
from pymongo.client_session import ClientSession
from redis import Redis

log = logging.getLogger(__name__)


def connect_database(uri: str, max_connecting: int, min_pool_size: int) -> MongoClient:
    """Connect to MongoDB and check the server answers a ping."""
    log.debug("connecting to MongoDB (max_connecting=%d, min_pool_size=%d)",
              max_connecting, min_pool_size)
    client = MongoClient(uri, maxConnecting=max_connecting, minPoolSize=min_pool_size)
    client.admin.command("ping")
    log.info("connected to MongoDB")
    return client


def connect_cache(host: str, port: int | str, password: str | None, database: int) -> Redis:
    """Connect to Redis and check the server answers a ping."""
    log.info("connecting to Redis at %s:%s db=%d", host, port, database)
    client = Redis(host=host, port=int(port), password=password, db=database)
    client.ping()
    log.info("connected to Redis")
    return client


@contextmanager
def start_transaction(client: MongoClient) -> Iterator[ClientSession]:
    """Open a session with a transaction started.

    The transaction is committed when the block ends normally (unless the caller
    already committed or aborted it) and aborted when the block raises. The
    session is always ended.
    """
    session = client.start_session()
    try:
        session.start_transaction()
        try:
            yield session
        except BaseException:
            if session.in_transaction:
                session.abort_transaction()
            raise
        if session.in_transaction:
            session.commit_transaction()
    finally:
        session.end_session()