"""MongoDB client, database handle and transaction helper."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from pymongo import MongoClient
from pymongo.client_session import ClientSession
from pymongo.database import Database

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    """Process-wide client, created on first use."""
    global _client
    if _client is None:
        from gitx.config import settings

        logger.info(f"Connecting to MongoDB ({settings.MONGODB_DB_NAME})")
        _client = MongoClient(settings.MONGODB_URI, tz_aware=True)
    return _client


def get_database() -> Database:
    from gitx.config import settings

    return get_client()[settings.MONGODB_DB_NAME]


@contextmanager
def get_transaction(
    client: Optional[MongoClient] = None,
) -> Generator[ClientSession, None, None]:
    """
    Session with an open transaction; commits on clean exit, aborts on error.

    Only works against a replica set, which is why repositories use it only
    when MONGODB_USE_TRANSACTIONS is enabled.
    """
    client = client or get_client()
    with client.start_session() as session:
        with session.start_transaction():
            yield session
