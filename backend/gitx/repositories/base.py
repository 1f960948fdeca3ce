"""Base repository with the MongoDB operations shared by every collection."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Generic, List, Optional, Type, TypeVar

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import PyMongoError

from gitx.entities.base import BaseEntity
from gitx.services.indexing_exceptions import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseEntity)


@contextmanager
def store_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise driver failures as StoreError, keeping the original as cause."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"MongoDB {operation} failed: {e}")
        raise StoreError(f"{operation} failed: {e}") from e


class BaseRepository(Generic[T]):
    """Base repository for typed access to one MongoDB collection."""

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection_name = collection_name
        self.collection = db[collection_name]
        self.model_class = model_class

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if doc is None:
            return None
        return self.model_class(**doc)

    def find_by_id(self, entity_id: Any) -> Optional[T]:
        return self.find_one({"_id": entity_id})

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        with store_errors(f"find_one on {self.collection_name}"):
            doc = self.collection.find_one(query)
        return self._to_model(doc)

    def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
        projection: Optional[Dict[str, Any]] = None,
    ) -> List[T]:
        with store_errors(f"find on {self.collection_name}"):
            cursor = self.collection.find(query, projection)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return [self.model_class(**doc) for doc in cursor]

    def count(self, query: Dict[str, Any]) -> int:
        with store_errors(f"count on {self.collection_name}"):
            return self.collection.count_documents(query)

    def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = False,
        session: Optional[ClientSession] = None,
    ) -> Optional[T]:
        with store_errors(f"find_one_and_update on {self.collection_name}"):
            doc = self.collection.find_one_and_update(
                query,
                update,
                upsert=upsert,
                return_document=ReturnDocument.AFTER,
                session=session,
            )
        return self._to_model(doc)

    def update_one(self, entity_id: Any, updates: Dict[str, Any]) -> bool:
        with store_errors(f"update_one on {self.collection_name}"):
            result = self.collection.update_one({"_id": entity_id}, {"$set": updates})
        return result.matched_count > 0

    def delete_many(
        self, query: Dict[str, Any], session: Optional[ClientSession] = None
    ) -> int:
        with store_errors(f"delete_many on {self.collection_name}"):
            result = self.collection.delete_many(query, session=session)
        return result.deleted_count

    @contextmanager
    def write_session(self) -> Generator[Optional[ClientSession], None, None]:
        """
        Session for a multi-document write.

        Yields a transactional session when MONGODB_USE_TRANSACTIONS is on,
        otherwise None so the write runs as a plain (unordered) batch.
        """
        from gitx.config import settings

        if not settings.MONGODB_USE_TRANSACTIONS:
            yield None
            return

        from gitx.database.mongo import get_transaction

        with store_errors(f"transaction on {self.collection_name}"):
            with get_transaction(self.db.client) as session:
                yield session
