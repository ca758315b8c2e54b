"""
Document store (MongoDB) access.

Company and store master records live here. Writes that must land together
go through ``DocumentStore.transaction()``, a multi-document transaction with
majority read and write concern.
"""
from contextlib import contextmanager
from functools import lru_cache
from typing import Optional, Dict, Any
import logging

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from inventa.core.config import settings
from inventa.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _as_object_id(value):
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return value


class DocumentStore:
    """Thin wrapper over a pymongo database."""

    def __init__(self, client: MongoClient, db_name: str):
        self.client = client
        self.db = client[db_name]

    @contextmanager
    def transaction(self):
        """
        Yield a session bound to an open transaction.

        Commits when the block exits normally and aborts when it raises; a
        failing commit raises out of the ``with`` statement.
        """
        with self.client.start_session() as session:
            with session.start_transaction(
                read_concern=ReadConcern("majority"),
                write_concern=WriteConcern("majority"),
            ):
                yield session

    def insert_one(self, collection: str, document: Dict[str, Any], session=None) -> Optional[str]:
        result = self.db[collection].insert_one(document, session=session)
        if result.inserted_id is None:
            return None
        return str(result.inserted_id)

    def find_one(self, collection: str, query: Dict[str, Any], session=None) -> Optional[Dict[str, Any]]:
        if "_id" in query:
            query = {**query, "_id": _as_object_id(query["_id"])}
        document = self.db[collection].find_one(query, session=session)
        if document is not None:
            document["_id"] = str(document["_id"])
        return document

    def delete_one(self, collection: str, document_id: str, session=None) -> int:
        result = self.db[collection].delete_one({"_id": _as_object_id(document_id)}, session=session)
        return result.deleted_count


@lru_cache(maxsize=1)
def _get_client(uri: str) -> MongoClient:
    return MongoClient(
        uri,
        timeoutMS=settings.MONGODB_TIMEOUT_MS,
        serverSelectionTimeoutMS=settings.MONGODB_TIMEOUT_MS,
        tz_aware=True,
    )


def get_document_store() -> DocumentStore:
    """Dependency that fails fast when the document store is not configured."""
    if not settings.MONGODB_DB:
        logger.error("MONGODB_DB environment variable is not set")
        raise ConfigurationError("MONGODB_DB is not configured")
    return DocumentStore(_get_client(settings.MONGODB_URI), settings.MONGODB_DB)
