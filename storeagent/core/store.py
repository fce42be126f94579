"""
Entity store adapter: uniform CRUD, pagination and aggregation over named MongoDB collections.

Documents leave the adapter with ObjectIds rendered as strings; string ids in `_id`
filters are converted back to ObjectIds. Every driver error surfaces as StoreFailure.
No cross-call transaction guarantee.
"""

import logging
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from storeagent.core.config import MONGODB_DB, MONGODB_URI, STORE_TIMEOUT_MS
from storeagent.core.errors import ServiceUnavailableError, StoreFailure

logger = logging.getLogger(__name__)

_ID_OPERATORS = ("$in", "$nin")


def is_valid_id(value: Any) -> bool:
    """True if value is an ObjectId or a 24-hex string."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and ObjectId.is_valid(value)


def to_object_id(value: Any) -> Any:
    """Convert a structurally valid id string to ObjectId; anything else is returned as-is."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _normalize_id_filter(value: Any) -> Any:
    if isinstance(value, dict):
        out = {}
        for op, operand in value.items():
            if op in _ID_OPERATORS and isinstance(operand, list):
                out[op] = [to_object_id(v) for v in operand]
            elif op in ("$eq", "$ne"):
                out[op] = to_object_id(operand)
            else:
                out[op] = operand
        return out
    return to_object_id(value)


def normalize_query(query: dict[str, Any] | None) -> dict[str, Any]:
    """Convert `_id` filters (also inside $and/$or/$nor) from strings to ObjectIds."""
    if not query:
        return {}
    out: dict[str, Any] = {}
    for key, value in query.items():
        if key == "_id":
            out[key] = _normalize_id_filter(value)
        elif key in ("$and", "$or", "$nor") and isinstance(value, list):
            out[key] = [normalize_query(q) if isinstance(q, dict) else q for q in value]
        else:
            out[key] = value
    return out


def serialize(value: Any) -> Any:
    """Render ObjectIds as strings, recursively."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def _sort_spec(sort: dict[str, int] | None) -> list[tuple[str, int]]:
    if not sort:
        return []
    return [(field, ASCENDING if int(direction) >= 0 else DESCENDING) for field, direction in sort.items()]


class EntityStore:
    """Keyed-collection interface over a pymongo Database."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def get_collection(self, name: str) -> Collection:
        return self.database[name]

    def insert_one(self, name: str, document: dict[str, Any]) -> str:
        try:
            result = self.get_collection(name).insert_one(dict(document))
        except PyMongoError as e:
            logger.warning("[store:insert_one] %s failed: %s", name, e)
            raise StoreFailure("insert_one", name) from e
        inserted = str(result.inserted_id)
        logger.info("[store:insert_one] %s OUT id=%s", name, inserted)
        return inserted

    def insert_many(self, name: str, documents: list[dict[str, Any]]) -> list[str]:
        if not documents:
            return []
        try:
            result = self.get_collection(name).insert_many([dict(d) for d in documents])
        except PyMongoError as e:
            logger.warning("[store:insert_many] %s failed: %s", name, e)
            raise StoreFailure("insert_many", name) from e
        ids = [str(i) for i in result.inserted_ids]
        logger.info("[store:insert_many] %s OUT count=%d", name, len(ids))
        return ids

    def find(
        self,
        name: str,
        query: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        try:
            cursor = self.get_collection(name).find(normalize_query(query), projection or None)
            docs = list(cursor)
        except PyMongoError as e:
            logger.warning("[store:find] %s failed: %s", name, e)
            raise StoreFailure("find", name) from e
        logger.info("[store:find] %s OUT count=%d", name, len(docs))
        return [serialize(d) for d in docs]

    def find_one(
        self,
        name: str,
        query: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        try:
            doc = self.get_collection(name).find_one(normalize_query(query), projection or None)
        except PyMongoError as e:
            logger.warning("[store:find_one] %s failed: %s", name, e)
            raise StoreFailure("find_one", name) from e
        return serialize(doc) if doc is not None else None

    def find_paginated(
        self,
        name: str,
        query: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        sort: dict[str, int] | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> dict[str, Any]:
        """Return {"items", "total"}; total comes from a separate count on the same filter."""
        filt = normalize_query(query)
        collection = self.get_collection(name)
        try:
            cursor = collection.find(filt, projection or None)
            spec = _sort_spec(sort)
            if spec:
                cursor = cursor.sort(spec)
            items = list(cursor.skip(max(offset, 0)).limit(max(limit, 0)))
            total = collection.count_documents(filt)
        except PyMongoError as e:
            logger.warning("[store:find_paginated] %s failed: %s", name, e)
            raise StoreFailure("find_paginated", name) from e
        logger.info("[store:find_paginated] %s OUT items=%d total=%d", name, len(items), total)
        return {"items": [serialize(d) for d in items], "total": total}

    def count(self, name: str, query: dict[str, Any] | None = None) -> int:
        try:
            return self.get_collection(name).count_documents(normalize_query(query))
        except PyMongoError as e:
            logger.warning("[store:count] %s failed: %s", name, e)
            raise StoreFailure("count", name) from e

    def update_many(self, name: str, query: dict[str, Any], patch: dict[str, Any]) -> dict[str, int]:
        try:
            result = self.get_collection(name).update_many(normalize_query(query), patch)
        except PyMongoError as e:
            logger.warning("[store:update_many] %s failed: %s", name, e)
            raise StoreFailure("update_many", name) from e
        out = {"matched_count": result.matched_count, "modified_count": result.modified_count}
        logger.info("[store:update_many] %s OUT %s", name, out)
        return out

    def delete_many(self, name: str, query: dict[str, Any]) -> dict[str, int]:
        try:
            result = self.get_collection(name).delete_many(normalize_query(query))
        except PyMongoError as e:
            logger.warning("[store:delete_many] %s failed: %s", name, e)
            raise StoreFailure("delete_many", name) from e
        logger.info("[store:delete_many] %s OUT deleted=%d", name, result.deleted_count)
        return {"deleted_count": result.deleted_count}

    def aggregate(self, name: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        try:
            docs = list(self.get_collection(name).aggregate(pipeline))
        except PyMongoError as e:
            logger.warning("[store:aggregate] %s failed: %s", name, e)
            raise StoreFailure("aggregate", name) from e
        logger.info("[store:aggregate] %s OUT count=%d", name, len(docs))
        return [serialize(d) for d in docs]

    def list_collection_names(self) -> list[str]:
        try:
            return sorted(self.database.list_collection_names())
        except PyMongoError as e:
            logger.warning("[store:list_collection_names] failed: %s", e)
            raise StoreFailure("list_collection_names") from e


_store: EntityStore | None = None


def get_store() -> EntityStore:
    """
    Connect to MongoDB and return the process-wide adapter. The client is created lazily;
    pymongo pools connections, so one adapter is shared by all requests.
    """
    global _store
    if _store is not None:
        return _store
    if not MONGODB_URI:
        raise ServiceUnavailableError("MONGODB_URI must be set in .env")
    client: MongoClient = MongoClient(MONGODB_URI, serverSelectionTimeoutMS=STORE_TIMEOUT_MS)
    _store = EntityStore(client[MONGODB_DB])
    logger.info("[store] connected db=%s", MONGODB_DB)
    return _store
