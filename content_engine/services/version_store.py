"""
Version Store - generic typed-record persistence.

Records are plain dicts keyed by an opaque string id and grouped by a
record type (e.g. "contentVersion"). Implementations:
- InMemoryVersionStore: tests and single-process deployments
- MongoVersionStore: MongoDB via motor

Each call is atomic for the single record it touches; there are no
multi-record transactions.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError
from pymongo.errors import PyMongoError

from ..core import get_logger
from ..exceptions import ConflictError, DuplicateVersionError, StoreOperationError

logger = get_logger(__name__)

CONTENT_VERSION = "contentVersion"

SortSpec = Sequence[Tuple[str, int]]


class VersionStore(ABC):
    """
    Abstract record store.

    ``update`` treats a ``None`` value as "remove this field".
    ``get``/``update`` return None for unknown ids instead of raising.
    """

    @abstractmethod
    async def create(self, record_type: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new record and return it with its assigned ``id``."""

    @abstractmethod
    async def get(self, record_type: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one record."""

    @abstractmethod
    async def update(
        self, record_type: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply field changes and return the updated record."""

    @abstractmethod
    async def delete(self, record_type: str, record_id: str) -> bool:
        """Remove a record; True if it existed."""

    @abstractmethod
    async def query(
        self,
        record_type: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        """Records whose fields equal every value in ``filters``."""

    async def close(self) -> None:
        pass


# ============================================
# In-memory implementation
# ============================================

class InMemoryVersionStore(VersionStore):
    """Dict-backed store. Records are deep-copied in and out."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _table(self, record_type: str) -> Dict[str, Dict[str, Any]]:
        return self._records.setdefault(record_type, {})

    async def create(self, record_type: str, record: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(record)
        stored["id"] = stored.get("id") or uuid.uuid4().hex
        table = self._table(record_type)
        if stored["id"] in table:
            raise ConflictError(
                message=f"Record already exists: {record_type}/{stored['id']}",
                error_code="C005",
                details={"record_type": record_type, "id": stored["id"]},
            )
        table[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def get(self, record_type: str, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._table(record_type).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def update(
        self, record_type: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        record = self._table(record_type).get(record_id)
        if record is None:
            return None
        for key, value in changes.items():
            if key == "id":
                continue
            if value is None:
                record.pop(key, None)
            else:
                record[key] = copy.deepcopy(value)
        return copy.deepcopy(record)

    async def delete(self, record_type: str, record_id: str) -> bool:
        return self._table(record_type).pop(record_id, None) is not None

    async def query(
        self,
        record_type: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        filters = filters or {}
        matches = [
            copy.deepcopy(record)
            for record in self._table(record_type).values()
            if all(record.get(key) == value for key, value in filters.items())
        ]
        # Stable multi-key sort: apply keys from last to first
        for key, direction in reversed(list(sort or [])):
            matches.sort(
                key=lambda r: (r.get(key) is None, r.get(key)),
                reverse=direction == DESCENDING,
            )
        return matches


# ============================================
# MongoDB implementation
# ============================================

def store_operation(operation: str):
    """
    Wrap a Mongo call: duplicate keys become ConflictError, every other
    driver failure becomes StoreOperationError.
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(self, record_type: str, *args, **kwargs):
            try:
                return await func(self, record_type, *args, **kwargs)
            except MongoDuplicateKeyError as e:
                record = args[0] if args and isinstance(args[0], dict) else {}
                if {"content_type", "content_id", "version_number"} <= record.keys():
                    raise DuplicateVersionError(
                        record["content_type"], record["content_id"], record["version_number"]
                    ) from e
                raise ConflictError(
                    message=f"Duplicate {record_type} record",
                    error_code="C005",
                    details={"record_type": record_type},
                    cause=e,
                ) from e
            except PyMongoError as e:
                logger.error(
                    "Version store operation failed",
                    operation=operation,
                    record_type=record_type,
                    error=str(e),
                )
                raise StoreOperationError(operation, str(e), cause=e) from e
        return wrapper
    return decorator


class MongoVersionStore(VersionStore):
    """
    Motor-backed store. One collection per record type; ``_id`` is an
    ObjectId exposed to callers as the string ``id``.

    Recommended indexes (created by ensure_indexes):
    -----------------------------------------
    db.content_versions.createIndex(
        {"content_type": 1, "content_id": 1, "version_number": 1}, {unique: true})
    db.content_versions.createIndex({"status": 1, "scheduled_at": 1})
    """

    COLLECTIONS = {
        CONTENT_VERSION: "content_versions",
    }

    def __init__(self, db, client=None):
        """
        Args:
            db: motor AsyncIOMotorDatabase
            client: owning AsyncIOMotorClient, closed by close()
        """
        self._db = db
        self._client = client

    @classmethod
    def from_uri(cls, uri: str, database: str, timeout_ms: int = 5000) -> "MongoVersionStore":
        from motor.motor_asyncio import AsyncIOMotorClient

        client = AsyncIOMotorClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            retryWrites=True,
            retryReads=True,
        )
        return cls(client[database], client=client)

    def _collection(self, record_type: str):
        return self._db[self.COLLECTIONS.get(record_type, record_type)]

    @staticmethod
    def _object_id(record_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(record_id)
        except (InvalidId, TypeError):
            return None

    @staticmethod
    def _to_record(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if doc is None:
            return None
        record = dict(doc)
        record["id"] = str(record.pop("_id"))
        return record

    async def ensure_indexes(self) -> None:
        collection = self._collection(CONTENT_VERSION)
        await collection.create_index(
            [("content_type", ASCENDING), ("content_id", ASCENDING), ("version_number", ASCENDING)],
            unique=True,
        )
        await collection.create_index([("status", ASCENDING), ("scheduled_at", ASCENDING)])
        logger.info("Version store indexes ensured", collection=self.COLLECTIONS[CONTENT_VERSION])

    @store_operation("create")
    async def create(self, record_type: str, record: Dict[str, Any]) -> Dict[str, Any]:
        doc = {k: v for k, v in record.items() if k != "id" and v is not None}
        doc["_id"] = ObjectId()
        await self._collection(record_type).insert_one(doc)
        return self._to_record(doc)

    @store_operation("get")
    async def get(self, record_type: str, record_id: str) -> Optional[Dict[str, Any]]:
        oid = self._object_id(record_id)
        if oid is None:
            return None
        doc = await self._collection(record_type).find_one({"_id": oid})
        return self._to_record(doc)

    @store_operation("update")
    async def update(
        self, record_type: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        oid = self._object_id(record_id)
        if oid is None:
            return None

        to_set = {k: v for k, v in changes.items() if k != "id" and v is not None}
        to_unset = {k: "" for k, v in changes.items() if k != "id" and v is None}
        update_doc: Dict[str, Any] = {}
        if to_set:
            update_doc["$set"] = to_set
        if to_unset:
            update_doc["$unset"] = to_unset
        if not update_doc:
            return await self.get(record_type, record_id)

        doc = await self._collection(record_type).find_one_and_update(
            {"_id": oid},
            update_doc,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_record(doc)

    @store_operation("delete")
    async def delete(self, record_type: str, record_id: str) -> bool:
        oid = self._object_id(record_id)
        if oid is None:
            return False
        result = await self._collection(record_type).delete_one({"_id": oid})
        return result.deleted_count > 0

    @store_operation("query")
    async def query(
        self,
        record_type: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self._collection(record_type).find(filters or {})
        if sort:
            cursor = cursor.sort(list(sort))
        docs = await cursor.to_list(length=None)
        return [self._to_record(doc) for doc in docs]

    async def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing MongoDB connection", error=str(e))
            finally:
                self._client = None
