"""
Document stores keyed by (collection, id).

`set(..., merge=True)` overwrites only the top-level fields present in the
record; `merge=False` replaces the whole document.
"""
import copy
import logging
from typing import Any, Dict, Optional, Protocol, Tuple

from motor.motor_asyncio import AsyncIOMotorClient

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> Optional[Record]: ...

    async def set(self, collection: str, doc_id: str, record: Record, merge: bool = False) -> None: ...

    async def find_one(self, collection: str, field: str, value: Any) -> Optional[Tuple[str, Record]]: ...


def _lookup(record: Record, path: str) -> Any:
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class InMemoryDocumentStore:
    """Dict-backed store. Records are copied in and out."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Record]] = {}
        self.writes = 0

    async def get(self, collection: str, doc_id: str) -> Optional[Record]:
        record = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(record) if record is not None else None

    async def set(self, collection: str, doc_id: str, record: Record, merge: bool = False) -> None:
        documents = self.collections.setdefault(collection, {})
        if merge and doc_id in documents:
            documents[doc_id].update(copy.deepcopy(record))
        else:
            documents[doc_id] = copy.deepcopy(record)
        self.writes += 1

    async def find_one(self, collection: str, field: str, value: Any) -> Optional[Tuple[str, Record]]:
        for doc_id, record in self.collections.get(collection, {}).items():
            if _lookup(record, field) == value:
                return doc_id, copy.deepcopy(record)
        return None


class MongoDocumentStore:
    """MongoDB through Motor. The document id is stored as `_id`."""

    def __init__(self, uri: str, db_name: str):
        self.uri = uri
        self.db_name = db_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None

    async def connect_to_database(self):
        logger.info("Connecting to MongoDB...")
        try:
            self.client = AsyncIOMotorClient(self.uri)
            self.db = self.client[self.db_name]
            logger.info(f"Connected to MongoDB database '{self.db_name}'.")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise e

    async def close_database_connection(self):
        logger.info("Closing MongoDB connection...")
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed.")

    async def get(self, collection: str, doc_id: str) -> Optional[Record]:
        doc = await self.db[collection].find_one({"_id": doc_id})
        if doc is None:
            return None
        doc.pop("_id", None)
        return doc

    async def set(self, collection: str, doc_id: str, record: Record, merge: bool = False) -> None:
        if merge:
            await self.db[collection].update_one({"_id": doc_id}, {"$set": record}, upsert=True)
        else:
            await self.db[collection].replace_one({"_id": doc_id}, record, upsert=True)

    async def find_one(self, collection: str, field: str, value: Any) -> Optional[Tuple[str, Record]]:
        doc = await self.db[collection].find_one({field: value})
        if doc is None:
            return None
        doc_id = doc.pop("_id")
        return str(doc_id), doc


class FirestoreDocumentStore:
    """Cloud Firestore through the Admin SDK's async client."""

    def __init__(self, firebase_app=None):
        from firebase_admin import firestore_async
        self.client = firestore_async.client(app=firebase_app)

    async def get(self, collection: str, doc_id: str) -> Optional[Record]:
        snapshot = await self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    async def set(self, collection: str, doc_id: str, record: Record, merge: bool = False) -> None:
        ref = self.client.collection(collection).document(doc_id)
        if merge:
            # Field paths limit the merge to top-level fields; nested maps are replaced.
            await ref.set(record, merge=list(record.keys()))
        else:
            await ref.set(record)

    async def find_one(self, collection: str, field: str, value: Any) -> Optional[Tuple[str, Record]]:
        from google.cloud.firestore_v1.base_query import FieldFilter
        query = self.client.collection(collection).where(filter=FieldFilter(field, "==", value)).limit(1)
        async for snapshot in query.stream():
            return snapshot.id, snapshot.to_dict()
        return None
