"""
MongoDB access: connection lifecycle, indexes and the repository base class
"""

import logging
from typing import Optional, Dict, Any, List
from datetime import datetime
from dataclasses import fields

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
import pymongo
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from .config import get_database_config, DatabaseConfig

logger = logging.getLogger(__name__)

# Documents are keyed by their own string "id"; Mongo's ObjectId never leaves the store
NO_OBJECT_ID = {"_id": 0}

ASC, DESC = pymongo.ASCENDING, pymongo.DESCENDING

# Secondary indexes per logical collection; every collection also gets a unique "id"
INDEXES = {
    "users": [[("hospital_id", ASC), ("role", ASC)]],
    "patients": [[("hospital_id", ASC), ("is_active", ASC)]],
    "patient_consents": [[
        ("patient_id", ASC), ("requesting_hospital_id", ASC), ("data_type", ASC), ("consent_date", DESC)
    ]],
    "data_requests": [
        [("requesting_user_id", ASC), ("request_date", DESC)],
        [("patient_hospital_id", ASC), ("status", ASC)],
    ],
    "data_request_endpoints": [[("hospital_id", ASC), ("data_type", ASC)]],
    "patient_feedback": [[("doctor_id", ASC)], [("hospital_id", ASC)]],
    "audit_logs": [[("timestamp", DESC)], [("entity_type", ASC), ("status", ASC)]],
}


class DatabaseManager:
    """
    Owns the Motor client and the eight SCIS collections.

    initialize() must be awaited before any repository is used.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or get_database_config()
        self._client: Optional[AsyncIOMotorClient] = None
        self._database: Optional[AsyncIOMotorDatabase] = None
        self._collections: Dict[str, AsyncIOMotorCollection] = {}
        self._initialized = False

    async def initialize(self, client: Optional[AsyncIOMotorClient] = None) -> None:
        """
        Connect and ensure indexes.

        A ready Motor-compatible client may be passed in (tests use
        mongomock-motor); no ping is issued for it.
        """
        if self._initialized:
            return

        try:
            if client is None:
                logger.info(f"Connecting to MongoDB database {self.config.name}")
                client = AsyncIOMotorClient(
                    self.config.uri,
                    maxPoolSize=self.config.max_pool_size,
                    minPoolSize=self.config.min_pool_size,
                    maxIdleTimeMS=self.config.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.config.server_selection_timeout_ms
                )
                await client.admin.command('ping')

            self._client = client
            self._database = client[self.config.name]
            self._collections = {
                logical: self._database[actual] for logical, actual in self.config.collections().items()
            }
            await self._create_indexes()

        except PyMongoError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

        self._initialized = True
        logger.info(f"Database ready ({len(self._collections)} collections)")

    async def _create_indexes(self) -> None:
        for name, coll in self._collections.items():
            await coll.create_index([("id", ASC)], unique=True)
            for keys in INDEXES.get(name, []):
                await coll.create_index(keys)

        # External patient ids are unique across the exchange
        await self._collections["patients"].create_index([("patient_id", ASC)], unique=True)

    async def cleanup(self) -> None:
        if self._client:
            self._client.close()
            self._initialized = False
            logger.info("Database connections closed")

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        if not self._initialized:
            raise RuntimeError("Database manager not initialized. Call initialize() first.")
        return self._collections[name]

    async def health_check(self) -> Dict[str, Any]:
        if not self._initialized:
            return {"status": "error", "message": "Database not initialized"}

        try:
            await self._client.admin.command('ping')
            counts = {name: await coll.estimated_document_count() for name, coll in self._collections.items()}
            return {"status": "healthy", "database": self.config.name, "documents": counts}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}


def _stamp(update: Dict[str, Any]) -> Dict[str, Any]:
    update.setdefault("$set", {})["updated_at"] = datetime.utcnow()
    return update


class BaseRepository:
    """
    Shared persistence for one collection whose documents map onto a
    dataclass entity (``entity_class``).

    Driver errors are logged with the collection name and re-raised.
    """

    entity_class: Optional[type] = None

    def __init__(self, db_manager: DatabaseManager, collection_name: str):
        self.db_manager = db_manager
        self.collection_name = collection_name

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.db_manager.get_collection(self.collection_name)

    def _doc_to_entity(self, doc: Dict[str, Any]):
        """Build the entity from a stored document, ignoring unknown keys"""
        known = {f.name for f in fields(self.entity_class)}
        return self.entity_class(**{k: v for k, v in doc.items() if k in known})

    def _fail(self, operation: str, error: Exception) -> None:
        logger.error(f"{operation} on {self.collection_name} failed: {error}")

    async def find_one(
        self,
        filter_dict: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        fields_only: Optional[List[str]] = None
    ) -> Optional[Dict[str, Any]]:
        projection = dict(NO_OBJECT_ID)
        if fields_only:
            projection.update({name: 1 for name in fields_only})
        try:
            return await self.collection.find_one(filter_dict, projection, sort=sort)
        except PyMongoError as e:
            self._fail("find_one", e)
            raise

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        cursor = self.collection.find(filter_dict, NO_OBJECT_ID)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)

        try:
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            self._fail("find_many", e)
            raise

    async def insert_one(self, document: Dict[str, Any]) -> str:
        """Insert a document carrying its own "id" and return that id"""
        document.setdefault("created_at", datetime.utcnow())
        document.setdefault("updated_at", document["created_at"])
        try:
            # Motor adds _id to the dict it is given
            await self.collection.insert_one(dict(document))
        except PyMongoError as e:
            self._fail("insert_one", e)
            raise
        return document["id"]

    async def update_one(self, filter_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> bool:
        """Apply an update to one document, stamping updated_at; True when a document matched"""
        try:
            result = await self.collection.update_one(filter_dict, _stamp(update_dict))
        except PyMongoError as e:
            self._fail("update_one", e)
            raise
        return result.matched_count > 0

    async def find_one_and_update(
        self,
        filter_dict: Dict[str, Any],
        update_dict: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Atomically update one document; the updated document, or None when nothing matched"""
        try:
            return await self.collection.find_one_and_update(
                filter_dict,
                _stamp(update_dict),
                projection=NO_OBJECT_ID,
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            self._fail("find_one_and_update", e)
            raise

    async def update_many(self, filter_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> int:
        try:
            result = await self.collection.update_many(filter_dict, _stamp(update_dict))
        except PyMongoError as e:
            self._fail("update_many", e)
            raise
        return result.modified_count

    async def delete_one(self, filter_dict: Dict[str, Any]) -> bool:
        try:
            result = await self.collection.delete_one(filter_dict)
        except PyMongoError as e:
            self._fail("delete_one", e)
            raise
        return result.deleted_count > 0

    async def count_documents(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        try:
            return await self.collection.count_documents(filter_dict or {})
        except PyMongoError as e:
            self._fail("count_documents", e)
            raise

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        try:
            return await self.collection.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            self._fail("aggregate", e)
            raise
