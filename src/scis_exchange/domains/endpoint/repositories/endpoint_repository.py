"""
Endpoint repository - per-hospital FHIR endpoint configuration
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
import logging

from ..models.endpoint import EndpointEntity, DataType
from ....core.database import BaseRepository, DatabaseManager
from ....core.cache import CacheManager, CacheKeyBuilder


logger = logging.getLogger(__name__)

_DATETIME_FIELDS = ("created_at", "updated_at", "last_validation_date")

# Credentials stay in MongoDB; cached entries carry everything else
_CREDENTIAL_FIELDS = ["api_key", "auth_token"]


class EndpointRepository(BaseRepository):
    """Repository for data request endpoints, with Redis-cached resolution"""

    entity_class = EndpointEntity

    def __init__(self, db_manager: DatabaseManager, cache_manager: Optional[CacheManager] = None):
        super().__init__(db_manager, "data_request_endpoints")
        self.cache_manager = cache_manager

    async def get(self, endpoint_id: str) -> Optional[EndpointEntity]:
        doc = await self.find_one({"id": endpoint_id})
        return self._doc_to_entity(doc) if doc else None

    async def list_for_pair(self, hospital_id: str, data_type: DataType) -> List[EndpointEntity]:
        """All endpoints for a (hospital, data type) pair, most recently updated first"""
        docs = await self.find_many(
            {"hospital_id": hospital_id, "data_type": DataType(data_type).value},
            sort=[("updated_at", -1)]
        )
        return [self._doc_to_entity(doc) for doc in docs]

    async def list_for_hospital(self, hospital_id: str) -> List[EndpointEntity]:
        docs = await self.find_many({"hospital_id": hospital_id}, sort=[("data_type", 1)])
        return [self._doc_to_entity(doc) for doc in docs]

    async def list_all(self, active_only: bool = False) -> List[EndpointEntity]:
        query = {"is_active": True} if active_only else {}
        docs = await self.find_many(query, sort=[("hospital_id", 1), ("data_type", 1)])
        return [self._doc_to_entity(doc) for doc in docs]

    async def create(self, endpoint: EndpointEntity) -> EndpointEntity:
        endpoint.updated_at = endpoint.created_at
        await self.insert_one(endpoint.to_dict())
        await self.invalidate(endpoint.hospital_id, endpoint.data_type)
        return endpoint

    async def update_fields(self, endpoint: EndpointEntity, changes: Dict[str, Any]) -> bool:
        updated = await self.update_one({"id": endpoint.id}, {"$set": changes})
        await self.invalidate(endpoint.hospital_id, endpoint.data_type)
        return updated

    async def remove(self, endpoint: EndpointEntity) -> bool:
        deleted = await self.delete_one({"id": endpoint.id})
        await self.invalidate(endpoint.hospital_id, endpoint.data_type)
        return deleted

    # Cache helpers
    async def get_cached(self, hospital_id: str, data_type: DataType) -> Optional[EndpointEntity]:
        if not self.cache_manager:
            return None
        data = await self.cache_manager.get(CacheKeyBuilder.endpoint_key(hospital_id, DataType(data_type).value))
        if not data:
            return None
        credentials = await self.find_one({"id": data.get("id")}, fields_only=_CREDENTIAL_FIELDS)
        if credentials is None:
            await self.invalidate(hospital_id, data_type)
            return None

        for name in _DATETIME_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = datetime.fromisoformat(data[name])
        data.update(credentials)
        return self._doc_to_entity(data)

    async def cache(self, endpoint: EndpointEntity) -> None:
        if not self.cache_manager:
            return
        data = endpoint.to_dict()
        for name in _CREDENTIAL_FIELDS:
            data.pop(name, None)
        await self.cache_manager.set(
            CacheKeyBuilder.endpoint_key(endpoint.hospital_id, endpoint.data_type.value),
            data,
            ttl_seconds=self.cache_manager.config.endpoint_cache_ttl_seconds
        )

    async def invalidate(self, hospital_id: str, data_type: DataType) -> None:
        if self.cache_manager:
            await self.cache_manager.delete(CacheKeyBuilder.endpoint_key(hospital_id, DataType(data_type).value))
