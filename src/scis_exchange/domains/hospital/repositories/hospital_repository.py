"""
Hospital and user repositories - handle data persistence
"""

from typing import Optional, List, Dict, Any
import logging

from ..models.hospital import HospitalEntity, UserEntity, Role
from ....core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class HospitalRepository(BaseRepository):
    """Repository for hospital persistence"""

    entity_class = HospitalEntity

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "hospitals")

    async def create(self, hospital: HospitalEntity) -> HospitalEntity:
        await self.insert_one(hospital.to_dict())
        logger.info(f"Registered hospital {hospital.id} ({hospital.name})")
        return hospital

    async def get(self, hospital_id: str) -> Optional[HospitalEntity]:
        doc = await self.find_one({"id": hospital_id})
        return self._doc_to_entity(doc) if doc else None

    async def list(self, active_only: bool = False) -> List[HospitalEntity]:
        query = {"is_active": True} if active_only else {}
        docs = await self.find_many(query, sort=[("name", 1)])
        return [self._doc_to_entity(doc) for doc in docs]

    async def list_pending(self) -> List[HospitalEntity]:
        """Registered hospitals still waiting for approval, oldest first"""
        docs = await self.find_many({"is_approved": False}, sort=[("created_at", 1)])
        return [self._doc_to_entity(doc) for doc in docs]

    async def count_active(self) -> int:
        return await self.count_documents({"is_active": True})

    async def update_fields(self, hospital_id: str, changes: Dict[str, Any]) -> bool:
        return await self.update_one({"id": hospital_id}, {"$set": changes})


class UserRepository(BaseRepository):
    """Repository for user persistence"""

    entity_class = UserEntity

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "users")

    async def create(self, user: UserEntity) -> UserEntity:
        await self.insert_one(user.to_dict())
        logger.info(f"Created user {user.id} with role {user.role.value}")
        return user

    async def get(self, user_id: str) -> Optional[UserEntity]:
        doc = await self.find_one({"id": user_id})
        return self._doc_to_entity(doc) if doc else None

    async def find_by_username(self, username: str) -> Optional[UserEntity]:
        doc = await self.find_one({"username": username})
        return self._doc_to_entity(doc) if doc else None

    async def list_by_role(self, role: Role, hospital_id: Optional[str] = None) -> List[UserEntity]:
        query: Dict[str, Any] = {"role": role.value, "is_active": True}
        if hospital_id:
            query["hospital_id"] = hospital_id
        docs = await self.find_many(query, sort=[("username", 1)])
        return [self._doc_to_entity(doc) for doc in docs]

    async def get_many(self, user_ids: List[str]) -> Dict[str, UserEntity]:
        if not user_ids:
            return {}
        docs = await self.find_many({"id": {"$in": list(user_ids)}})
        return {doc["id"]: self._doc_to_entity(doc) for doc in docs}

    async def count_active(self, role: Role, hospital_id: Optional[str] = None) -> int:
        query: Dict[str, Any] = {"role": role.value, "is_active": True}
        if hospital_id:
            query["hospital_id"] = hospital_id
        return await self.count_documents(query)
