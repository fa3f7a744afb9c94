"""
Patient repository - handles data persistence
"""

from typing import Optional, List, Dict, Any
import logging
import re

from ..models.patient import PatientEntity
from ....core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class PatientRepository(BaseRepository):
    """Repository for patient data persistence"""

    entity_class = PatientEntity

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "patients")

    async def create(self, patient: PatientEntity) -> PatientEntity:
        await self.insert_one(patient.to_dict())
        return patient

    async def get(self, patient_pk: str) -> Optional[PatientEntity]:
        """Find patient by internal id"""
        doc = await self.find_one({"id": patient_pk})
        return self._doc_to_entity(doc) if doc else None

    async def find_by_external_id(self, patient_id: str) -> Optional[PatientEntity]:
        """Find patient by external identifier"""
        doc = await self.find_one({"patient_id": patient_id})
        return self._doc_to_entity(doc) if doc else None

    async def list_for_hospital(
        self,
        hospital_id: str,
        search: Optional[str] = None,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0
    ) -> List[PatientEntity]:
        """List a hospital's patients with an optional case-insensitive search"""
        query: Dict[str, Any] = {"hospital_id": hospital_id}
        if not include_inactive:
            query["is_active"] = True

        if search:
            pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
            query["$or"] = [
                {"first_name": pattern},
                {"last_name": pattern},
                {"patient_id": pattern},
            ]

        docs = await self.find_many(
            query,
            sort=[("last_name", 1), ("first_name", 1)],
            limit=limit,
            skip=offset
        )
        return [self._doc_to_entity(doc) for doc in docs]

    async def count_active(self, hospital_id: Optional[str] = None) -> int:
        query: Dict[str, Any] = {"is_active": True}
        if hospital_id:
            query["hospital_id"] = hospital_id
        return await self.count_documents(query)

    async def update_fields(self, patient_pk: str, changes: Dict[str, Any]) -> bool:
        return await self.update_one({"id": patient_pk}, {"$set": changes})
