"""
Consent repository - append-only store of consent decisions
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
import logging

from ..models.consent import ConsentEntity
from ...endpoint.models.endpoint import DataType
from ....core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class ConsentRepository(BaseRepository):
    """Repository for patient consent records"""

    entity_class = ConsentEntity

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "patient_consents")

    @staticmethod
    def _tuple_filter(patient_id: str, requesting_hospital_id: str, data_type: DataType) -> Dict[str, Any]:
        return {
            "patient_id": patient_id,
            "requesting_hospital_id": requesting_hospital_id,
            "data_type": DataType(data_type).value,
        }

    async def find_active(
        self,
        patient_id: str,
        requesting_hospital_id: str,
        data_type: DataType,
        now: Optional[datetime] = None
    ) -> Optional[ConsentEntity]:
        """Most recent active, unexpired record for the tuple"""
        now = now or datetime.utcnow()
        query = self._tuple_filter(patient_id, requesting_hospital_id, data_type)
        query["is_active"] = True
        query["$or"] = [{"expiry_date": None}, {"expiry_date": {"$gt": now}}]

        doc = await self.find_one(query, sort=[("consent_date", -1)])
        return self._doc_to_entity(doc) if doc else None

    async def append(self, consent: ConsentEntity) -> ConsentEntity:
        """
        Insert a new decision and deactivate every earlier active record
        for the same tuple, leaving exactly one active record.
        """
        superseded = await self.update_many(
            {
                **self._tuple_filter(consent.patient_id, consent.requesting_hospital_id, consent.data_type),
                "is_active": True,
            },
            {"$set": {"is_active": False}}
        )
        if superseded:
            logger.info(
                f"Superseded {superseded} consent record(s) for patient {consent.patient_id}, "
                f"hospital {consent.requesting_hospital_id}, {consent.data_type.value}"
            )

        await self.insert_one(consent.to_dict())
        return consent

    async def get(self, consent_id: str) -> Optional[ConsentEntity]:
        doc = await self.find_one({"id": consent_id})
        return self._doc_to_entity(doc) if doc else None

    async def deactivate(self, consent_id: str, notes: Optional[str] = None) -> bool:
        changes: Dict[str, Any] = {"is_active": False}
        if notes:
            changes["notes"] = notes
        return await self.update_one({"id": consent_id}, {"$set": changes})

    async def list_for_patient(self, patient_id: str, include_inactive: bool = False) -> List[ConsentEntity]:
        query: Dict[str, Any] = {"patient_id": patient_id}
        if not include_inactive:
            query["is_active"] = True
        docs = await self.find_many(query, sort=[("consent_date", -1)])
        return [self._doc_to_entity(doc) for doc in docs]

    async def count_for_tuple(
        self,
        patient_id: str,
        requesting_hospital_id: str,
        data_type: DataType,
        active_only: bool = False
    ) -> int:
        query = self._tuple_filter(patient_id, requesting_hospital_id, data_type)
        if active_only:
            query["is_active"] = True
        return await self.count_documents(query)
