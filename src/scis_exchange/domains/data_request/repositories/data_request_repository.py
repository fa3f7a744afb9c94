"""
Data request repository - handles data persistence
"""

from typing import Optional, List, Dict, Any
import logging

from ..models.data_request import DataRequestEntity, RequestStatus
from ....core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class DataRequestRepository(BaseRepository):
    """Repository for data requests"""

    entity_class = DataRequestEntity

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "data_requests")

    async def create(self, request: DataRequestEntity) -> DataRequestEntity:
        await self.insert_one(request.to_dict())
        return request

    async def save(self, request: DataRequestEntity) -> bool:
        """Overwrite the mutable state of an existing request"""
        changes = request.to_dict()
        changes.pop("id")
        return await self.update_one({"id": request.id}, {"$set": changes})

    async def claim_pending(self, request_id: str, changes: Dict[str, Any]) -> Optional[DataRequestEntity]:
        """
        Move a request out of Pending in one atomic update.

        Returns the updated request, or None when it is no longer Pending
        (another decision got there first).
        """
        doc = await self.find_one_and_update(
            {"id": request_id, "status": RequestStatus.PENDING.value},
            {"$set": changes}
        )
        return self._doc_to_entity(doc) if doc else None

    async def get(self, request_id: str) -> Optional[DataRequestEntity]:
        doc = await self.find_one({"id": request_id})
        return self._doc_to_entity(doc) if doc else None

    async def list_for_requester(self, user_id: str, limit: Optional[int] = None) -> List[DataRequestEntity]:
        docs = await self.find_many(
            {"requesting_user_id": user_id},
            sort=[("request_date", -1)],
            limit=limit
        )
        return [self._doc_to_entity(doc) for doc in docs]

    async def list_pending_for_hospital(self, hospital_id: str) -> List[DataRequestEntity]:
        """Pending requests waiting on a patient hospital, oldest first"""
        docs = await self.find_many(
            {"patient_hospital_id": hospital_id, "status": RequestStatus.PENDING.value},
            sort=[("request_date", 1)]
        )
        return [self._doc_to_entity(doc) for doc in docs]

    async def count_served(self, hospital_id: str, statuses: List[RequestStatus]) -> int:
        """Count requests answered by a hospital's data in the given statuses"""
        query: Dict[str, Any] = {
            "patient_hospital_id": hospital_id,
            "status": {"$in": [s.value for s in statuses]},
        }
        return await self.count_documents(query)

    async def list_all(
        self,
        hospital_id: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None
    ) -> List[DataRequestEntity]:
        """Every request, or those raised by one hospital, newest first"""
        query = {"requesting_hospital_id": hospital_id} if hospital_id else {}
        docs = await self.find_many(query, sort=[("request_date", -1)], limit=limit, skip=skip)
        return [self._doc_to_entity(doc) for doc in docs]

    async def count_by_status(self, hospital_id: Optional[str] = None) -> Dict[str, int]:
        """Request counts per status, optionally for requests served by one hospital"""
        pipeline: List[Dict[str, Any]] = []
        if hospital_id:
            pipeline.append({"$match": {"patient_hospital_id": hospital_id}})
        pipeline.append({"$group": {"_id": "$status", "count": {"$sum": 1}}})
        rows = await self.aggregate(pipeline)
        return {row["_id"]: row["count"] for row in rows}
