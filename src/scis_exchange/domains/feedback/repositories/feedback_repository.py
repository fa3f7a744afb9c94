"""
Feedback repository - handles data persistence and aggregates
"""

from typing import Optional, List, Dict, Any
import logging

from ..models.feedback import FeedbackEntity
from ....core.database import BaseRepository, DatabaseManager


logger = logging.getLogger(__name__)


class FeedbackRepository(BaseRepository):
    """Repository for patient feedback (insert-only)"""

    entity_class = FeedbackEntity

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, "patient_feedback")

    async def create(self, feedback: FeedbackEntity) -> FeedbackEntity:
        await self.insert_one(feedback.to_dict())
        return feedback

    async def get(self, feedback_id: str) -> Optional[FeedbackEntity]:
        doc = await self.find_one({"id": feedback_id})
        return self._doc_to_entity(doc) if doc else None

    async def list_all(
        self,
        hospital_id: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None
    ) -> List[FeedbackEntity]:
        """Every feedback entry, or those about one hospital's doctors, newest first"""
        query = {"hospital_id": hospital_id} if hospital_id else {}
        docs = await self.find_many(query, sort=[("created_at", -1)], limit=limit, skip=skip)
        return [self._doc_to_entity(doc) for doc in docs]

    async def average_tes(self, field_name: Optional[str] = None, value: Optional[str] = None) -> Dict[str, Any]:
        """Average TES and count over feedback where field_name == value, or over all feedback"""
        rows = await self.aggregate([
            {"$match": {field_name: value} if field_name else {}},
            {"$group": {
                "_id": None,
                "average": {"$avg": "$treatment_evaluation_score"},
                "count": {"$sum": 1},
            }},
        ])
        if not rows:
            return {"average": 0.0, "count": 0}
        return {"average": rows[0]["average"] or 0.0, "count": rows[0]["count"]}

    async def average_tes_by_doctor(self) -> List[Dict[str, Any]]:
        return await self.aggregate([
            {"$group": {
                "_id": "$doctor_id",
                "average": {"$avg": "$treatment_evaluation_score"},
                "count": {"$sum": 1},
            }},
        ])

    async def sentiment_counts(self) -> Dict[str, int]:
        rows = await self.aggregate([
            {"$group": {"_id": "$sentiment_analysis", "count": {"$sum": 1}}},
        ])
        return {row["_id"]: row["count"] for row in rows}
