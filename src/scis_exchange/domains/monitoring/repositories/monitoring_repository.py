"""
Monitoring repository - audit trail and health checks
"""
from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta
import logging

from ....core.database import BaseRepository, DatabaseManager
from ....core.cache import CacheManager
from ..models.audit import AuditLogEntity, AUDIT_FAILED

logger = logging.getLogger(__name__)


class MonitoringRepository(BaseRepository):
    """Repository for audit and monitoring operations"""

    entity_class = AuditLogEntity

    def __init__(self, db_manager: DatabaseManager, cache_manager: Optional[CacheManager] = None):
        super().__init__(db_manager, "audit_logs")
        self.cache_manager = cache_manager

    async def log_audit_event(
        self,
        action: str,
        status: str,
        user_id: Optional[str] = None,
        hospital_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[str] = None,
        error_message: Optional[str] = None,
        response_time_ms: int = 0
    ) -> AuditLogEntity:
        """Persist one audit entry"""
        entry = AuditLogEntity(
            action=action,
            status=status,
            user_id=user_id,
            hospital_id=hospital_id,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            error_message=error_message,
            response_time_ms=response_time_ms
        )
        await self.insert_one(entry.to_dict())
        return entry

    async def get_audit_events(
        self,
        entity_type: Optional[str] = None,
        status: Optional[str] = None,
        hours: int = 24,
        limit: int = 100
    ) -> List[AuditLogEntity]:
        """Get audit events within time window, newest first"""
        start_time = datetime.utcnow() - timedelta(hours=hours)

        query = {"timestamp": {"$gte": start_time}}
        if entity_type:
            query["entity_type"] = entity_type
        if status:
            query["status"] = status

        docs = await self.find_many(
            query,
            sort=[("timestamp", -1)],
            limit=limit
        )
        return [self._doc_to_entity(doc) for doc in docs]

    async def get_health_status(self) -> Dict[str, Any]:
        """Get system health status"""
        db_health = await self.db_manager.health_check()

        cache_health = {}
        if self.cache_manager:
            cache_health = await self.cache_manager.health_check()

        recent_failures = await self.count_documents({
            "status": AUDIT_FAILED,
            "timestamp": {"$gte": datetime.utcnow() - timedelta(hours=1)}
        })

        return {
            "timestamp": datetime.utcnow(),
            "database": db_health,
            "cache": cache_health,
            "recent_failures": recent_failures,
            "status": "healthy" if db_health.get("status") == "healthy" else "unhealthy"
        }
