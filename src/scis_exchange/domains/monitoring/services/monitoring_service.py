"""
Monitoring service - health and audit trail queries
"""

from typing import Optional, List
import logging

from ..models.audit import AuditLogResponse, HealthStatusResponse
from ..repositories.monitoring_repository import MonitoringRepository


logger = logging.getLogger(__name__)


class MonitoringService:
    def __init__(self, repository: MonitoringRepository):
        self.repository = repository

    async def get_health_status(self) -> HealthStatusResponse:
        return HealthStatusResponse(**await self.repository.get_health_status())

    async def get_audit_events(
        self,
        entity_type: Optional[str] = None,
        status: Optional[str] = None,
        hours: int = 24,
        limit: int = 100
    ) -> List[AuditLogResponse]:
        events = await self.repository.get_audit_events(entity_type=entity_type, status=status, hours=hours, limit=limit)
        return [AuditLogResponse(**e.to_dict()) for e in events]
