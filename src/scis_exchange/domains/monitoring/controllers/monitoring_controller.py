"""
Monitoring controller - health and audit trail
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Depends
import logging

from ..models.audit import AuditLogResponse, HealthStatusResponse
from ..services.monitoring_service import MonitoringService
from ....core.dependencies import get_monitoring_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/monitoring", tags=["monitoring"])


@router.get("/health", response_model=HealthStatusResponse)
async def get_health_status(
    service: MonitoringService = Depends(get_monitoring_service)
) -> HealthStatusResponse:
    """
    Detailed health status

    Database and cache health plus the number of failed operations in the
    last hour.
    """
    try:
        return await service.get_health_status()

    except Exception as e:
        logger.error(f"Error getting health status: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/audit", response_model=List[AuditLogResponse])
async def get_audit_events(
    entity_type: Optional[str] = Query(None, description="Filter by entity type"),
    status: Optional[str] = Query(None, description="Success or Failed"),
    hours: int = Query(default=24, ge=1, le=720, description="Look-back window"),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum results"),
    service: MonitoringService = Depends(get_monitoring_service)
) -> List[AuditLogResponse]:
    try:
        return await service.get_audit_events(entity_type=entity_type, status=status, hours=hours, limit=limit)

    except Exception as e:
        logger.error(f"Error fetching audit events: {e}")
        raise HTTPException(status_code=500, detail=str(e))
