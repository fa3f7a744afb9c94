"""
Hospital controller - HTTP endpoint handlers for hospitals and users
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Path, Depends
import logging

from ..models.hospital import (
    HospitalRegistrationRequest,
    HospitalApprovalRequest,
    HospitalResponse,
    PerformanceMetricsResponse,
    DashboardStatsResponse,
    UserCreateRequest,
    UserResponse
)
from ..services.hospital_service import HospitalService
from ....core.dependencies import get_hospital_service, get_current_user_id
from ....core.exceptions import SCISError, to_http_exception


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/hospitals", tags=["hospitals"])
user_router = APIRouter(prefix="/api/v1/users", tags=["users"])
dashboard_router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.post("", response_model=HospitalResponse, status_code=201)
async def register_hospital(
    registration: HospitalRegistrationRequest,
    service: HospitalService = Depends(get_hospital_service)
) -> HospitalResponse:
    """
    Register a hospital

    New hospitals are inactive until a system manager approves them.
    """
    try:
        return await service.register_hospital(registration)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error registering hospital {registration.name}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=List[HospitalResponse])
async def list_hospitals(
    active_only: bool = Query(default=False, description="Only approved, active hospitals"),
    service: HospitalService = Depends(get_hospital_service)
) -> List[HospitalResponse]:
    try:
        return await service.list_hospitals(active_only=active_only)

    except Exception as e:
        logger.error(f"Error listing hospitals: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/pending", response_model=List[HospitalResponse])
async def list_pending_hospitals(
    user_id: str = Depends(get_current_user_id),
    service: HospitalService = Depends(get_hospital_service)
) -> List[HospitalResponse]:
    """
    Hospitals waiting for approval, oldest registration first

    Restricted to system managers.
    """
    try:
        return await service.list_pending_hospitals(user_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing pending hospitals: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{hospital_id}", response_model=HospitalResponse)
async def get_hospital(
    hospital_id: str = Path(..., description="Hospital id"),
    service: HospitalService = Depends(get_hospital_service)
) -> HospitalResponse:
    try:
        return await service.get_hospital(hospital_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching hospital {hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{hospital_id}/approve", response_model=HospitalResponse)
async def approve_hospital(
    body: HospitalApprovalRequest,
    hospital_id: str = Path(..., description="Hospital id"),
    user_id: str = Depends(get_current_user_id),
    service: HospitalService = Depends(get_hospital_service)
) -> HospitalResponse:
    """
    Approve and activate a hospital

    Restricted to system managers.
    """
    try:
        return await service.approve_hospital(hospital_id, user_id, body.verification_notes)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error approving hospital {hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{hospital_id}/metrics", response_model=PerformanceMetricsResponse)
async def recompute_metrics(
    hospital_id: str = Path(..., description="Hospital id"),
    service: HospitalService = Depends(get_hospital_service)
) -> PerformanceMetricsResponse:
    """
    Recalculate a hospital's performance metrics

    Combines average TES, interoperability success rate and patient volume
    into the performance index.
    """
    try:
        return await service.recompute_performance_metrics(hospital_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error recomputing metrics for hospital {hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{hospital_id}/doctors", response_model=List[UserResponse])
async def list_hospital_doctors(
    hospital_id: str = Path(..., description="Hospital id"),
    service: HospitalService = Depends(get_hospital_service)
) -> List[UserResponse]:
    try:
        return await service.list_doctors(hospital_id)

    except Exception as e:
        logger.error(f"Error listing doctors for hospital {hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@user_router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    request: UserCreateRequest,
    service: HospitalService = Depends(get_hospital_service)
) -> UserResponse:
    """
    Create a user

    Every role except SystemManager must belong to an existing hospital.
    """
    try:
        return await service.create_user(request)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating user {request.username}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@user_router.get("/doctors", response_model=List[UserResponse])
async def list_doctors(
    hospital_id: Optional[str] = Query(None, description="Restrict to one hospital"),
    service: HospitalService = Depends(get_hospital_service)
) -> List[UserResponse]:
    try:
        return await service.list_doctors(hospital_id)

    except Exception as e:
        logger.error(f"Error listing doctors: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@user_router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str = Path(..., description="User id"),
    service: HospitalService = Depends(get_hospital_service)
) -> UserResponse:
    try:
        return await service.get_user(user_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching user {user_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@dashboard_router.get("/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    user_id: str = Depends(get_current_user_id),
    service: HospitalService = Depends(get_hospital_service)
) -> DashboardStatsResponse:
    """
    Dashboard counts

    System managers see the whole exchange; hospital managers see their own
    hospital.
    """
    try:
        return await service.get_dashboard_stats(user_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error building dashboard stats for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
