"""
Data request controller - HTTP endpoint handlers
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Path, Depends
import logging

from ..models.data_request import (
    DataRequestSubmission,
    ApprovalDecision,
    DataRequestResponse
)
from ..services.data_request_service import DataRequestService
from ....core.dependencies import get_data_request_service, get_current_user_id
from ....core.exceptions import SCISError, to_http_exception


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/data-requests", tags=["data-requests"])


@router.post("", response_model=DataRequestResponse, status_code=201)
async def submit_data_request(
    submission: DataRequestSubmission,
    user_id: str = Depends(get_current_user_id),
    service: DataRequestService = Depends(get_data_request_service)
) -> DataRequestResponse:
    """
    Request a patient's data

    Same-hospital requests by an authorized role are fulfilled immediately.
    Cross-hospital requests without consent on file stay Pending until the
    patient's hospital decides.
    """
    try:
        return await service.submit(
            user_id,
            submission.patient_id,
            submission.data_type,
            submission.purpose
        )

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error submitting data request for patient {submission.patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=List[DataRequestResponse])
async def list_data_requests(
    hospital_id: Optional[str] = Query(None, description="Only requests raised by this hospital"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: DataRequestService = Depends(get_data_request_service)
) -> List[DataRequestResponse]:
    """
    All data requests, newest first

    Restricted to system managers.
    """
    try:
        return await service.list_requests(user_id, hospital_id, limit=limit, offset=offset)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing data requests: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/history", response_model=List[DataRequestResponse])
async def get_request_history(
    user_id: str = Depends(get_current_user_id),
    service: DataRequestService = Depends(get_data_request_service)
) -> List[DataRequestResponse]:
    """
    Requests submitted by the caller, newest first
    """
    try:
        return await service.get_history(user_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching request history for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/pending", response_model=List[DataRequestResponse])
async def get_pending_requests(
    user_id: str = Depends(get_current_user_id),
    service: DataRequestService = Depends(get_data_request_service)
) -> List[DataRequestResponse]:
    """
    Pending requests waiting on the caller's hospital
    """
    try:
        return await service.get_pending_for_user(user_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching pending requests for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{request_id}", response_model=DataRequestResponse)
async def get_data_request(
    request_id: str = Path(..., description="Data request id"),
    user_id: str = Depends(get_current_user_id),
    service: DataRequestService = Depends(get_data_request_service)
) -> DataRequestResponse:
    """
    Fetch a single data request
    """
    try:
        return await service.get_request(request_id, user_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching data request {request_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{request_id}/approval", response_model=DataRequestResponse)
async def decide_data_request(
    decision: ApprovalDecision,
    request_id: str = Path(..., description="Data request id"),
    user_id: str = Depends(get_current_user_id),
    service: DataRequestService = Depends(get_data_request_service)
) -> DataRequestResponse:
    """
    Approve or deny a pending request

    Only users of the patient's hospital may decide. Approval records the
    patient's consent and fetches the data.
    """
    try:
        return await service.approve(request_id, user_id, decision.is_approved, decision.reason)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deciding data request {request_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
