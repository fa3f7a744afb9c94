"""
Feedback controller - HTTP endpoint handlers
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Path, Depends
import logging

from ..models.feedback import (
    FeedbackSubmission,
    FeedbackResponse,
    AverageTESResponse,
    PerformanceInsights
)
from ..services.feedback_service import FeedbackService
from ....core.dependencies import get_feedback_service, get_current_user_id
from ....core.exceptions import SCISError, to_http_exception


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackResponse, status_code=201)
async def submit_feedback(
    submission: FeedbackSubmission,
    service: FeedbackService = Depends(get_feedback_service)
) -> FeedbackResponse:
    """
    Submit patient feedback on a treatment

    Ratings are scored into a treatment evaluation score (0-100) and the
    free-text comment is classified as Positive, Neutral or Negative.
    """
    try:
        return await service.submit_feedback(submission)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error submitting feedback for doctor {submission.doctor_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=List[FeedbackResponse])
async def list_feedback(
    hospital_id: Optional[str] = Query(None, description="Only feedback about this hospital's doctors"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: FeedbackService = Depends(get_feedback_service)
) -> List[FeedbackResponse]:
    """
    All feedback, newest first

    Restricted to system managers.
    """
    try:
        return await service.list_feedback(user_id, hospital_id, limit=limit, offset=offset)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing feedback: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/doctor/{doctor_id}/average-tes", response_model=AverageTESResponse)
async def get_doctor_average_tes(
    doctor_id: str = Path(..., description="Doctor user id"),
    service: FeedbackService = Depends(get_feedback_service)
) -> AverageTESResponse:
    try:
        return await service.get_doctor_average_tes(doctor_id)

    except Exception as e:
        logger.error(f"Error computing average TES for doctor {doctor_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/hospital/{hospital_id}/average-tes", response_model=AverageTESResponse)
async def get_hospital_average_tes(
    hospital_id: str = Path(..., description="Hospital id"),
    service: FeedbackService = Depends(get_feedback_service)
) -> AverageTESResponse:
    try:
        return await service.get_hospital_average_tes(hospital_id)

    except Exception as e:
        logger.error(f"Error computing average TES for hospital {hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/insights", response_model=PerformanceInsights)
async def get_performance_insights(
    service: FeedbackService = Depends(get_feedback_service)
) -> PerformanceInsights:
    """
    Performance insights

    Low-performing doctors, hospital ranking by performance index and the
    sentiment distribution across all feedback.
    """
    try:
        return await service.get_performance_insights()

    except Exception as e:
        logger.error(f"Error building performance insights: {e}")
        raise HTTPException(status_code=500, detail=str(e))
