"""
Patient controller - HTTP endpoint handlers
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Path, Depends
import logging

from ..models.patient import (
    PatientRegistrationRequest,
    PatientUpdateRequest,
    PatientResponse
)
from ..services.patient_service import PatientService
from ....core.dependencies import get_patient_service
from ....core.exceptions import SCISError, to_http_exception


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/patients", tags=["patients"])


@router.post("", response_model=PatientResponse, status_code=201)
async def register_patient(
    registration: PatientRegistrationRequest,
    service: PatientService = Depends(get_patient_service)
) -> PatientResponse:
    """
    Register a patient at a hospital

    The external patient id must be unique across the exchange.
    """
    try:
        return await service.register_patient(registration)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error registering patient {registration.patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=List[PatientResponse])
async def list_patients(
    hospital_id: str = Query(..., description="Hospital id"),
    search: Optional[str] = Query(None, description="Match on name or patient id"),
    limit: int = Query(default=50, le=200, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Skip records"),
    service: PatientService = Depends(get_patient_service)
) -> List[PatientResponse]:
    """
    List a hospital's active patients
    """
    try:
        return await service.list_for_hospital(hospital_id, search=search, limit=limit, offset=offset)

    except Exception as e:
        logger.error(f"Error listing patients for hospital {hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: str = Path(..., description="External patient id"),
    service: PatientService = Depends(get_patient_service)
) -> PatientResponse:
    """
    Fetch a patient by external patient id
    """
    try:
        return await service.get_by_external_id(patient_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching patient {patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    update: PatientUpdateRequest,
    patient_id: str = Path(..., description="External patient id"),
    service: PatientService = Depends(get_patient_service)
) -> PatientResponse:
    """
    Update a patient's demographics
    """
    try:
        return await service.update_patient(patient_id, update)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating patient {patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{patient_id}", response_model=PatientResponse)
async def deactivate_patient(
    patient_id: str = Path(..., description="External patient id"),
    service: PatientService = Depends(get_patient_service)
) -> PatientResponse:
    """
    Deactivate a patient

    The record is kept so consent and request history still resolve.
    """
    try:
        return await service.deactivate_patient(patient_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deactivating patient {patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
