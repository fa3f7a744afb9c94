"""
Consent controller - HTTP endpoint handlers
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Path, Depends
import logging

from ..models.consent import ConsentDecisionRequest, ConsentRevokeRequest, ConsentResponse
from ...endpoint.models.endpoint import DataType
from ..services.consent_service import ConsentService, consent_to_response
from ....core.dependencies import get_consent_service, get_current_user_id
from ....core.exceptions import SCISError, to_http_exception


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/consents", tags=["consents"])


@router.post("", response_model=ConsentResponse, status_code=201)
async def record_consent(
    decision: ConsentDecisionRequest,
    user_id: str = Depends(get_current_user_id),
    service: ConsentService = Depends(get_consent_service)
) -> ConsentResponse:
    """
    Record a patient's consent decision

    Only users of the patient's hospital and system managers may decide.
    Appends a new record; earlier active decisions for the same patient,
    requesting hospital and data type are deactivated.
    """
    try:
        consent = await service.record_decision_as(
            user_id,
            decision.patient_id,
            decision.requesting_hospital_id,
            decision.data_type,
            decision.is_consented,
            notes=decision.notes,
            purpose=decision.purpose,
            expiry_date=decision.expiry_date
        )
        return consent_to_response(consent)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error recording consent for patient {decision.patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=Optional[ConsentResponse])
async def get_active_consent(
    patient_id: str = Query(..., description="Internal patient id"),
    requesting_hospital_id: str = Query(...),
    data_type: DataType = Query(...),
    service: ConsentService = Depends(get_consent_service)
) -> Optional[ConsentResponse]:
    """
    The decision currently in force for a patient, requesting hospital and
    data type; null when none has been recorded or the last grant expired
    """
    try:
        consent = await service.get_active_consent(patient_id, requesting_hospital_id, data_type)
        return consent_to_response(consent) if consent else None

    except Exception as e:
        logger.error(f"Error looking up consent for patient {patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/patient/{patient_id}", response_model=List[ConsentResponse])
async def list_patient_consents(
    patient_id: str = Path(..., description="Internal patient id"),
    include_inactive: bool = Query(default=False, description="Include superseded and revoked records"),
    service: ConsentService = Depends(get_consent_service)
) -> List[ConsentResponse]:
    """
    Consent records for a patient, newest first
    """
    try:
        return await service.list_for_patient(patient_id, include_inactive=include_inactive)

    except Exception as e:
        logger.error(f"Error listing consents for patient {patient_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{consent_id}/revoke", response_model=ConsentResponse)
async def revoke_consent(
    body: ConsentRevokeRequest,
    consent_id: str = Path(..., description="Consent id"),
    user_id: str = Depends(get_current_user_id),
    service: ConsentService = Depends(get_consent_service)
) -> ConsentResponse:
    """
    Revoke a consent record on behalf of the patient's hospital
    """
    try:
        return consent_to_response(await service.revoke_as(user_id, consent_id, body.notes))

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error revoking consent {consent_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
