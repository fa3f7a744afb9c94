"""
Patient service - business logic layer
"""

from typing import Optional, List
from datetime import date
import logging

from pymongo.errors import DuplicateKeyError

from ..models.patient import (
    PatientRegistrationRequest,
    PatientUpdateRequest,
    PatientResponse,
    PatientEntity
)
from ..repositories.patient_repository import PatientRepository
from ...hospital.repositories.hospital_repository import HospitalRepository
from ....core.exceptions import NotFoundError, ValidationFailure


logger = logging.getLogger(__name__)


def patient_to_response(patient: PatientEntity) -> PatientResponse:
    data = patient.to_dict()
    data["date_of_birth"] = date.fromisoformat(patient.date_of_birth)
    return PatientResponse(**data)


class PatientService:
    """Service layer for patient operations"""

    def __init__(self, repository: PatientRepository, hospital_repository: HospitalRepository):
        self.repository = repository
        self.hospitals = hospital_repository

    async def register_patient(self, request: PatientRegistrationRequest) -> PatientResponse:
        """Register a patient under a hospital; the external id must be unique"""
        if not await self.hospitals.get(request.hospital_id):
            raise NotFoundError(f"Hospital {request.hospital_id} not found")

        if await self.repository.find_by_external_id(request.patient_id):
            raise ValidationFailure(f"Patient {request.patient_id} already exists")

        data = request.model_dump()
        data["date_of_birth"] = request.date_of_birth.isoformat()
        patient = PatientEntity(**data)
        patient.updated_at = patient.created_at

        try:
            await self.repository.create(patient)
        except DuplicateKeyError:
            raise ValidationFailure(f"Patient {request.patient_id} already exists")
        logger.info(f"Registered patient {patient.patient_id} at hospital {patient.hospital_id}")
        return patient_to_response(patient)

    async def get_by_external_id(self, patient_id: str) -> PatientResponse:
        patient = await self.repository.find_by_external_id(patient_id)
        if not patient:
            raise NotFoundError(f"Patient {patient_id} not found")
        return patient_to_response(patient)

    async def list_for_hospital(
        self,
        hospital_id: str,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[PatientResponse]:
        patients = await self.repository.list_for_hospital(hospital_id, search=search, limit=limit, offset=offset)
        return [patient_to_response(p) for p in patients]

    async def update_patient(self, patient_id: str, request: PatientUpdateRequest) -> PatientResponse:
        """Update demographics only; external id and hospital never change"""
        patient = await self.repository.find_by_external_id(patient_id)
        if not patient or not patient.is_active:
            raise NotFoundError(f"Patient {patient_id} not found")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "date_of_birth" in changes:
            changes["date_of_birth"] = changes["date_of_birth"].isoformat()
        if not changes:
            return patient_to_response(patient)

        await self.repository.update_fields(patient.id, changes)
        return patient_to_response(await self.repository.get(patient.id))

    async def deactivate_patient(self, patient_id: str) -> PatientResponse:
        """Soft delete: the record stays for consent and request history"""
        patient = await self.repository.find_by_external_id(patient_id)
        if not patient:
            raise NotFoundError(f"Patient {patient_id} not found")

        await self.repository.update_fields(patient.id, {"is_active": False})
        logger.info(f"Deactivated patient {patient_id}")
        return patient_to_response(await self.repository.get(patient.id))
