"""
Consent service - patient consent decisions per requesting hospital and data type
"""

from typing import Optional, List
from datetime import datetime, timedelta
import logging

from ..models.consent import ConsentEntity, ConsentResponse
from ..repositories.consent_repository import ConsentRepository
from ...endpoint.models.endpoint import DataType
from ...hospital.models.hospital import Role
from ...hospital.repositories.hospital_repository import HospitalRepository, UserRepository
from ...patient.repositories.patient_repository import PatientRepository
from ....core.config import ConsentConfig, get_consent_config
from ....core.exceptions import NotFoundError, AuthorizationError


logger = logging.getLogger(__name__)


def consent_to_response(consent: ConsentEntity) -> ConsentResponse:
    return ConsentResponse(**consent.to_dict(), is_expired=consent.is_expired())


class ConsentService:
    """
    Consent Store.

    A lookup returns None when no decision is on record, which is different
    from a recorded denial (is_consented False). Expired records count as
    absent.

    Decisions taken through the API (record_decision_as, revoke_as) must
    come from a user of the patient's hospital or a system manager; the
    data request workflow records grants directly after its own check.
    """

    def __init__(
        self,
        repository: ConsentRepository,
        config: Optional[ConsentConfig] = None,
        user_repository: Optional[UserRepository] = None,
        patient_repository: Optional[PatientRepository] = None,
        hospital_repository: Optional[HospitalRepository] = None
    ):
        self.repository = repository
        self.config = config or get_consent_config()
        self.users = user_repository
        self.patients = patient_repository
        self.hospitals = hospital_repository

    async def _authorize_decider(self, user_id: str, patient_id: str) -> None:
        user = await self.users.get(user_id)
        if not user or not user.is_active:
            raise NotFoundError(f"User {user_id} not found")

        patient = await self.patients.get(patient_id)
        if not patient:
            raise NotFoundError(f"Patient {patient_id} not found")

        if user.role != Role.SYSTEM_MANAGER and user.hospital_id != patient.hospital_id:
            raise AuthorizationError(f"User {user_id} cannot decide consent for patient {patient_id}")

    async def get_active_consent(
        self,
        patient_id: str,
        requesting_hospital_id: str,
        data_type: DataType,
        now: Optional[datetime] = None
    ) -> Optional[ConsentEntity]:
        return await self.repository.find_active(patient_id, requesting_hospital_id, data_type, now=now)

    def default_expiry(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if self.config.default_validity_days == 0:
            return None
        return (now or datetime.utcnow()) + timedelta(days=self.config.default_validity_days)

    async def record_decision(
        self,
        patient_id: str,
        requesting_user_id: str,
        requesting_hospital_id: str,
        data_type: DataType,
        is_consented: bool,
        notes: Optional[str] = None,
        purpose: Optional[str] = None,
        expiry_date: Optional[datetime] = None
    ) -> ConsentEntity:
        """Append a decision; earlier active records for the tuple are deactivated"""
        if is_consented and expiry_date is None:
            expiry_date = self.default_expiry()

        consent = ConsentEntity(
            patient_id=patient_id,
            requesting_user_id=requesting_user_id,
            requesting_hospital_id=requesting_hospital_id,
            data_type=data_type,
            is_consented=is_consented,
            purpose=purpose,
            notes=notes,
            expiry_date=expiry_date
        )
        await self.repository.append(consent)

        logger.info(
            f"Consent {'granted' if is_consented else 'denied'} for patient {patient_id} "
            f"to hospital {requesting_hospital_id} ({consent.data_type.value})"
        )
        return consent

    async def grant(self, patient_id: str, requesting_user_id: str, requesting_hospital_id: str,
                    data_type: DataType, **kwargs) -> ConsentEntity:
        return await self.record_decision(
            patient_id, requesting_user_id, requesting_hospital_id, data_type, True, **kwargs
        )

    async def deny(self, patient_id: str, requesting_user_id: str, requesting_hospital_id: str,
                   data_type: DataType, **kwargs) -> ConsentEntity:
        return await self.record_decision(
            patient_id, requesting_user_id, requesting_hospital_id, data_type, False, **kwargs
        )

    async def record_decision_as(
        self,
        user_id: str,
        patient_id: str,
        requesting_hospital_id: str,
        data_type: DataType,
        is_consented: bool,
        **kwargs
    ) -> ConsentEntity:
        """Record a decision on behalf of the patient's hospital"""
        await self._authorize_decider(user_id, patient_id)
        if not await self.hospitals.get(requesting_hospital_id):
            raise NotFoundError(f"Hospital {requesting_hospital_id} not found")

        return await self.record_decision(
            patient_id, user_id, requesting_hospital_id, data_type, is_consented, **kwargs
        )

    async def revoke_as(self, user_id: str, consent_id: str, notes: Optional[str] = None) -> ConsentEntity:
        consent = await self.repository.get(consent_id)
        if not consent:
            raise NotFoundError(f"Consent {consent_id} not found")

        await self._authorize_decider(user_id, consent.patient_id)
        return await self.revoke(consent_id, notes)

    async def revoke(self, consent_id: str, notes: Optional[str] = None) -> ConsentEntity:
        """Soft-deactivate a record; the tuple then has no decision on file"""
        consent = await self.repository.get(consent_id)
        if not consent:
            raise NotFoundError(f"Consent {consent_id} not found")

        await self.repository.deactivate(consent_id, notes)
        return await self.repository.get(consent_id)

    async def list_for_patient(self, patient_id: str, include_inactive: bool = False) -> List[ConsentResponse]:
        consents = await self.repository.list_for_patient(patient_id, include_inactive=include_inactive)
        return [consent_to_response(c) for c in consents]
