"""
Data request service - consent-gated cross-hospital data sharing workflow
"""

from typing import Optional, List
from datetime import datetime
import time
import logging

from ..models.data_request import (
    DataRequestEntity,
    DataRequestResponse,
    RequestStatus,
)
from ..repositories.data_request_repository import DataRequestRepository
from .authorization import AuthorizationChecker
from ...hospital.models.hospital import Role, UserEntity
from ...hospital.repositories.hospital_repository import HospitalRepository, UserRepository
from ...patient.repositories.patient_repository import PatientRepository
from ...consent.services.consent_service import ConsentService
from ...endpoint.models.endpoint import DataType
from ...endpoint.services.endpoint_service import EndpointService
from ...monitoring.repositories.monitoring_repository import MonitoringRepository
from ...monitoring.models.audit import AUDIT_SUCCESS, AUDIT_FAILED
from ....providers.fhir_provider import FhirEndpointProvider
from ....core.exceptions import (
    NotFoundError,
    AuthorizationError,
    ValidationFailure,
    EndpointNotConfiguredError,
    EndpointInactiveError,
)


logger = logging.getLogger(__name__)

UNAUTHORIZED_ROLE = "Unauthorized role"
CONSENT_DENIED = "Patient has denied consent for this data type"
PATIENT_HOSPITAL_UNAVAILABLE = "Patient's hospital is not available"
DEFAULT_DENIAL_REASON = "Request denied by patient hospital"


def request_to_response(request: DataRequestEntity) -> DataRequestResponse:
    return DataRequestResponse(**request.to_dict())


class DataRequestService:
    """
    Workflow for requesting a patient's data from another hospital.

    Pending --approve--> Approved --fetch ok--> Completed
    Pending --deny / recorded consent denial--> Denied
    Pending --same hospital and authorized--> Completed
    Approved --fetch fails--> Denied
    """

    def __init__(
        self,
        repository: DataRequestRepository,
        user_repository: UserRepository,
        patient_repository: PatientRepository,
        hospital_repository: HospitalRepository,
        consent_service: ConsentService,
        endpoint_service: EndpointService,
        fhir_provider: FhirEndpointProvider,
        audit_repository: MonitoringRepository
    ):
        self.repository = repository
        self.users = user_repository
        self.patients = patient_repository
        self.hospitals = hospital_repository
        self.consents = consent_service
        self.endpoints = endpoint_service
        self.fhir_provider = fhir_provider
        self.audit = audit_repository

    async def _get_active_user(self, user_id: str) -> UserEntity:
        user = await self.users.get(user_id)
        if not user or not user.is_active:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def _deny(request: DataRequestEntity, reason: str) -> None:
        request.status = RequestStatus.DENIED
        request.denial_reason = reason

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

    async def submit(
        self,
        requesting_user_id: str,
        patient_external_id: str,
        data_type: DataType,
        purpose: Optional[str] = None
    ) -> DataRequestResponse:
        """
        Submit a request for a patient's data.

        NotFound, Unauthorized and ValidationFailure are raised before anything
        is stored. Once accepted, the request is always persisted and returned;
        failures past that point are recorded on it as Denied.
        """
        started = time.perf_counter()

        requester = await self._get_active_user(requesting_user_id)
        if not requester.hospital_id:
            raise AuthorizationError("Requester is not affiliated with a hospital")

        try:
            data_type = DataType(data_type)
        except ValueError:
            raise ValidationFailure(f"Unknown data type: {data_type}")

        patient = await self.patients.find_by_external_id(patient_external_id)
        if not patient or not patient.is_active:
            raise NotFoundError(f"Patient {patient_external_id} not found")

        request = DataRequestEntity(
            requesting_user_id=requester.id,
            requesting_hospital_id=requester.hospital_id,
            patient_id=patient.id,
            patient_external_id=patient.patient_id,
            patient_hospital_id=patient.hospital_id,
            data_type=data_type,
            purpose=purpose,
            is_cross_hospital_request=patient.hospital_id != requester.hospital_id,
            is_role_authorized=AuthorizationChecker.is_authorized(requester.role, data_type)
        )

        patient_hospital = await self.hospitals.get(patient.hospital_id)
        if not patient_hospital or not patient_hospital.is_active:
            self._deny(request, PATIENT_HOSPITAL_UNAVAILABLE)
        elif not request.is_role_authorized:
            self._deny(request, UNAUTHORIZED_ROLE)
        else:
            await self._check_consent(request)
            if request.is_consent_valid:
                await self._fulfil(request, requester.role)

        request.response_time_ms = self._elapsed_ms(started)
        await self.repository.create(request)
        await self._record_audit("SubmitDataRequest", request, requester.id, requester.hospital_id)

        logger.info(
            f"Data request {request.id}: {data_type.value} for patient {patient.patient_id} "
            f"by {requester.id} -> {request.status.value}"
        )
        return request_to_response(request)

    async def _check_consent(self, request: DataRequestEntity) -> None:
        """Same hospital is implicitly consented; cross hospital needs a recorded grant"""
        if not request.is_cross_hospital_request:
            request.is_consent_valid = True
            return

        consent = await self.consents.get_active_consent(
            request.patient_id, request.requesting_hospital_id, request.data_type
        )
        if consent is None:
            # No decision on file: wait for the patient's hospital
            request.status = RequestStatus.PENDING
        elif not consent.is_consented:
            self._deny(request, CONSENT_DENIED)
        else:
            request.is_consent_valid = True

    async def _fulfil(self, request: DataRequestEntity, requester_role: Optional[Role]) -> None:
        """Fetch the data from the patient's hospital and record the outcome"""
        try:
            endpoint = await self.endpoints.resolve(request.patient_hospital_id, request.data_type)
        except (EndpointNotConfiguredError, EndpointInactiveError) as e:
            self._deny(request, str(e))
            return

        if requester_role is None or not endpoint.permits(requester_role):
            self._deny(request, f"Endpoint does not allow role {requester_role.value if requester_role else 'unknown'}")
            return

        try:
            result = await self.fhir_provider.fetch(endpoint, request.patient_external_id)
        except Exception as e:
            logger.error(f"Unexpected error fetching data for request {request.id}: {e}")
            self._deny(request, f"Upstream failure: {e}")
            return

        if result.success:
            request.status = RequestStatus.COMPLETED
            request.response_data = result.body
            request.response_date = datetime.utcnow()
            request.denial_reason = None
        else:
            self._deny(request, f"Upstream failure: {result.error}")

    async def approve(
        self,
        request_id: str,
        approver_id: str,
        is_approved: bool,
        reason: Optional[str] = None
    ) -> DataRequestResponse:
        """
        Decide a pending request on behalf of the patient's hospital.

        Approval records a consent grant for (patient, requesting hospital,
        data type) and then fetches the data. Denial records no consent.
        """
        started = time.perf_counter()

        request = await self.repository.get(request_id)
        if not request:
            raise NotFoundError(f"Data request {request_id} not found")
        if request.status != RequestStatus.PENDING:
            raise ValidationFailure(f"Data request {request_id} is {request.status.value}, not Pending")

        approver = await self._get_active_user(approver_id)
        if not approver.hospital_id or approver.hospital_id != request.patient_hospital_id:
            raise AuthorizationError("Only users of the patient's hospital can decide this request")

        # Claim the Pending -> decided transition before any side effect
        decision = {
            "approving_user_id": approver.id,
            "approval_date": datetime.utcnow(),
            "status": (RequestStatus.APPROVED if is_approved else RequestStatus.DENIED).value,
        }
        if is_approved:
            decision["is_consent_valid"] = True
        else:
            decision["denial_reason"] = reason or DEFAULT_DENIAL_REASON

        claimed = await self.repository.claim_pending(request_id, decision)
        if not claimed:
            raise ValidationFailure(f"Data request {request_id} was already decided")
        request = claimed

        if is_approved:
            await self.consents.grant(
                request.patient_id,
                request.requesting_user_id,
                request.requesting_hospital_id,
                request.data_type,
                purpose=request.purpose,
                notes=reason or f"Approved via data request {request.id}"
            )

            requester = await self.users.get(request.requesting_user_id)
            await self._fulfil(request, requester.role if requester and requester.is_active else None)

        request.response_time_ms = self._elapsed_ms(started)
        await self.repository.save(request)
        await self._record_audit("ApproveDataRequest", request, approver.id, approver.hospital_id)

        logger.info(f"Data request {request.id} {'approved' if is_approved else 'denied'} by {approver.id} -> {request.status.value}")
        return request_to_response(request)

    async def get_history(self, user_id: str) -> List[DataRequestResponse]:
        """Requests submitted by a user, newest first"""
        requests = await self.repository.list_for_requester(user_id)
        return [request_to_response(r) for r in requests]

    async def get_pending_for_hospital(self, hospital_id: str) -> List[DataRequestResponse]:
        requests = await self.repository.list_pending_for_hospital(hospital_id)
        return [request_to_response(r) for r in requests]

    async def get_pending_for_user(self, user_id: str) -> List[DataRequestResponse]:
        """Pending requests waiting on the caller's hospital"""
        user = await self._get_active_user(user_id)
        if not user.hospital_id:
            return []
        return await self.get_pending_for_hospital(user.hospital_id)

    async def list_requests(
        self,
        user_id: str,
        hospital_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[DataRequestResponse]:
        """Exchange-wide request log for system managers, optionally per requesting hospital"""
        user = await self._get_active_user(user_id)
        if user.role != Role.SYSTEM_MANAGER:
            raise AuthorizationError("Only system managers can list all data requests")

        requests = await self.repository.list_all(hospital_id, limit=limit, skip=offset)
        return [request_to_response(r) for r in requests]

    async def get_request(self, request_id: str, user_id: Optional[str] = None) -> DataRequestResponse:
        """
        Fetch one request. When a caller is given, only the requester, users
        of either hospital involved, and system managers may see it.
        """
        request = await self.repository.get(request_id)
        if not request:
            raise NotFoundError(f"Data request {request_id} not found")

        if user_id is not None:
            user = await self._get_active_user(user_id)
            visible = (
                user.role == Role.SYSTEM_MANAGER
                or user.id == request.requesting_user_id
                or user.hospital_id in (request.requesting_hospital_id, request.patient_hospital_id)
            )
            if not visible:
                raise AuthorizationError(f"User {user_id} cannot view data request {request_id}")

        return request_to_response(request)

    async def _record_audit(
        self,
        action: str,
        request: DataRequestEntity,
        user_id: str,
        hospital_id: Optional[str]
    ) -> None:
        failed = request.status == RequestStatus.DENIED
        await self.audit.log_audit_event(
            action=action,
            status=AUDIT_FAILED if failed else AUDIT_SUCCESS,
            user_id=user_id,
            hospital_id=hospital_id,
            entity_type="DataRequest",
            entity_id=request.id,
            details=f"{request.data_type.value} for patient {request.patient_external_id}: {request.status.value}",
            error_message=request.denial_reason if failed else None,
            response_time_ms=request.response_time_ms
        )
