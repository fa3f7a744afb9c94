"""
Hospital service - hospital onboarding, users and performance metrics
"""

from typing import Optional, List
from datetime import datetime
import logging

from ..models.hospital import (
    HospitalRegistrationRequest,
    HospitalResponse,
    PerformanceMetricsResponse,
    DashboardStatsResponse,
    UserCreateRequest,
    UserResponse,
    HospitalEntity,
    UserEntity,
    Role,
    calculate_performance_index,
)
from ..repositories.hospital_repository import HospitalRepository, UserRepository
from ...patient.repositories.patient_repository import PatientRepository
from ...feedback.repositories.feedback_repository import FeedbackRepository
from ...data_request.repositories.data_request_repository import DataRequestRepository
from ...data_request.models.data_request import RequestStatus
from ....core.config import ScoringConfig, get_scoring_config
from ....core.exceptions import NotFoundError, AuthorizationError, ValidationFailure


logger = logging.getLogger(__name__)


def hospital_to_response(hospital: HospitalEntity) -> HospitalResponse:
    return HospitalResponse(**hospital.to_dict())


def user_to_response(user: UserEntity) -> UserResponse:
    return UserResponse(**user.to_dict())


class HospitalService:
    """Service layer for hospital and user operations"""

    def __init__(
        self,
        hospital_repository: HospitalRepository,
        user_repository: UserRepository,
        patient_repository: PatientRepository,
        feedback_repository: FeedbackRepository,
        data_request_repository: DataRequestRepository,
        scoring_config: Optional[ScoringConfig] = None
    ):
        self.hospitals = hospital_repository
        self.users = user_repository
        self.patients = patient_repository
        self.feedback = feedback_repository
        self.requests = data_request_repository
        self.scoring_config = scoring_config or get_scoring_config()

    # Hospitals

    async def register_hospital(self, request: HospitalRegistrationRequest) -> HospitalResponse:
        """Register a hospital; it stays inactive until a system manager approves it"""
        hospital = HospitalEntity(**request.model_dump())
        await self.hospitals.create(hospital)
        return hospital_to_response(hospital)

    async def approve_hospital(
        self,
        hospital_id: str,
        approver_id: str,
        verification_notes: Optional[str] = None
    ) -> HospitalResponse:
        """Approve and activate a registered hospital"""
        approver = await self.users.get(approver_id)
        if not approver or not approver.is_active:
            raise NotFoundError(f"User {approver_id} not found")
        if approver.role != Role.SYSTEM_MANAGER:
            raise AuthorizationError("Only system managers can approve hospitals")

        hospital = await self.get_hospital_entity(hospital_id)
        if hospital.is_approved:
            raise ValidationFailure(f"Hospital {hospital_id} is already approved")

        changes = {
            "is_active": True,
            "is_approved": True,
            "approved_at": datetime.utcnow(),
            "approved_by_user_id": approver_id,
            "verification_notes": verification_notes,
        }
        await self.hospitals.update_fields(hospital_id, changes)
        logger.info(f"Hospital {hospital_id} approved by {approver_id}")

        for key, value in changes.items():
            setattr(hospital, key, value)
        return hospital_to_response(hospital)

    async def get_hospital_entity(self, hospital_id: str) -> HospitalEntity:
        hospital = await self.hospitals.get(hospital_id)
        if not hospital:
            raise NotFoundError(f"Hospital {hospital_id} not found")
        return hospital

    async def get_hospital(self, hospital_id: str) -> HospitalResponse:
        return hospital_to_response(await self.get_hospital_entity(hospital_id))

    async def list_hospitals(self, active_only: bool = False) -> List[HospitalResponse]:
        return [hospital_to_response(h) for h in await self.hospitals.list(active_only=active_only)]

    async def list_pending_hospitals(self, user_id: str) -> List[HospitalResponse]:
        """Hospitals waiting for approval; restricted to system managers"""
        user = await self.get_user_entity(user_id)
        if user.role != Role.SYSTEM_MANAGER:
            raise AuthorizationError("Only system managers can review pending hospitals")
        return [hospital_to_response(h) for h in await self.hospitals.list_pending()]

    async def recompute_performance_metrics(self, hospital_id: str) -> PerformanceMetricsResponse:
        """
        Recalculate and store a hospital's performance metrics.

        Interoperability is the share of resolved requests served from this
        hospital's data that completed; pending and approved requests are not
        counted yet.
        """
        await self.get_hospital_entity(hospital_id)

        tes = await self.feedback.average_tes("hospital_id", hospital_id)
        average_tes = round(tes["average"], 2)

        completed = await self.requests.count_served(hospital_id, [RequestStatus.COMPLETED])
        resolved = await self.requests.count_served(
            hospital_id, [RequestStatus.COMPLETED, RequestStatus.DENIED]
        )
        interoperability = round(completed / resolved * 100, 2) if resolved else 0.0

        volume = await self.patients.count_active(hospital_id)
        index = calculate_performance_index(average_tes, interoperability, volume)

        await self.hospitals.update_fields(hospital_id, {
            "average_tes": average_tes,
            "interoperability_success_rate": interoperability,
            "patient_volume": volume,
            "performance_index": index,
        })

        return PerformanceMetricsResponse(
            hospital_id=hospital_id,
            average_tes=average_tes,
            interoperability_success_rate=interoperability,
            patient_volume=volume,
            performance_index=index
        )

    # Users

    async def create_user(self, request: UserCreateRequest) -> UserResponse:
        """Create a user; all roles except SystemManager belong to an existing hospital"""
        if request.role == Role.SYSTEM_MANAGER:
            if request.hospital_id:
                raise ValidationFailure("System managers are not affiliated with a hospital")
        else:
            if not request.hospital_id:
                raise ValidationFailure(f"Role {request.role.value} requires a hospital")
            await self.get_hospital_entity(request.hospital_id)

        if await self.users.find_by_username(request.username):
            raise ValidationFailure(f"Username {request.username} is already taken")

        user = UserEntity(
            username=request.username,
            email=request.email,
            role=request.role,
            hospital_id=request.hospital_id
        )
        await self.users.create(user)
        return user_to_response(user)

    async def get_user_entity(self, user_id: str) -> UserEntity:
        user = await self.users.get(user_id)
        if not user or not user.is_active:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_user(self, user_id: str) -> UserResponse:
        return user_to_response(await self.get_user_entity(user_id))

    async def list_doctors(self, hospital_id: Optional[str] = None) -> List[UserResponse]:
        doctors = await self.users.list_by_role(Role.DOCTOR, hospital_id)
        return [user_to_response(d) for d in doctors]

    # Dashboard

    async def get_dashboard_stats(self, user_id: str) -> DashboardStatsResponse:
        """
        Exchange-wide figures for a system manager, or the figures of the
        caller's own hospital for a hospital manager.
        """
        user = await self.get_user_entity(user_id)
        if user.role == Role.SYSTEM_MANAGER:
            hospital = None
        elif user.role == Role.HOSPITAL_MANAGER and user.hospital_id:
            hospital = await self.get_hospital_entity(user.hospital_id)
        else:
            raise AuthorizationError("Only system and hospital managers can view dashboard statistics")

        hospital_id = hospital.id if hospital else None
        tes = await self.feedback.average_tes("hospital_id" if hospital_id else None, hospital_id)

        by_status = await self.requests.count_by_status(hospital_id)
        completed = by_status.get(RequestStatus.COMPLETED.value, 0)
        resolved = completed + by_status.get(RequestStatus.DENIED.value, 0)

        doctor_ids = {d.id for d in await self.users.list_by_role(Role.DOCTOR, hospital_id)}
        alerts = sum(
            1 for row in await self.feedback.average_tes_by_doctor()
            if row["_id"] in doctor_ids and (row["average"] or 0.0) < self.scoring_config.doctor_warning_threshold
        )

        return DashboardStatsResponse(
            hospital_id=hospital_id,
            hospital_name=hospital.name if hospital else None,
            total_hospitals=1 if hospital else await self.hospitals.count_active(),
            total_patients=await self.patients.count_active(hospital_id),
            total_doctors=await self.users.count_active(Role.DOCTOR, hospital_id),
            total_data_requests=sum(by_status.values()),
            pending_data_requests=by_status.get(RequestStatus.PENDING.value, 0),
            average_tes=round(tes["average"], 2),
            interoperability_success_rate=round(completed / resolved * 100, 2) if resolved else 0.0,
            alerts_count=alerts
        )
