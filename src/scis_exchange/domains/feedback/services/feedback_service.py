"""
Feedback service - feedback submission, TES aggregates and performance insights
"""

from typing import Optional, List
from datetime import datetime
import logging

from ..models.feedback import (
    FeedbackSubmission,
    FeedbackResponse,
    FeedbackEntity,
    AverageTESResponse,
    DoctorAlert,
    HospitalRanking,
    SentimentShare,
    PerformanceInsights,
    Sentiment,
)
from ..repositories.feedback_repository import FeedbackRepository
from .scoring import FeedbackScorer
from ...hospital.models.hospital import Role
from ...hospital.repositories.hospital_repository import HospitalRepository, UserRepository
from ...patient.repositories.patient_repository import PatientRepository
from ....core.config import ScoringConfig, get_scoring_config
from ....core.exceptions import NotFoundError, AuthorizationError, ValidationFailure


logger = logging.getLogger(__name__)


def feedback_to_response(feedback: FeedbackEntity) -> FeedbackResponse:
    return FeedbackResponse(**feedback.to_dict())


class FeedbackService:
    """Service layer for patient feedback"""

    def __init__(
        self,
        repository: FeedbackRepository,
        scorer: FeedbackScorer,
        patient_repository: PatientRepository,
        user_repository: UserRepository,
        hospital_repository: HospitalRepository,
        config: Optional[ScoringConfig] = None
    ):
        self.repository = repository
        self.scorer = scorer
        self.patients = patient_repository
        self.users = user_repository
        self.hospitals = hospital_repository
        self.config = config or get_scoring_config()

    async def submit_feedback(self, submission: FeedbackSubmission) -> FeedbackResponse:
        """Score and store feedback, then refresh the hospital's average TES"""
        patient = await self.patients.get(submission.patient_id)
        if not patient:
            raise NotFoundError(f"Patient {submission.patient_id} not found")

        doctor = await self.users.get(submission.doctor_id)
        if not doctor:
            raise NotFoundError(f"Doctor {submission.doctor_id} not found")
        if doctor.role != Role.DOCTOR:
            raise ValidationFailure(f"User {submission.doctor_id} is not a doctor")
        if not doctor.hospital_id:
            raise ValidationFailure(f"Doctor {submission.doctor_id} has no hospital")

        score = self.scorer.score(
            submission.pre_treatment_rating,
            submission.post_treatment_rating,
            submission.satisfaction_rating,
            submission.text_feedback
        )

        feedback = FeedbackEntity(
            patient_id=patient.id,
            doctor_id=doctor.id,
            hospital_id=doctor.hospital_id,
            treatment_description=submission.treatment_description,
            pre_treatment_rating=submission.pre_treatment_rating,
            post_treatment_rating=submission.post_treatment_rating,
            satisfaction_rating=submission.satisfaction_rating,
            text_feedback=submission.text_feedback,
            treatment_evaluation_score=score.treatment_evaluation_score,
            sentiment_analysis=score.sentiment,
            sentiment_score=score.sentiment_score,
            is_processed=True
        )
        await self.repository.create(feedback)

        hospital_tes = await self.repository.average_tes("hospital_id", doctor.hospital_id)
        await self.hospitals.update_fields(doctor.hospital_id, {"average_tes": round(hospital_tes["average"], 2)})

        logger.info(
            f"Feedback {feedback.id} for doctor {doctor.id}: TES {feedback.treatment_evaluation_score}, "
            f"{feedback.sentiment_analysis.value}"
        )
        return feedback_to_response(feedback)

    async def list_feedback(
        self,
        user_id: str,
        hospital_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[FeedbackResponse]:
        user = await self.users.get(user_id)
        if not user or not user.is_active:
            raise NotFoundError(f"User {user_id} not found")
        if user.role != Role.SYSTEM_MANAGER:
            raise AuthorizationError("Only system managers can list all feedback")

        entries = await self.repository.list_all(hospital_id, limit=limit, skip=offset)
        return [feedback_to_response(f) for f in entries]

    async def get_doctor_average_tes(self, doctor_id: str) -> AverageTESResponse:
        stats = await self.repository.average_tes("doctor_id", doctor_id)
        return AverageTESResponse(subject_id=doctor_id, average_tes=round(stats["average"], 2), feedback_count=stats["count"])

    async def get_hospital_average_tes(self, hospital_id: str) -> AverageTESResponse:
        stats = await self.repository.average_tes("hospital_id", hospital_id)
        return AverageTESResponse(subject_id=hospital_id, average_tes=round(stats["average"], 2), feedback_count=stats["count"])

    async def get_performance_insights(self) -> PerformanceInsights:
        """Underperforming doctors, hospital ranking and sentiment distribution"""
        doctor_rows = await self.repository.average_tes_by_doctor()
        doctors = await self.users.get_many([row["_id"] for row in doctor_rows])

        alerts: List[DoctorAlert] = []
        for row in doctor_rows:
            average = round(row["average"] or 0.0, 2)
            if average >= self.config.doctor_warning_threshold:
                continue
            doctor = doctors.get(row["_id"])
            alerts.append(DoctorAlert(
                doctor_id=row["_id"],
                doctor_name=doctor.username if doctor else "Unknown",
                hospital_id=doctor.hospital_id if doctor else None,
                average_tes=average,
                severity="Critical" if average < self.config.doctor_critical_threshold else "Warning"
            ))
        alerts.sort(key=lambda a: a.average_tes)

        hospitals = await self.hospitals.list(active_only=True)
        rankings = sorted(
            (
                HospitalRanking(
                    hospital_id=h.id,
                    name=h.name,
                    average_tes=h.average_tes,
                    interoperability_success_rate=h.interoperability_success_rate,
                    patient_volume=h.patient_volume,
                    performance_index=h.performance_index
                )
                for h in hospitals
            ),
            key=lambda r: r.performance_index,
            reverse=True
        )

        counts = await self.repository.sentiment_counts()
        total = sum(counts.values())
        distribution = [
            SentimentShare(
                sentiment=sentiment,
                count=counts.get(sentiment.value, 0),
                percentage=round(counts.get(sentiment.value, 0) / total * 100, 2) if total else 0.0
            )
            for sentiment in Sentiment
        ]

        return PerformanceInsights(
            low_performing_doctors=alerts,
            hospital_rankings=rankings,
            sentiment_distribution=distribution,
            total_feedback=total,
            generated_at=datetime.utcnow()
        )
