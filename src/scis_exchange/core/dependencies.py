"""
Dependency injection for the application
"""

from typing import Optional
from fastapi import Request, Depends, Header, HTTPException

from .database import DatabaseManager
from .cache import CacheManager
from ..providers.fhir_provider import FhirEndpointProvider
from ..providers.sentiment import SentimentProvider

# Domain repositories and services
from ..domains.hospital.repositories.hospital_repository import HospitalRepository, UserRepository
from ..domains.hospital.services.hospital_service import HospitalService

from ..domains.patient.repositories.patient_repository import PatientRepository
from ..domains.patient.services.patient_service import PatientService

from ..domains.consent.repositories.consent_repository import ConsentRepository
from ..domains.consent.services.consent_service import ConsentService

from ..domains.endpoint.repositories.endpoint_repository import EndpointRepository
from ..domains.endpoint.services.endpoint_service import EndpointService

from ..domains.data_request.repositories.data_request_repository import DataRequestRepository
from ..domains.data_request.services.data_request_service import DataRequestService

from ..domains.feedback.repositories.feedback_repository import FeedbackRepository
from ..domains.feedback.services.scoring import FeedbackScorer
from ..domains.feedback.services.feedback_service import FeedbackService

from ..domains.monitoring.repositories.monitoring_repository import MonitoringRepository
from ..domains.monitoring.services.monitoring_service import MonitoringService


# Context dependencies
async def get_service_context(request: Request):
    """Get the process-wide service context"""
    return request.app.state.scis_service


async def get_db_manager(context=Depends(get_service_context)) -> DatabaseManager:
    return context.db_manager


async def get_cache_manager(context=Depends(get_service_context)) -> CacheManager:
    return context.cache_manager


async def get_fhir_provider(context=Depends(get_service_context)) -> FhirEndpointProvider:
    return context.fhir_provider


async def get_sentiment_provider(context=Depends(get_service_context)) -> SentimentProvider:
    return context.sentiment_provider


async def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Acting user id, supplied by the authenticating gateway in front of the service"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id


# Repository dependencies
async def get_hospital_repository(db: DatabaseManager = Depends(get_db_manager)) -> HospitalRepository:
    return HospitalRepository(db)


async def get_user_repository(db: DatabaseManager = Depends(get_db_manager)) -> UserRepository:
    return UserRepository(db)


async def get_patient_repository(db: DatabaseManager = Depends(get_db_manager)) -> PatientRepository:
    return PatientRepository(db)


async def get_consent_repository(db: DatabaseManager = Depends(get_db_manager)) -> ConsentRepository:
    return ConsentRepository(db)


async def get_endpoint_repository(
    db: DatabaseManager = Depends(get_db_manager),
    cache: CacheManager = Depends(get_cache_manager)
) -> EndpointRepository:
    """Get endpoint repository instance (Redis-cached resolution)"""
    return EndpointRepository(db, cache)


async def get_data_request_repository(db: DatabaseManager = Depends(get_db_manager)) -> DataRequestRepository:
    return DataRequestRepository(db)


async def get_feedback_repository(db: DatabaseManager = Depends(get_db_manager)) -> FeedbackRepository:
    return FeedbackRepository(db)


async def get_monitoring_repository(
    db: DatabaseManager = Depends(get_db_manager),
    cache: CacheManager = Depends(get_cache_manager)
) -> MonitoringRepository:
    return MonitoringRepository(db, cache)


# Service dependencies
async def get_hospital_service(
    hospitals: HospitalRepository = Depends(get_hospital_repository),
    users: UserRepository = Depends(get_user_repository),
    patients: PatientRepository = Depends(get_patient_repository),
    feedback: FeedbackRepository = Depends(get_feedback_repository),
    requests: DataRequestRepository = Depends(get_data_request_repository)
) -> HospitalService:
    """Get hospital service instance"""
    return HospitalService(hospitals, users, patients, feedback, requests)


async def get_patient_service(
    repository: PatientRepository = Depends(get_patient_repository),
    hospitals: HospitalRepository = Depends(get_hospital_repository)
) -> PatientService:
    """Get patient service instance"""
    return PatientService(repository, hospitals)


async def get_consent_service(
    repository: ConsentRepository = Depends(get_consent_repository),
    users: UserRepository = Depends(get_user_repository),
    patients: PatientRepository = Depends(get_patient_repository),
    hospitals: HospitalRepository = Depends(get_hospital_repository)
) -> ConsentService:
    """Get consent service instance"""
    return ConsentService(repository, user_repository=users, patient_repository=patients, hospital_repository=hospitals)


async def get_endpoint_service(
    repository: EndpointRepository = Depends(get_endpoint_repository),
    hospitals: HospitalRepository = Depends(get_hospital_repository),
    fhir_provider: FhirEndpointProvider = Depends(get_fhir_provider)
) -> EndpointService:
    """Get endpoint service instance"""
    return EndpointService(repository, hospitals, fhir_provider)


async def get_data_request_service(
    repository: DataRequestRepository = Depends(get_data_request_repository),
    users: UserRepository = Depends(get_user_repository),
    patients: PatientRepository = Depends(get_patient_repository),
    hospitals: HospitalRepository = Depends(get_hospital_repository),
    consents: ConsentService = Depends(get_consent_service),
    endpoints: EndpointService = Depends(get_endpoint_service),
    fhir_provider: FhirEndpointProvider = Depends(get_fhir_provider),
    audit: MonitoringRepository = Depends(get_monitoring_repository)
) -> DataRequestService:
    """Get data request workflow instance"""
    return DataRequestService(repository, users, patients, hospitals, consents, endpoints, fhir_provider, audit)


async def get_feedback_service(
    repository: FeedbackRepository = Depends(get_feedback_repository),
    sentiment_provider: SentimentProvider = Depends(get_sentiment_provider),
    patients: PatientRepository = Depends(get_patient_repository),
    users: UserRepository = Depends(get_user_repository),
    hospitals: HospitalRepository = Depends(get_hospital_repository)
) -> FeedbackService:
    """Get feedback service instance"""
    return FeedbackService(repository, FeedbackScorer(sentiment_provider), patients, users, hospitals)


async def get_monitoring_service(
    repository: MonitoringRepository = Depends(get_monitoring_repository)
) -> MonitoringService:
    """Get monitoring service instance"""
    return MonitoringService(repository)
