from datetime import date
from types import SimpleNamespace
from typing import Dict, List, Optional

import orjson
import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from scis_exchange.core.config import DatabaseConfig, ConsentConfig, ScoringConfig
from scis_exchange.core.database import DatabaseManager
from scis_exchange.providers.fhir_provider import FhirFetchResult
from scis_exchange.providers.sentiment import LexiconSentimentProvider
from scis_exchange.domains.hospital.models.hospital import HospitalEntity, UserEntity, Role
from scis_exchange.domains.hospital.repositories.hospital_repository import HospitalRepository, UserRepository
from scis_exchange.domains.patient.models.patient import PatientEntity
from scis_exchange.domains.patient.repositories.patient_repository import PatientRepository
from scis_exchange.domains.consent.repositories.consent_repository import ConsentRepository
from scis_exchange.domains.consent.services.consent_service import ConsentService
from scis_exchange.domains.endpoint.models.endpoint import EndpointEntity, DataType
from scis_exchange.domains.endpoint.repositories.endpoint_repository import EndpointRepository
from scis_exchange.domains.endpoint.services.endpoint_service import EndpointService
from scis_exchange.domains.data_request.repositories.data_request_repository import DataRequestRepository
from scis_exchange.domains.data_request.services.data_request_service import DataRequestService
from scis_exchange.domains.feedback.repositories.feedback_repository import FeedbackRepository
from scis_exchange.domains.monitoring.repositories.monitoring_repository import MonitoringRepository


LAB_BUNDLE = '{"resourceType":"Bundle","type":"searchset","entry":[{"resource":{"resourceType":"Observation","id":"obs-1"}}]}'


class FakeFhirProvider:
    """Records calls and answers with a queued or default result"""

    def __init__(self, default: Optional[FhirFetchResult] = None):
        self.default = default or FhirFetchResult(success=True, status_code=200, body=LAB_BUNDLE, elapsed_ms=5)
        self.queued: List[FhirFetchResult] = []
        self.calls: List[tuple] = []

    async def fetch(self, endpoint, patient_external_id):
        self.calls.append((endpoint.id, patient_external_id))
        return self.queued.pop(0) if self.queued else self.default

    async def validate(self, endpoint, sample_patient_id="example"):
        self.calls.append((endpoint.id, sample_patient_id))
        return self.queued.pop(0) if self.queued else FhirFetchResult(success=True, status_code=200)


class FakeCache:
    """In-memory stand-in for CacheManager; values round-trip through orjson like Redis"""

    def __init__(self):
        self.store: Dict[str, bytes] = {}
        self.config = SimpleNamespace(endpoint_cache_ttl_seconds=600, default_ttl_seconds=3600)

    async def get(self, key):
        raw = self.store.get(key)
        return orjson.loads(raw) if raw else None

    async def set(self, key, value, ttl_seconds=None):
        self.store[key] = orjson.dumps(value)
        return True

    async def delete(self, key):
        return self.store.pop(key, None) is not None


@pytest_asyncio.fixture
async def db_manager():
    manager = DatabaseManager(DatabaseConfig(name="scis_test"))
    await manager.initialize(client=AsyncMongoMockClient())
    return manager


@pytest.fixture
def repos(db_manager):
    return SimpleNamespace(
        hospitals=HospitalRepository(db_manager),
        users=UserRepository(db_manager),
        patients=PatientRepository(db_manager),
        consents=ConsentRepository(db_manager),
        endpoints=EndpointRepository(db_manager),
        requests=DataRequestRepository(db_manager),
        feedback=FeedbackRepository(db_manager),
        audit=MonitoringRepository(db_manager),
    )


@pytest.fixture
def consent_config():
    return ConsentConfig(default_validity_days=365)


@pytest.fixture
def scoring_config():
    return ScoringConfig(
        pre_treatment_weight=0.1,
        post_treatment_weight=0.3,
        satisfaction_weight=0.3,
        sentiment_weight=0.3,
        sentiment_provider="lexicon",
        sentiment_model_path=None,
        doctor_warning_threshold=70,
        doctor_critical_threshold=50,
    )


@pytest.fixture
def fhir():
    return FakeFhirProvider()


@pytest_asyncio.fixture
async def lexicon():
    provider = LexiconSentimentProvider()
    await provider.initialize()
    return provider


@pytest.fixture
def consent_service(repos, consent_config):
    return ConsentService(
        repos.consents,
        consent_config,
        user_repository=repos.users,
        patient_repository=repos.patients,
        hospital_repository=repos.hospitals,
    )


@pytest.fixture
def endpoint_service(repos, fhir):
    return EndpointService(repos.endpoints, repos.hospitals, fhir)


@pytest.fixture
def workflow(repos, consent_service, endpoint_service, fhir):
    return DataRequestService(
        repos.requests,
        repos.users,
        repos.patients,
        repos.hospitals,
        consent_service,
        endpoint_service,
        fhir,
        repos.audit,
    )


async def add_hospital(repos, name, active=True) -> HospitalEntity:
    hospital = HospitalEntity(name=name, address=f"1 {name} Road", is_active=active, is_approved=active)
    return await repos.hospitals.create(hospital)


async def add_user(repos, username, role, hospital_id=None) -> UserEntity:
    user = UserEntity(username=username, email=f"{username}@example.org", role=role, hospital_id=hospital_id)
    return await repos.users.create(user)


async def add_patient(repos, patient_id, hospital_id, first_name="Ana", last_name="Silva") -> PatientEntity:
    patient = PatientEntity(
        patient_id=patient_id,
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date(1985, 4, 12).isoformat(),
        gender="female",
        hospital_id=hospital_id,
    )
    return await repos.patients.create(patient)


async def add_endpoint(repos, hospital_id, data_type=DataType.LAB_RESULTS, **overrides) -> EndpointEntity:
    values = dict(
        hospital_id=hospital_id,
        data_type=data_type,
        endpoint_url="https://fhir.example.org/Observation?patient={patientId}",
        fhir_resource_type="Bundle",
    )
    values.update(overrides)
    return await repos.endpoints.create(EndpointEntity(**values))


@pytest_asyncio.fixture
async def world(repos):
    """
    Two active hospitals. Patient P-100 belongs to hospital B and P-200 to
    hospital A. Both hospitals serve LabResults.
    """
    hospital_a = await add_hospital(repos, "Alpha General")
    hospital_b = await add_hospital(repos, "Beta Clinic")

    doctor_a = await add_user(repos, "dr.alpha", Role.DOCTOR, hospital_a.id)
    staff_a = await add_user(repos, "staff.alpha", Role.STAFF, hospital_a.id)
    staff_b = await add_user(repos, "staff.beta", Role.STAFF, hospital_b.id)
    manager_b = await add_user(repos, "manager.beta", Role.HOSPITAL_MANAGER, hospital_b.id)
    manager_a = await add_user(repos, "manager.alpha", Role.HOSPITAL_MANAGER, hospital_a.id)
    system_manager = await add_user(repos, "root", Role.SYSTEM_MANAGER)

    patient_b = await add_patient(repos, "P-100", hospital_b.id)
    patient_a = await add_patient(repos, "P-200", hospital_a.id, first_name="Bruno", last_name="Costa")

    endpoint_b = await add_endpoint(repos, hospital_b.id)
    endpoint_a = await add_endpoint(repos, hospital_a.id)

    return SimpleNamespace(
        hospital_a=hospital_a,
        hospital_b=hospital_b,
        doctor_a=doctor_a,
        staff_a=staff_a,
        staff_b=staff_b,
        manager_a=manager_a,
        manager_b=manager_b,
        system_manager=system_manager,
        patient_a=patient_a,
        patient_b=patient_b,
        endpoint_a=endpoint_a,
        endpoint_b=endpoint_b,
    )
