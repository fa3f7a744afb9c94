import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from scis_exchange.core.cache import CacheManager
from scis_exchange.core.config import DatabaseConfig, RedisConfig
from scis_exchange.core.database import DatabaseManager
from scis_exchange.core.dependencies import get_service_context, get_data_request_service
from scis_exchange.core.exceptions import ValidationFailure
from scis_exchange.domains.hospital.models.hospital import Role
from scis_exchange.domains.hospital.repositories.hospital_repository import HospitalRepository, UserRepository
from scis_exchange.domains.patient.repositories.patient_repository import PatientRepository
from scis_exchange.domains.endpoint.repositories.endpoint_repository import EndpointRepository
from scis_exchange.main import app
from scis_exchange.providers.sentiment import LexiconSentimentProvider

from conftest import FakeFhirProvider, add_endpoint, add_hospital, add_patient, add_user


@pytest.fixture
def context():
    db_manager = DatabaseManager(DatabaseConfig(name="scis_api_test"))
    sentiment = LexiconSentimentProvider()

    async def build():
        await db_manager.initialize(client=AsyncMongoMockClient())
        await sentiment.initialize()

        repos = SimpleNamespace(
            hospitals=HospitalRepository(db_manager),
            users=UserRepository(db_manager),
            patients=PatientRepository(db_manager),
            endpoints=EndpointRepository(db_manager),
        )
        alpha = await add_hospital(repos, "Alpha General")
        beta = await add_hospital(repos, "Beta Clinic")
        await add_endpoint(repos, alpha.id)
        await add_endpoint(repos, beta.id)
        return SimpleNamespace(
            alpha=alpha,
            beta=beta,
            doctor=await add_user(repos, "dr.alpha", Role.DOCTOR, alpha.id),
            manager=await add_user(repos, "manager.beta", Role.HOSPITAL_MANAGER, beta.id),
            root=await add_user(repos, "root", Role.SYSTEM_MANAGER),
            patient=await add_patient(repos, "P-100", beta.id),
        )

    seeded = asyncio.run(build())
    return SimpleNamespace(
        db_manager=db_manager,
        cache_manager=CacheManager(RedisConfig(enabled=False)),
        fhir_provider=FakeFhirProvider(),
        sentiment_provider=sentiment,
        seeded=seeded,
    )


@pytest.fixture
def client(context):
    app.dependency_overrides[get_service_context] = lambda: context
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_user(user):
    return {"X-User-Id": user.id}


def test_service_info(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["health"] == "/health"


def test_caller_identity_is_required(client):
    response = client.post("/api/v1/data-requests", json={"patient_id": "P-100", "data_type": "LabResults"})
    assert response.status_code == 401


def test_cross_hospital_request_round_trip(client, context):
    seeded = context.seeded

    submitted = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults", "purpose": "Referral"},
        headers=as_user(seeded.doctor),
    )
    assert submitted.status_code == 201
    request_id = submitted.json()["id"]
    assert submitted.json()["status"] == "Pending"

    pending = client.get("/api/v1/data-requests/pending", headers=as_user(seeded.manager))
    assert [r["id"] for r in pending.json()] == [request_id]

    decided = client.post(
        f"/api/v1/data-requests/{request_id}/approval",
        json={"is_approved": True},
        headers=as_user(seeded.manager),
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "Completed"

    consents = client.get(f"/api/v1/consents/patient/{seeded.patient.id}")
    assert len(consents.json()) == 1
    assert consents.json()[0]["requesting_hospital_id"] == seeded.alpha.id

    in_force = client.get("/api/v1/consents", params={
        "patient_id": seeded.patient.id, "requesting_hospital_id": seeded.alpha.id, "data_type": "LabResults",
    })
    assert in_force.json()["is_consented"] is True
    other_type = client.get("/api/v1/consents", params={
        "patient_id": seeded.patient.id, "requesting_hospital_id": seeded.alpha.id, "data_type": "Medications",
    })
    assert other_type.json() is None

    history = client.get("/api/v1/data-requests/history", headers=as_user(seeded.doctor))
    assert [r["id"] for r in history.json()] == [request_id]


def test_domain_errors_map_to_status_codes(client, context):
    seeded = context.seeded

    unknown_patient = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-999", "data_type": "LabResults"},
        headers=as_user(seeded.doctor),
    )
    assert unknown_patient.status_code == 404

    unaffiliated = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults"},
        headers=as_user(seeded.root),
    )
    assert unaffiliated.status_code == 403

    bad_type = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "Genome"},
        headers=as_user(seeded.doctor),
    )
    assert bad_type.status_code == 422


def test_wrong_hospital_cannot_approve(client, context):
    seeded = context.seeded
    request_id = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults"},
        headers=as_user(seeded.doctor),
    ).json()["id"]

    response = client.post(
        f"/api/v1/data-requests/{request_id}/approval",
        json={"is_approved": True},
        headers=as_user(seeded.doctor),
    )
    assert response.status_code == 403


def test_unexpected_errors_become_500(client):
    class Broken:
        async def submit(self, *args):
            raise RuntimeError("database unavailable")

    app.dependency_overrides[get_data_request_service] = lambda: Broken()
    response = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults"},
        headers={"X-User-Id": "someone"},
    )
    assert response.status_code == 500
    assert response.json()["detail"] == "database unavailable"


def test_validation_failure_maps_to_422(client):
    class Refusing:
        async def approve(self, *args):
            raise ValidationFailure("Data request r-1 is Completed, not Pending")

    app.dependency_overrides[get_data_request_service] = lambda: Refusing()
    response = client.post(
        "/api/v1/data-requests/r-1/approval",
        json={"is_approved": True},
        headers={"X-User-Id": "someone"},
    )
    assert response.status_code == 422
    assert "not Pending" in response.json()["detail"]


def test_endpoint_catalogue_and_registry(client, context):
    assert len(client.get("/api/v1/endpoints/data-types").json()) == 12
    assert "Patient" in client.get("/api/v1/endpoints/fhir-resource-types").json()

    created = client.post("/api/v1/endpoints", json={
        "hospital_id": context.seeded.alpha.id,
        "data_type": "Allergies",
        "endpoint_url": "https://fhir.alpha.org/AllergyIntolerance?patient={patientId}",
        "fhir_resource_type": "Bundle",
        "auth_token": "t0ken",
    })
    assert created.status_code == 201
    assert created.json()["has_auth_token"] is True
    assert "auth_token" not in created.json()

    validated = client.post(f"/api/v1/endpoints/{created.json()['id']}/validate")
    assert validated.json()["is_valid"] is True

    listed = client.get("/api/v1/endpoints", params={"hospital_id": context.seeded.alpha.id})
    assert len(listed.json()) == 2

    relative = client.post("/api/v1/endpoints", json={
        "hospital_id": context.seeded.alpha.id,
        "data_type": "Allergies",
        "endpoint_url": "/AllergyIntolerance",
        "fhir_resource_type": "Bundle",
    })
    assert relative.status_code == 422


def test_patient_and_feedback_endpoints(client, context):
    seeded = context.seeded

    payload = {
        "patient_id": "P-300",
        "first_name": "Carla",
        "last_name": "Mendes",
        "date_of_birth": "1990-02-01",
        "gender": "female",
        "hospital_id": seeded.alpha.id,
    }
    registered = client.post("/api/v1/patients", json=payload)
    assert registered.status_code == 201
    assert client.post("/api/v1/patients", json=payload).status_code == 422
    assert client.get("/api/v1/patients/P-300").json()["last_name"] == "Mendes"
    assert client.get("/api/v1/patients/P-404").status_code == 404

    feedback = client.post("/api/v1/feedback", json={
        "patient_id": registered.json()["id"],
        "doctor_id": seeded.doctor.id,
        "pre_treatment_rating": 5,
        "post_treatment_rating": 5,
        "satisfaction_rating": 5,
        "text_feedback": "Excellent care",
    })
    assert feedback.status_code == 201
    assert feedback.json()["treatment_evaluation_score"] == 100.0

    average = client.get(f"/api/v1/feedback/doctor/{seeded.doctor.id}/average-tes")
    assert average.json()["feedback_count"] == 1

    out_of_range = client.post("/api/v1/feedback", json={
        "patient_id": registered.json()["id"],
        "doctor_id": seeded.doctor.id,
        "pre_treatment_rating": 0,
        "post_treatment_rating": 5,
        "satisfaction_rating": 5,
    })
    assert out_of_range.status_code == 422


def test_hospital_onboarding(client, context):
    registered = client.post("/api/v1/hospitals", json={"name": "Delta Care", "address": "4 Delta Street"})
    assert registered.status_code == 201
    hospital_id = registered.json()["id"]

    refused = client.post(
        f"/api/v1/hospitals/{hospital_id}/approve", json={}, headers=as_user(context.seeded.manager)
    )
    assert refused.status_code == 403

    approved = client.post(
        f"/api/v1/hospitals/{hospital_id}/approve",
        json={"verification_notes": "License verified"},
        headers=as_user(context.seeded.root),
    )
    assert approved.json()["is_active"] is True

    user = client.post("/api/v1/users", json={
        "username": "dr.delta", "email": "dr@delta.org", "role": "Doctor", "hospital_id": hospital_id,
    })
    assert user.status_code == 201
    assert [d["username"] for d in client.get(f"/api/v1/hospitals/{hospital_id}/doctors").json()] == ["dr.delta"]


def test_monitoring_routes(client, context):
    client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults"},
        headers=as_user(context.seeded.doctor),
    )

    audit = client.get("/api/v1/monitoring/audit", params={"entity_type": "DataRequest"})
    assert [e["action"] for e in audit.json()] == ["SubmitDataRequest"]

    health = client.get("/api/v1/monitoring/health")
    assert health.status_code == 200
    assert health.json()["cache"] == {"status": "disabled"}


def test_consent_decisions_belong_to_patient_hospital(client, context):
    seeded = context.seeded
    decision = {
        "patient_id": seeded.patient.id,
        "requesting_hospital_id": seeded.alpha.id,
        "data_type": "LabResults",
        "is_consented": True,
    }

    self_granted = client.post("/api/v1/consents", json=decision, headers=as_user(seeded.doctor))
    assert self_granted.status_code == 403

    submitted = client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults"},
        headers=as_user(seeded.doctor),
    )
    assert submitted.json()["status"] == "Pending"

    assert client.post("/api/v1/consents", json=decision).status_code == 401
    assert client.post(
        "/api/v1/consents", json={**decision, "patient_id": "missing"}, headers=as_user(seeded.manager)
    ).status_code == 404
    assert client.post(
        "/api/v1/consents", json={**decision, "requesting_hospital_id": "missing"}, headers=as_user(seeded.manager)
    ).status_code == 404

    granted = client.post("/api/v1/consents", json=decision, headers=as_user(seeded.manager))
    assert granted.status_code == 201
    consent_id = granted.json()["id"]

    refused = client.post(f"/api/v1/consents/{consent_id}/revoke", json={}, headers=as_user(seeded.doctor))
    assert refused.status_code == 403
    assert client.post(f"/api/v1/consents/{consent_id}/revoke", json={}).status_code == 401

    revoked = client.post(
        f"/api/v1/consents/{consent_id}/revoke", json={"notes": "Withdrawn"}, headers=as_user(seeded.root)
    )
    assert revoked.status_code == 200
    assert revoked.json()["is_active"] is False


def test_management_views(client, context):
    seeded = context.seeded
    client.post(
        "/api/v1/data-requests",
        json={"patient_id": "P-100", "data_type": "LabResults"},
        headers=as_user(seeded.doctor),
    )
    waiting = client.post("/api/v1/hospitals", json={"name": "Delta Care", "address": "4 Delta Street"}).json()

    requests = client.get("/api/v1/data-requests", headers=as_user(seeded.root))
    assert requests.status_code == 200
    assert len(requests.json()) == 1
    assert client.get(
        "/api/v1/data-requests", params={"hospital_id": seeded.beta.id}, headers=as_user(seeded.root)
    ).json() == []
    assert client.get("/api/v1/data-requests", headers=as_user(seeded.manager)).status_code == 403

    assert client.get("/api/v1/feedback", headers=as_user(seeded.root)).json() == []
    assert client.get("/api/v1/feedback", headers=as_user(seeded.doctor)).status_code == 403

    pending = client.get("/api/v1/hospitals/pending", headers=as_user(seeded.root))
    assert [h["id"] for h in pending.json()] == [waiting["id"]]
    assert client.get("/api/v1/hospitals/pending", headers=as_user(seeded.manager)).status_code == 403

    system_stats = client.get("/api/v1/dashboard/stats", headers=as_user(seeded.root)).json()
    assert system_stats["total_hospitals"] == 2
    assert system_stats["total_data_requests"] == 1
    assert system_stats["pending_data_requests"] == 1

    beta_stats = client.get("/api/v1/dashboard/stats", headers=as_user(seeded.manager)).json()
    assert beta_stats["hospital_name"] == "Beta Clinic"
    assert beta_stats["total_patients"] == 1

    assert client.get("/api/v1/dashboard/stats", headers=as_user(seeded.doctor)).status_code == 403
