import pytest

from scis_exchange.core.exceptions import AuthorizationError, NotFoundError, ValidationFailure
from scis_exchange.domains.data_request.models.data_request import DataRequestEntity, RequestStatus
from scis_exchange.domains.endpoint.models.endpoint import DataType
from scis_exchange.domains.feedback.models.feedback import FeedbackEntity, Sentiment
from scis_exchange.domains.hospital.models.hospital import (
    HospitalRegistrationRequest,
    Role,
    UserCreateRequest,
    calculate_performance_index,
)
from scis_exchange.domains.hospital.services.hospital_service import HospitalService

from conftest import add_hospital, add_patient, add_user


@pytest.fixture
def hospital_service(repos, scoring_config):
    return HospitalService(repos.hospitals, repos.users, repos.patients, repos.feedback, repos.requests, scoring_config)


@pytest.mark.asyncio
async def test_registered_hospital_waits_for_approval(hospital_service, repos):
    root = await add_user(repos, "root", Role.SYSTEM_MANAGER)
    hospital = await hospital_service.register_hospital(
        HospitalRegistrationRequest(name="Delta Care", address="4 Delta Street", license_number="LIC-4")
    )
    assert hospital.is_active is False
    assert hospital.is_approved is False
    assert await hospital_service.list_hospitals(active_only=True) == []

    approved = await hospital_service.approve_hospital(hospital.id, root.id, "Documents checked")

    assert approved.is_active and approved.is_approved
    assert approved.approved_by_user_id == root.id
    assert approved.verification_notes == "Documents checked"
    assert [h.id for h in await hospital_service.list_hospitals(active_only=True)] == [hospital.id]


@pytest.mark.asyncio
async def test_only_system_managers_approve(hospital_service, repos):
    hospital = await add_hospital(repos, "Delta Care", active=False)
    other = await add_hospital(repos, "Alpha General")
    manager = await add_user(repos, "manager", Role.HOSPITAL_MANAGER, other.id)

    with pytest.raises(AuthorizationError):
        await hospital_service.approve_hospital(hospital.id, manager.id)


@pytest.mark.asyncio
async def test_hospital_cannot_be_approved_twice(hospital_service, repos):
    root = await add_user(repos, "root", Role.SYSTEM_MANAGER)
    hospital = await add_hospital(repos, "Alpha General")

    with pytest.raises(ValidationFailure):
        await hospital_service.approve_hospital(hospital.id, root.id)


@pytest.mark.asyncio
async def test_user_affiliation_rules(hospital_service, repos):
    hospital = await add_hospital(repos, "Alpha General")

    doctor = await hospital_service.create_user(
        UserCreateRequest(username="dr.alpha", email="dr@alpha.org", role=Role.DOCTOR, hospital_id=hospital.id)
    )
    assert doctor.role == Role.DOCTOR

    with pytest.raises(ValidationFailure):
        await hospital_service.create_user(UserCreateRequest(username="nobody", email="n@x.org", role=Role.STAFF))
    with pytest.raises(ValidationFailure):
        await hospital_service.create_user(
            UserCreateRequest(username="root", email="r@x.org", role=Role.SYSTEM_MANAGER, hospital_id=hospital.id)
        )
    with pytest.raises(NotFoundError):
        await hospital_service.create_user(
            UserCreateRequest(username="ghost", email="g@x.org", role=Role.STAFF, hospital_id="missing")
        )
    with pytest.raises(ValidationFailure):
        await hospital_service.create_user(
            UserCreateRequest(username="dr.alpha", email="other@alpha.org", role=Role.DOCTOR, hospital_id=hospital.id)
        )


@pytest.mark.asyncio
async def test_list_doctors(hospital_service, repos):
    alpha = await add_hospital(repos, "Alpha General")
    beta = await add_hospital(repos, "Beta Clinic")
    await add_user(repos, "dr.a", Role.DOCTOR, alpha.id)
    await add_user(repos, "dr.b", Role.DOCTOR, beta.id)
    await add_user(repos, "staff.a", Role.STAFF, alpha.id)

    assert [d.username for d in await hospital_service.list_doctors(alpha.id)] == ["dr.a"]
    assert len(await hospital_service.list_doctors()) == 2


def test_performance_index_formula():
    assert calculate_performance_index(80.0, 50.0, 100) == 57.0
    assert calculate_performance_index(0.0, 0.0, 0) == 0.0


@pytest.mark.asyncio
async def test_recompute_performance_metrics(hospital_service, repos):
    hospital = await add_hospital(repos, "Beta Clinic")
    requester = await add_hospital(repos, "Alpha General")
    for n in range(3):
        await add_patient(repos, f"P-{n}", hospital.id)

    for tes in (80.0, 60.0):
        await repos.feedback.create(FeedbackEntity(
            patient_id="p", doctor_id="d", hospital_id=hospital.id,
            pre_treatment_rating=3, post_treatment_rating=4, satisfaction_rating=4,
            treatment_evaluation_score=tes, sentiment_analysis=Sentiment.POSITIVE, sentiment_score=0.9,
        ))

    for status in (RequestStatus.COMPLETED, RequestStatus.COMPLETED, RequestStatus.DENIED, RequestStatus.PENDING):
        await repos.requests.create(DataRequestEntity(
            requesting_user_id="u", requesting_hospital_id=requester.id,
            patient_id="p", patient_external_id="P-0", patient_hospital_id=hospital.id,
            data_type=DataType.LAB_RESULTS, status=status,
        ))

    metrics = await hospital_service.recompute_performance_metrics(hospital.id)

    assert metrics.average_tes == 70.0
    assert metrics.interoperability_success_rate == 66.67
    assert metrics.patient_volume == 3
    assert metrics.performance_index == calculate_performance_index(70.0, 66.67, 3)

    stored = await repos.hospitals.get(hospital.id)
    assert stored.performance_index == metrics.performance_index


@pytest.mark.asyncio
async def test_pending_hospitals_are_listed_for_system_managers(hospital_service, repos):
    root = await add_user(repos, "root", Role.SYSTEM_MANAGER)
    active = await add_hospital(repos, "Alpha General")
    manager = await add_user(repos, "manager", Role.HOSPITAL_MANAGER, active.id)
    waiting = await hospital_service.register_hospital(
        HospitalRegistrationRequest(name="Delta Care", address="4 Delta Street")
    )

    assert [h.id for h in await hospital_service.list_pending_hospitals(root.id)] == [waiting.id]
    with pytest.raises(AuthorizationError):
        await hospital_service.list_pending_hospitals(manager.id)

    await hospital_service.approve_hospital(waiting.id, root.id)
    assert await hospital_service.list_pending_hospitals(root.id) == []


async def add_feedback(repos, doctor_id, hospital_id, tes):
    await repos.feedback.create(FeedbackEntity(
        patient_id="p", doctor_id=doctor_id, hospital_id=hospital_id,
        pre_treatment_rating=3, post_treatment_rating=4, satisfaction_rating=4,
        treatment_evaluation_score=tes, sentiment_analysis=Sentiment.NEUTRAL, sentiment_score=0.5,
    ))


@pytest.mark.asyncio
async def test_dashboard_stats_by_role(hospital_service, repos):
    alpha = await add_hospital(repos, "Alpha General")
    beta = await add_hospital(repos, "Beta Clinic")
    await add_hospital(repos, "Delta Care", active=False)

    root = await add_user(repos, "root", Role.SYSTEM_MANAGER)
    manager_b = await add_user(repos, "manager.beta", Role.HOSPITAL_MANAGER, beta.id)
    staff_b = await add_user(repos, "staff.beta", Role.STAFF, beta.id)
    doctor_a = await add_user(repos, "dr.alpha", Role.DOCTOR, alpha.id)
    doctor_b = await add_user(repos, "dr.beta", Role.DOCTOR, beta.id)

    await add_patient(repos, "P-1", beta.id)
    await add_patient(repos, "P-2", beta.id)
    await add_patient(repos, "P-3", alpha.id)

    await add_feedback(repos, doctor_b.id, beta.id, 60.0)
    await add_feedback(repos, doctor_b.id, beta.id, 40.0)
    await add_feedback(repos, doctor_a.id, alpha.id, 90.0)

    for status in (RequestStatus.COMPLETED, RequestStatus.DENIED, RequestStatus.PENDING):
        await repos.requests.create(DataRequestEntity(
            requesting_user_id=doctor_a.id, requesting_hospital_id=alpha.id,
            patient_id="p", patient_external_id="P-1", patient_hospital_id=beta.id,
            data_type=DataType.LAB_RESULTS, status=status,
        ))

    own = await hospital_service.get_dashboard_stats(manager_b.id)
    assert own.hospital_id == beta.id
    assert own.hospital_name == "Beta Clinic"
    assert own.total_hospitals == 1
    assert own.total_patients == 2
    assert own.total_doctors == 1
    assert own.total_data_requests == 3
    assert own.pending_data_requests == 1
    assert own.average_tes == 50.0
    assert own.interoperability_success_rate == 50.0
    assert own.alerts_count == 1

    everything = await hospital_service.get_dashboard_stats(root.id)
    assert everything.hospital_id is None
    assert everything.total_hospitals == 2
    assert everything.total_patients == 3
    assert everything.total_doctors == 2
    assert everything.average_tes == 63.33
    assert everything.alerts_count == 1

    with pytest.raises(AuthorizationError):
        await hospital_service.get_dashboard_stats(staff_b.id)
