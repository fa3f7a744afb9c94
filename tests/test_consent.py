from datetime import datetime, timedelta

import pytest

from scis_exchange.core.config import ConsentConfig
from scis_exchange.core.exceptions import AuthorizationError, NotFoundError
from scis_exchange.domains.consent.services.consent_service import ConsentService
from scis_exchange.domains.endpoint.models.endpoint import DataType


@pytest.mark.asyncio
async def test_no_decision_on_file_is_none(consent_service):
    assert await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS) is None


@pytest.mark.asyncio
async def test_grant_is_found_with_default_expiry(consent_service):
    before = datetime.utcnow()
    consent = await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)

    found = await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS)
    assert found is not None
    assert found.id == consent.id
    assert found.is_consented
    assert consent.expiry_date >= before + timedelta(days=364)


@pytest.mark.asyncio
async def test_recorded_denial_is_distinct_from_absence(consent_service):
    await consent_service.deny("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)

    found = await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS)
    assert found is not None
    assert found.is_consented is False
    assert found.expiry_date is None


@pytest.mark.asyncio
async def test_lookup_is_scoped_to_the_full_tuple(consent_service):
    await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)

    assert await consent_service.get_active_consent("patient-1", "hospital-b", DataType.LAB_RESULTS) is None
    assert await consent_service.get_active_consent("patient-1", "hospital-a", DataType.MEDICATIONS) is None
    assert await consent_service.get_active_consent("patient-2", "hospital-a", DataType.LAB_RESULTS) is None


@pytest.mark.asyncio
async def test_expired_grant_counts_as_absent(consent_service):
    await consent_service.grant(
        "patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS,
        expiry_date=datetime.utcnow() - timedelta(days=1)
    )
    assert await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS) is None

    [listed] = await consent_service.list_for_patient("patient-1")
    assert listed.is_expired is True


@pytest.mark.asyncio
async def test_lookup_honours_the_given_instant(consent_service):
    expiry = datetime.utcnow() + timedelta(days=10)
    await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS, expiry_date=expiry)

    later = expiry + timedelta(seconds=1)
    assert await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS, now=later) is None


@pytest.mark.asyncio
async def test_new_decision_supersedes_previous_one(repos, consent_service):
    await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)
    denial = await consent_service.deny("patient-1", "user-2", "hospital-a", DataType.LAB_RESULTS)

    found = await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS)
    assert found.id == denial.id
    assert await repos.consents.count_for_tuple("patient-1", "hospital-a", DataType.LAB_RESULTS) == 2
    assert await repos.consents.count_for_tuple(
        "patient-1", "hospital-a", DataType.LAB_RESULTS, active_only=True
    ) == 1


@pytest.mark.asyncio
async def test_revoke_leaves_no_decision(consent_service):
    consent = await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)

    revoked = await consent_service.revoke(consent.id, notes="Patient withdrew")
    assert revoked.is_active is False
    assert revoked.notes == "Patient withdrew"
    assert await consent_service.get_active_consent("patient-1", "hospital-a", DataType.LAB_RESULTS) is None


@pytest.mark.asyncio
async def test_revoke_unknown_consent(consent_service):
    with pytest.raises(NotFoundError):
        await consent_service.revoke("missing")


@pytest.mark.asyncio
async def test_zero_validity_means_no_expiry(repos):
    service = ConsentService(repos.consents, ConsentConfig(default_validity_days=0))
    consent = await service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)
    assert consent.expiry_date is None


@pytest.mark.asyncio
async def test_list_for_patient_hides_superseded_by_default(consent_service):
    await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)
    await consent_service.deny("patient-1", "user-1", "hospital-a", DataType.LAB_RESULTS)
    await consent_service.grant("patient-1", "user-1", "hospital-a", DataType.ALLERGIES)

    active = await consent_service.list_for_patient("patient-1")
    everything = await consent_service.list_for_patient("patient-1", include_inactive=True)

    assert len(active) == 2
    assert len(everything) == 3


@pytest.mark.asyncio
async def test_patient_hospital_may_record_a_decision(consent_service, world):
    consent = await consent_service.record_decision_as(
        world.manager_b.id, world.patient_b.id, world.hospital_a.id, DataType.LAB_RESULTS, True
    )
    assert consent.requesting_user_id == world.manager_b.id
    assert await consent_service.get_active_consent(
        world.patient_b.id, world.hospital_a.id, DataType.LAB_RESULTS
    ) is not None


@pytest.mark.asyncio
async def test_requesting_hospital_cannot_grant_itself_consent(consent_service, world):
    with pytest.raises(AuthorizationError):
        await consent_service.record_decision_as(
            world.doctor_a.id, world.patient_b.id, world.hospital_a.id, DataType.LAB_RESULTS, True
        )
    assert await consent_service.get_active_consent(
        world.patient_b.id, world.hospital_a.id, DataType.LAB_RESULTS
    ) is None


@pytest.mark.asyncio
async def test_system_manager_may_record_a_decision(consent_service, world):
    consent = await consent_service.record_decision_as(
        world.system_manager.id, world.patient_b.id, world.hospital_a.id, DataType.ALLERGIES, False
    )
    assert consent.is_consented is False


@pytest.mark.asyncio
async def test_decision_needs_known_patient_and_hospital(consent_service, world):
    with pytest.raises(NotFoundError):
        await consent_service.record_decision_as(
            world.manager_b.id, "missing", world.hospital_a.id, DataType.LAB_RESULTS, True
        )
    with pytest.raises(NotFoundError):
        await consent_service.record_decision_as(
            world.manager_b.id, world.patient_b.id, "missing", DataType.LAB_RESULTS, True
        )


@pytest.mark.asyncio
async def test_only_patient_hospital_may_revoke(consent_service, world):
    consent = await consent_service.grant(
        world.patient_b.id, world.manager_b.id, world.hospital_a.id, DataType.LAB_RESULTS
    )

    with pytest.raises(AuthorizationError):
        await consent_service.revoke_as(world.doctor_a.id, consent.id)

    revoked = await consent_service.revoke_as(world.manager_b.id, consent.id, "Patient withdrew")
    assert revoked.is_active is False
