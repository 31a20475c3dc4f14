"""Diver certification cards and the admin verification that unlocks bookings."""

import pytest
from sqlalchemy import select

from dive_platform.db.base import Certification, Notification, SyncTombstone
from dive_platform.domain.enums import NotificationType, UserRole, VerificationStatus
from tests.factories.model_factories import (
    create_center,
    create_certification,
    create_trip,
    create_user,
)

ADVANCED = {"agency": "PADI", "certification_level": "Advanced Open Water", "certification_number": "AOW-2231"}


@pytest.fixture
def diver(db_session):
    return create_user(db_session)


@pytest.fixture
def admin(db_session):
    return create_user(db_session, role=UserRole.ADMIN.value)


def _submit(client, api_prefix, headers, payload=ADVANCED):
    return client.post(f"{api_prefix}/certifications", json=payload, headers=headers)


def test_verified_card_unlocks_trip(client, api_prefix, db_session, diver, admin, auth_headers, response_helper):
    owner = create_user(db_session, role=UserRole.CENTER_OWNER.value)
    trip = create_trip(
        db_session, create_center(db_session, owner), min_certification_level="Advanced Open Water"
    )
    cert = response_helper.assert_json_response(
        _submit(client, api_prefix, auth_headers(diver)), 201
    )["data"]
    assert cert["verification_status"] == "pending"

    # pending cards do not count towards eligibility
    blocked = client.post(f"{api_prefix}/trips/{trip.id}/bookings", json={}, headers=auth_headers(diver))
    response_helper.assert_error(blocked, 400)

    queue = response_helper.assert_json_response(
        client.get(f"{api_prefix}/certifications/pending", headers=auth_headers(admin))
    )
    assert [row["id"] for row in queue["data"]] == [cert["id"]]

    reviewed = response_helper.assert_json_response(
        client.post(
            f"{api_prefix}/certifications/{cert['id']}/verify",
            json={"status": "verified", "notes": "Card checked against PADI records"},
            headers=auth_headers(admin),
        )
    )["data"]
    assert reviewed["verification_status"] == "verified"
    assert reviewed["verified_at"] is not None

    booked = client.post(f"{api_prefix}/trips/{trip.id}/bookings", json={}, headers=auth_headers(diver))
    response_helper.assert_json_response(booked, 201)

    notice = db_session.execute(
        select(Notification).where(
            Notification.user_id == diver.id,
            Notification.type == NotificationType.CERTIFICATION_VERIFIED.value,
        )
    ).scalars().first()
    assert notice is not None


def test_reject(client, api_prefix, db_session, diver, admin, auth_headers, response_helper):
    cert = create_certification(db_session, diver, verification_status=VerificationStatus.PENDING.value)

    reviewed = response_helper.assert_json_response(
        client.post(
            f"{api_prefix}/certifications/{cert.id}/verify",
            json={"status": "rejected", "notes": "Number does not match"},
            headers=auth_headers(admin),
        )
    )["data"]

    assert reviewed["verification_status"] == "rejected"
    assert reviewed["verification_notes"] == "Number does not match"


def test_edit_sends_card_back_to_queue(client, api_prefix, db_session, diver, auth_headers, response_helper):
    cert = create_certification(db_session, diver, level="Open Water")

    updated = response_helper.assert_json_response(
        client.patch(
            f"{api_prefix}/certifications/{cert.id}",
            json={"certification_level": "Divemaster"},
            headers=auth_headers(diver),
        )
    )["data"]

    assert updated["certification_level"] == "Divemaster"
    assert updated["verification_status"] == "pending"
    assert updated["verified_at"] is None


def test_list_and_delete_own(client, api_prefix, db_session, diver, auth_headers, response_helper):
    cert = create_certification(db_session, diver)
    create_certification(db_session, create_user(db_session))
    headers = auth_headers(diver)

    listed = response_helper.assert_json_response(client.get(f"{api_prefix}/certifications", headers=headers))
    assert [row["id"] for row in listed["data"]] == [cert.id]

    response_helper.assert_json_response(client.delete(f"{api_prefix}/certifications/{cert.id}", headers=headers))

    db_session.expire_all()
    assert db_session.get(Certification, cert.id) is None
    tombstone = db_session.execute(
        select(SyncTombstone).where(SyncTombstone.entity_id == cert.id)
    ).scalars().first()
    assert tombstone.entity_type == "certifications"


def test_someone_elses_card_is_missing(client, api_prefix, db_session, diver, auth_headers, response_helper):
    cert = create_certification(db_session, create_user(db_session))

    error = response_helper.assert_error(
        client.delete(f"{api_prefix}/certifications/{cert.id}", headers=auth_headers(diver)), 404
    )

    assert error["message"] == "Certification not found"


def test_diver_cannot_verify(client, api_prefix, db_session, diver, auth_headers, response_helper):
    cert = create_certification(db_session, diver, verification_status=VerificationStatus.PENDING.value)

    response = client.post(
        f"{api_prefix}/certifications/{cert.id}/verify",
        json={"status": "verified"},
        headers=auth_headers(diver),
    )

    response_helper.assert_error(response, 403, "FORBIDDEN")


def test_verify_needs_a_decision(client, api_prefix, db_session, diver, admin, auth_headers, response_helper):
    cert = create_certification(db_session, diver, verification_status=VerificationStatus.PENDING.value)

    response = client.post(
        f"{api_prefix}/certifications/{cert.id}/verify",
        json={"status": "pending"},
        headers=auth_headers(admin),
    )

    error = response_helper.assert_error(response, 400, "VALIDATION_ERROR")
    assert "status" in error["details"]


def test_unknown_level_rejected(client, api_prefix, db_session, diver, auth_headers, response_helper):
    response = _submit(
        client, api_prefix, auth_headers(diver), {"agency": "PADI", "certification_level": "Aquanaut"}
    )

    error = response_helper.assert_error(response, 400, "VALIDATION_ERROR")
    assert "certification_level" in error["details"]
