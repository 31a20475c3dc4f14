"""
Booking lifecycle through the API: book, fill the trip, waitlist, cancel.
"""

import pytest
from sqlalchemy import select, update

from dive_platform.db.base import Booking, Trip, WaitingListEntry
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import TripStatus, UserRole
from dive_platform.schemas.bookings import BookingCreateRequest
from dive_platform.services.container import build_booking_service
from tests.factories.model_factories import (
    create_booking,
    create_center,
    create_certification,
    create_trip,
    create_user,
)


@pytest.fixture
def owner(db_session):
    return create_user(db_session, role=UserRole.CENTER_OWNER.value)


@pytest.fixture
def trip(db_session, owner):
    return create_trip(db_session, create_center(db_session, owner), max_participants=2)


def _book(client, api_prefix, trip, user, auth_headers, **payload):
    return client.post(
        f"{api_prefix}/trips/{trip.id}/bookings", json=payload, headers=auth_headers(user)
    )


def test_public_trip_listing(client, api_prefix, db_session, trip, response_helper):
    body = response_helper.assert_json_response(client.get(f"{api_prefix}/trips"))

    assert [item["id"] for item in body["data"]] == [trip.id]
    assert body["pagination"]["total"] == 1


def test_price_quote_is_public(client, api_prefix, db_session, trip, response_helper):
    response = client.post(f"{api_prefix}/trips/{trip.id}/price", json={"number_of_divers": 2})

    quote = response_helper.assert_json_response(response)["data"]
    assert quote["base_price"] == 1000.0
    assert quote["total_amount"] > quote["base_price"]


def test_fill_trip_then_waitlist(client, api_prefix, db_session, trip, auth_headers, response_helper):
    first, second = create_user(db_session), create_user(db_session)

    booked = response_helper.assert_json_response(
        _book(client, api_prefix, trip, first, auth_headers, number_of_divers=2), 201
    )["data"]
    assert booked["status"] == "pending"
    assert booked["booking_number"].startswith("BK")

    db_session.expire_all()
    refreshed = db_session.get(Trip, trip.id)
    assert refreshed.current_participants == 2
    assert refreshed.status == TripStatus.FULL.value

    waitlisted = response_helper.assert_json_response(
        _book(client, api_prefix, trip, second, auth_headers), 202
    )["data"]
    assert waitlisted["waiting_list"] is True
    assert waitlisted["position"] == 1


def test_too_many_divers_for_open_trip(client, api_prefix, db_session, trip, auth_headers, response_helper):
    error = response_helper.assert_error(
        _book(client, api_prefix, trip, create_user(db_session), auth_headers, number_of_divers=3),
        400,
    )

    assert error["message"] == "Only 2 spots available"


def test_second_active_booking_conflicts(client, api_prefix, db_session, trip, auth_headers, response_helper):
    diver = create_user(db_session)
    _book(client, api_prefix, trip, diver, auth_headers)

    response_helper.assert_error(_book(client, api_prefix, trip, diver, auth_headers), 409)


def test_certification_requirement(client, api_prefix, db_session, owner, auth_headers, response_helper):
    trip = create_trip(
        db_session,
        create_center(db_session, owner),
        min_certification_level="Advanced Open Water",
    )
    diver = create_user(db_session)
    create_certification(db_session, diver, level="Open Water")

    eligibility = response_helper.assert_json_response(
        client.get(f"{api_prefix}/trips/{trip.id}/eligibility", headers=auth_headers(diver))
    )["data"]
    assert eligibility["eligible"] is False

    error = response_helper.assert_error(_book(client, api_prefix, trip, diver, auth_headers), 400)
    assert error["message"].startswith("Not eligible for this trip")


def test_cancel_frees_spot_and_offers_it(client, api_prefix, db_session, trip, auth_headers, response_helper):
    first, second = create_user(db_session), create_user(db_session)
    booking_id = response_helper.assert_json_response(
        _book(client, api_prefix, trip, first, auth_headers, number_of_divers=2), 201
    )["data"]["id"]
    _book(client, api_prefix, trip, second, auth_headers)

    response = client.post(
        f"{api_prefix}/trips/bookings/{booking_id}/cancel",
        json={"reason": "Family emergency, sorry"},
        headers=auth_headers(first),
    )

    data = response_helper.assert_json_response(response)["data"]
    assert data["booking"]["status"] == "cancelled"
    assert data["refund_amount"] > 0
    db_session.expire_all()
    assert db_session.get(Trip, trip.id).current_participants == 0
    entry = db_session.execute(
        select(WaitingListEntry).where(WaitingListEntry.user_id == second.id)
    ).scalars().first()
    assert entry.notified_at is not None
    assert entry.expires_at is not None


def test_owner_sees_trip_bookings_but_diver_does_not(
    client, api_prefix, db_session, trip, owner, auth_headers, response_helper
):
    diver = create_user(db_session)
    create_booking(db_session, trip, diver)

    listed = response_helper.assert_json_response(
        client.get(f"{api_prefix}/trips/{trip.id}/bookings", headers=auth_headers(owner))
    )
    assert len(listed["data"]) == 1

    response_helper.assert_error(
        client.get(f"{api_prefix}/trips/{trip.id}/bookings", headers=auth_headers(diver)), 403
    )


def test_head_count_is_reread_under_lock(db_session, trip):
    diver = create_user(db_session)
    # the request's session already holds the trip with 0 participants
    assert db_session.get(Trip, trip.id).current_participants == 0

    other = SessionLocal()
    try:
        other.execute(update(Trip).where(Trip.id == trip.id).values(current_participants=2))
        other.commit()
    finally:
        other.close()

    outcome = build_booking_service(db_session).create_booking(
        trip.id, diver, BookingCreateRequest(number_of_divers=2)
    )

    assert outcome.waitlisted
    assert outcome.booking is None
    assert db_session.execute(select(Booking)).scalars().all() == []
    db_session.expire_all()
    assert db_session.get(Trip, trip.id).current_participants == 2
