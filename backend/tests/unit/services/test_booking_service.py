"""
Unit tests for BookingService with mocked repositories.
"""

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from dive_platform.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from dive_platform.db.base import Booking, WaitingListEntry
from dive_platform.domain.enums import BookingStatus, NotificationType, TripStatus, UserRole
from dive_platform.schemas.bookings import BookingCreateRequest
from dive_platform.services.booking_service import BookingService
from dive_platform.utils.date_utils import utcnow
from tests.factories.mock_factories import make_actor
from tests.factories.repository_factories import (
    BookingRepositoryFactory,
    TripRepositoryFactory,
    UserRepositoryFactory,
)


def make_trip(**overrides):
    departure = utcnow() + timedelta(days=5)
    values = dict(
        id="trip-1",
        center_id="center-1",
        center=SimpleNamespace(owner_user_id="owner-1"),
        title_en="Reef dive",
        status=TripStatus.PUBLISHED.value,
        max_participants=10,
        current_participants=0,
        price_per_person_sar=Decimal("500"),
        equipment_rental_price_sar=None,
        conservation_fee_included=True,
        site_id=None,
        site=None,
        min_age=10,
        max_age=None,
        min_logged_dives=0,
        min_certification_level=None,
        cancellation_deadline_hours=24,
        departure_datetime=departure,
        meeting_point_en="Obhur marina",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_booking(**overrides):
    values = dict(
        id="booking-1",
        booking_number="BK250301-ABC123",
        trip_id="trip-1",
        user_id="diver-1",
        center_id="center-1",
        status=BookingStatus.PENDING.value,
        number_of_divers=2,
        total_amount=Decimal("1237.50"),
    )
    values.update(overrides)
    return Booking(**values)


@pytest.fixture
def trip():
    return make_trip()


@pytest.fixture
def booking_repo():
    return BookingRepositoryFactory.create_mock_full()


@pytest.fixture
def waitlist_repo():
    return BookingRepositoryFactory.create_waitlist_mock()


@pytest.fixture
def trip_repo(trip):
    repo = TripRepositoryFactory.create_mock_full()
    repo.get_by_id.return_value = trip
    repo.get_for_update.return_value = trip
    return repo


@pytest.fixture
def trip_service(trip_repo, trip):
    service = Mock()
    service.trip_repo = trip_repo
    service.get_trip.return_value = trip
    service.update_status_if_full.return_value = trip
    return service


@pytest.fixture
def center_service():
    service = Mock()
    service.has_center_access.return_value = False
    return service


@pytest.fixture
def user_repo():
    repo = UserRepositoryFactory.create_mock_full()
    repo.get_by_id.return_value = SimpleNamespace(
        id="diver-1", date_of_birth=date(1990, 1, 1), total_logged_dives=40
    )
    return repo


@pytest.fixture
def notifications():
    return Mock()


@pytest.fixture
def service(booking_repo, waitlist_repo, trip_service, center_service, user_repo, notifications):
    return BookingService(
        booking_repo,
        waitlist_repo,
        trip_service,
        center_service,
        user_repo,
        BookingRepositoryFactory.create_certification_mock(),
        notifications,
    )


@pytest.fixture
def diver():
    return make_actor(UserRole.DIVER.value, "diver-1")


class TestCreateBooking:
    def test_creates_priced_booking_and_reserves_spots(self, service, trip, booking_repo, diver):
        outcome = service.create_booking("trip-1", diver, BookingCreateRequest(number_of_divers=2))

        assert outcome.waitlisted is False
        booking = outcome.booking
        assert booking.status == BookingStatus.PENDING.value
        assert booking.total_amount == Decimal("1237.50")
        assert booking.base_price == Decimal("1000.00")
        assert booking.booking_number.startswith("BK")
        assert booking.parent_consent_required is False
        assert trip.current_participants == 2
        booking_repo.create_reserving_spots.assert_called_once()

    def test_notifies_diver_and_center_owner(self, service, notifications, diver):
        service.create_booking("trip-1", diver, BookingCreateRequest())

        recipients = [c.args[0] for c in notifications.notify.call_args_list]
        types = [c.args[1] for c in notifications.notify.call_args_list]
        assert recipients == ["diver-1", "owner-1"]
        assert types == [
            NotificationType.BOOKING_CONFIRMATION.value,
            NotificationType.NEW_BOOKING.value,
        ]

    def test_draft_trip_not_bookable(self, service, trip, diver):
        trip.status = TripStatus.DRAFT.value

        with pytest.raises(ValidationError, match="not open for booking"):
            service.create_booking("trip-1", diver, BookingCreateRequest())

    def test_not_enough_spots(self, service, trip, diver):
        trip.current_participants = 8

        with pytest.raises(ValidationError, match="Only 2 spots available"):
            service.create_booking("trip-1", diver, BookingCreateRequest(number_of_divers=3))

    def test_full_trip_goes_to_waitlist(self, service, trip, waitlist_repo, diver):
        trip.current_participants = 10
        trip.status = TripStatus.FULL.value
        waitlist_repo.next_position.return_value = 3

        outcome = service.create_booking("trip-1", diver, BookingCreateRequest(number_of_divers=1))

        assert outcome.waitlisted is True
        assert outcome.booking is None
        assert outcome.waitlist_entry.position == 3
        waitlist_repo.add.assert_called_once()

    def test_duplicate_active_booking(self, service, booking_repo, diver):
        booking_repo.find_active_for_user.return_value = make_booking()

        with pytest.raises(ConflictError):
            service.create_booking("trip-1", diver, BookingCreateRequest())

    def test_ineligible_diver(self, service, trip, diver):
        trip.min_logged_dives = 100

        with pytest.raises(ValidationError) as exc_info:
            service.create_booking("trip-1", diver, BookingCreateRequest())
        assert "Minimum 100 logged dives required" in exc_info.value.message

    def test_minor_requires_parent_consent(self, service, user_repo, diver):
        today = utcnow().date()
        user_repo.get_by_id.return_value = SimpleNamespace(
            id="diver-1",
            date_of_birth=date(today.year - 15, 1, 1),
            total_logged_dives=10,
        )

        outcome = service.create_booking("trip-1", diver, BookingCreateRequest())

        assert outcome.booking.parent_consent_required is True

    def test_regenerates_colliding_booking_number(self, service, booking_repo, diver):
        booking_repo.number_exists.side_effect = [True, False]

        service.create_booking("trip-1", diver, BookingCreateRequest())

        assert booking_repo.number_exists.call_count == 2


class TestAccess:
    def test_owner_can_read(self, service, booking_repo, diver):
        booking_repo.get_by_id.return_value = make_booking()

        assert service.get_booking("booking-1", diver).id == "booking-1"

    def test_stranger_forbidden(self, service, booking_repo):
        booking_repo.get_by_id.return_value = make_booking()

        with pytest.raises(ForbiddenError):
            service.get_booking("booking-1", make_actor(UserRole.DIVER.value, "other"))

    def test_center_staff_allowed(self, service, booking_repo, center_service):
        booking_repo.get_by_id.return_value = make_booking()
        center_service.has_center_access.return_value = True

        staff = make_actor(UserRole.CENTER_STAFF.value, "staff-1")
        assert service.get_booking("booking-1", staff).id == "booking-1"

    def test_missing_booking(self, service, diver):
        with pytest.raises(NotFoundError, match="Booking not found"):
            service.get_booking("nope", diver)


class TestLifecycle:
    def test_confirm_pending(self, service, booking_repo, owner_actor):
        booking_repo.get_by_id.return_value = make_booking()

        assert service.confirm_booking("booking-1", owner_actor).status == BookingStatus.CONFIRMED.value

    def test_confirm_rejects_non_pending(self, service, booking_repo, owner_actor):
        booking_repo.get_by_id.return_value = make_booking(status=BookingStatus.PAID.value)

        with pytest.raises(ValidationError):
            service.confirm_booking("booking-1", owner_actor)

    def test_cancel_with_full_refund(self, service, booking_repo, trip, diver, notifications):
        trip.departure_datetime = utcnow() + timedelta(hours=72)
        booking_repo.get_by_id.return_value = make_booking(status=BookingStatus.PAID.value)

        result = service.cancel_booking("booking-1", diver, "Change of plans")

        assert result["refund_amount"] == Decimal("1237.50")
        assert result["booking"].status == BookingStatus.CANCELLED.value
        assert result["booking"].cancelled_by == "diver-1"
        booking_repo.release_spots.assert_called_once()
        assert notifications.notify.call_args.args[1] == NotificationType.BOOKING_CANCELLED.value

    def test_cancel_inside_deadline_refunds_nothing(self, service, booking_repo, trip, diver):
        trip.departure_datetime = utcnow() + timedelta(hours=5)
        booking_repo.get_by_id.return_value = make_booking()

        result = service.cancel_booking("booking-1", diver, "Feeling unwell today")

        assert result["refund_amount"] == Decimal("0.00")

    def test_cancel_offers_spot_to_waitlist(self, service, booking_repo, waitlist_repo, trip, diver):
        booking_repo.get_by_id.return_value = make_booking()
        waitlist_repo.first_waiting.return_value = WaitingListEntry(
            trip_id="trip-1", user_id="waiting-1", position=1
        )

        service.cancel_booking("booking-1", diver, "Change of plans")

        offered = waitlist_repo.save.call_args.args[0]
        assert offered.user_id == "waiting-1"
        assert offered.expires_at > offered.notified_at

    def test_cannot_cancel_completed(self, service, booking_repo, diver):
        booking_repo.get_by_id.return_value = make_booking(status=BookingStatus.COMPLETED.value)

        with pytest.raises(ValidationError):
            service.cancel_booking("booking-1", diver, "Too late for this")

    def test_check_in_requires_paid_or_confirmed(self, service, booking_repo, owner_actor):
        booking_repo.get_by_id.return_value = make_booking()

        with pytest.raises(ValidationError):
            service.check_in("booking-1", owner_actor)

    def test_check_in(self, service, booking_repo, owner_actor):
        booking_repo.get_by_id.return_value = make_booking(status=BookingStatus.PAID.value)

        booking = service.check_in("booking-1", owner_actor)

        assert booking.status == BookingStatus.CHECKED_IN.value
        assert booking.checked_in_by == "owner-1"

    def test_only_owner_signs_waiver(self, service, booking_repo):
        booking_repo.get_by_id.return_value = make_booking()

        with pytest.raises(ForbiddenError):
            service.sign_waiver("booking-1", make_actor(UserRole.DIVER.value, "other"), "10.0.0.1")

    def test_sign_waiver(self, service, booking_repo, diver):
        booking_repo.get_by_id.return_value = make_booking()

        booking = service.sign_waiver("booking-1", diver, "10.0.0.1")

        assert booking.waiver_signed_at is not None
        assert booking.waiver_ip_address == "10.0.0.1"


class TestWaitingList:
    def test_join_twice_conflicts(self, service, waitlist_repo, diver):
        waitlist_repo.get_entry.return_value = WaitingListEntry(trip_id="trip-1", user_id="diver-1", position=1)

        with pytest.raises(ConflictError):
            service.join_waitlist("trip-1", diver)

    def test_leave_missing_entry(self, service, diver):
        with pytest.raises(NotFoundError):
            service.leave_waitlist("trip-1", diver)

    def test_no_offer_when_trip_still_full(self, service, trip, waitlist_repo):
        trip.current_participants = trip.max_participants

        assert service.offer_spot("trip-1") is None
        waitlist_repo.first_waiting.assert_not_called()

    def test_expire_offers_passes_spot_on(self, service, waitlist_repo, trip):
        stale = WaitingListEntry(trip_id="trip-1", user_id="late-1", position=1)
        waitlist_repo.list_expired_offers.return_value = [stale]

        assert service.expire_waitlist_offers() == 1
        waitlist_repo.remove.assert_called_once_with(stale)
        waitlist_repo.first_waiting.assert_called_once_with("trip-1")


class TestReminders:
    def test_reminds_each_paid_booking(self, service, trip_repo, booking_repo, trip, notifications):
        trip_repo.list_departing_between.return_value = [trip]
        booking_repo.list_by_status.return_value = [make_booking(), make_booking(user_id="diver-2")]

        assert service.send_trip_reminders() == 2
        assert notifications.notify.call_count == 2
        assert notifications.notify.call_args.args[1] == NotificationType.TRIP_REMINDER.value
