"""
Booking lifecycle and the per-trip waiting list.

Capacity changes load the trip with a row lock and commit the booking and
``current_participants`` together, so concurrent bookings cannot oversell.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dive_platform.core import config
from dive_platform.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from dive_platform.db.base import Booking, Trip, WaitingListEntry
from dive_platform.domain.entities import EligibilityResult, PriceBreakdown
from dive_platform.domain.enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    NotificationChannel,
    NotificationType,
    TripStatus,
    UserRole,
)
from dive_platform.domain.interfaces import IBookingRepository, IUserRepository
from dive_platform.domain.policies import calculate_booking_price, calculate_refund, check_eligibility
from dive_platform.repositories.booking_repository import WaitingListRepository
from dive_platform.repositories.instructor_repository import CertificationRepository
from dive_platform.schemas.bookings import BookingCreateRequest
from dive_platform.services.center_service import CenterService
from dive_platform.services.notification_service import NotificationService
from dive_platform.services.trip_service import TripService
from dive_platform.utils.date_utils import hours_until, is_minor, utcnow
from dive_platform.utils.pagination import offset_for, paginate
from dive_platform.utils.text_utils import generate_booking_number

logger = logging.getLogger(__name__)

BOOKABLE_TRIP_STATUSES = (TripStatus.PUBLISHED.value, TripStatus.FULL.value)
LOCKED_BOOKING_STATUSES = (
    BookingStatus.CANCELLED.value,
    BookingStatus.REFUNDED.value,
    BookingStatus.COMPLETED.value,
)
CHECK_IN_STATUSES = (BookingStatus.PAID.value, BookingStatus.CONFIRMED.value)


@dataclass
class BookingOutcome:
    """Result of a booking request: a booking, or a place on the waiting list."""

    booking: Optional[Booking] = None
    waitlist_entry: Optional[WaitingListEntry] = None

    @property
    def waitlisted(self) -> bool:
        return self.waitlist_entry is not None


class BookingService:
    def __init__(
        self,
        booking_repo: IBookingRepository,
        waitlist_repo: WaitingListRepository,
        trip_service: TripService,
        center_service: CenterService,
        user_repo: IUserRepository,
        certification_repo: CertificationRepository,
        notification_service: NotificationService,
    ):
        self.booking_repo = booking_repo
        self.waitlist_repo = waitlist_repo
        self.trip_service = trip_service
        self.trip_repo = trip_service.trip_repo
        self.center_service = center_service
        self.user_repo = user_repo
        self.certification_repo = certification_repo
        self.notifications = notification_service

    # ------------------- Quotes & eligibility -------------------

    def price_quote(self, trip_id: str, number_of_divers: int, needs_equipment: bool) -> PriceBreakdown:
        trip = self.trip_service.get_trip(trip_id)
        return calculate_booking_price(trip, number_of_divers, needs_equipment)

    def _load_user(self, user_id: str):
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    def _eligibility(self, trip: Trip, user) -> EligibilityResult:
        return check_eligibility(trip, user, self.certification_repo.verified_levels(user.id))

    def check_eligibility(self, trip_id: str, user_id: str) -> EligibilityResult:
        trip = self.trip_service.get_trip(trip_id)
        return self._eligibility(trip, self._load_user(user_id))

    # ------------------- Create -------------------

    def _new_booking_number(self) -> str:
        number = generate_booking_number()
        while self.booking_repo.number_exists(number):
            number = generate_booking_number()
        return number

    def create_booking(self, trip_id: str, actor, request: BookingCreateRequest) -> BookingOutcome:
        self.trip_service.get_trip(trip_id)
        trip = self.trip_repo.get_for_update(trip_id)
        if trip.status not in BOOKABLE_TRIP_STATUSES:
            raise ValidationError("Trip is not open for booking")

        available = trip.max_participants - (trip.current_participants or 0)
        if request.number_of_divers > available:
            if trip.status == TripStatus.FULL.value or available <= 0:
                entry = self.join_waitlist(trip_id, actor, request.number_of_divers)
                return BookingOutcome(waitlist_entry=entry)
            raise ValidationError(f"Only {available} spots available")

        if self.booking_repo.find_active_for_user(trip_id, actor.id) is not None:
            raise ConflictError("You already have an active booking for this trip")

        user = self._load_user(actor.id)
        eligibility = self._eligibility(trip, user)
        if not eligibility.eligible:
            raise ValidationError(f"Not eligible for this trip: {'; '.join(eligibility.reasons)}")

        price = calculate_booking_price(trip, request.number_of_divers, request.needs_equipment)
        booking = Booking(
            booking_number=self._new_booking_number(),
            trip_id=trip.id,
            user_id=actor.id,
            center_id=trip.center_id,
            status=BookingStatus.PENDING.value,
            number_of_divers=request.number_of_divers,
            base_price=price.base_price,
            equipment_rental=price.equipment_rental,
            conservation_fee=price.conservation_fee,
            insurance_fee=price.insurance_fee,
            platform_fee=price.platform_fee,
            vat_amount=price.vat_amount,
            discount_amount=price.discount_amount,
            total_amount=price.total_amount,
            currency=price.currency,
            special_requests=request.special_requests,
            dietary_requirements=request.dietary_requirements,
            equipment_sizes=request.equipment_sizes,
            parent_consent_required=is_minor(user.date_of_birth),
            refund_amount=Decimal("0.00"),
        )
        booking = self.booking_repo.create_reserving_spots(booking, trip)
        self.trip_service.update_status_if_full(trip.id)
        logger.info(
            "Booking created",
            extra={
                "context": {
                    "booking_id": booking.id,
                    "trip_id": trip.id,
                    "divers": booking.number_of_divers,
                }
            },
        )

        data = {
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "trip_id": trip.id,
            "trip_title": trip.title_en,
            "departure": f"{trip.departure_datetime:%Y-%m-%d %H:%M}",
            "total_amount": str(booking.total_amount),
        }
        self.notifications.notify(
            actor.id,
            NotificationType.BOOKING_CONFIRMATION.value,
            "Booking received",
            f"Your booking {booking.booking_number} was received.",
            data=data,
            channels=[NotificationChannel.IN_APP.value],
        )
        if trip.center is not None:
            self.notifications.notify(
                trip.center.owner_user_id,
                NotificationType.NEW_BOOKING.value,
                "New booking",
                f"{booking.number_of_divers} diver(s) booked {trip.title_en}.",
                data=data,
                channels=[NotificationChannel.IN_APP.value],
            )
        return BookingOutcome(booking=booking)

    # ------------------- Read -------------------

    def _get(self, booking_id: str) -> Booking:
        booking = self.booking_repo.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        return booking

    def _is_center_side(self, booking: Booking, actor) -> bool:
        return self.center_service.has_center_access(booking.center_id, actor)

    def _check_access(self, booking: Booking, actor) -> None:
        if booking.user_id == actor.id or actor.role == UserRole.ADMIN.value:
            return
        if not self._is_center_side(booking, actor):
            raise ForbiddenError("Not authorized to access this booking")

    def get_booking(self, booking_id: str, actor) -> Booking:
        booking = self._get(booking_id)
        self._check_access(booking, actor)
        return booking

    def my_bookings(self, user_id: str, status: Optional[str], page: int, limit: int) -> Dict[str, Any]:
        items, total = self.booking_repo.list_for_user(user_id, status, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)

    def trip_bookings(
        self, trip_id: str, actor, status: Optional[str], page: int, limit: int
    ) -> Dict[str, Any]:
        trip = self.trip_service.get_trip(trip_id)
        self.center_service.verify_center_access(trip.center_id, actor)
        items, total = self.booking_repo.list_for_trip(trip_id, status, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)

    # ------------------- Changes -------------------

    def update_booking(self, booking_id: str, actor, changes: Dict[str, Any]) -> Booking:
        booking = self.get_booking(booking_id, actor)
        if booking.status in LOCKED_BOOKING_STATUSES:
            raise ValidationError("Cannot update a cancelled, refunded or completed booking")
        for key, value in changes.items():
            setattr(booking, key, value)
        return self.booking_repo.save(booking)

    def confirm_booking(self, booking_id: str, actor) -> Booking:
        booking = self._get(booking_id)
        self.center_service.verify_center_access(booking.center_id, actor)
        if booking.status != BookingStatus.PENDING.value:
            raise ValidationError("Only pending bookings can be confirmed")
        booking.status = BookingStatus.CONFIRMED.value
        booking = self.booking_repo.save(booking)
        logger.info("Booking confirmed", extra={"context": {"booking_id": booking.id}})
        return booking

    def cancel_booking(self, booking_id: str, actor, reason: str) -> Dict[str, Any]:
        booking = self.get_booking(booking_id, actor)
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            raise ValidationError("Only pending, confirmed or paid bookings can be cancelled")

        trip = self.trip_repo.get_for_update(booking.trip_id)
        refund = calculate_refund(
            booking.total_amount,
            hours_until(trip.departure_datetime),
            trip.cancellation_deadline_hours,
        )
        booking.status = BookingStatus.CANCELLED.value
        booking.cancellation_reason = reason
        booking.cancelled_at = utcnow()
        booking.cancelled_by = actor.id
        booking.refund_amount = refund
        booking = self.booking_repo.release_spots(booking, trip)
        trip = self.trip_service.update_status_if_full(trip.id) or trip
        logger.info(
            "Booking cancelled",
            extra={"context": {"booking_id": booking.id, "refund_amount": str(refund)}},
        )

        self._offer_spot(trip)
        self.notifications.notify(
            booking.user_id,
            NotificationType.BOOKING_CANCELLED.value,
            "Booking cancelled",
            f"Booking {booking.booking_number} was cancelled.",
            data={
                "booking_id": booking.id,
                "booking_number": booking.booking_number,
                "trip_title": trip.title_en,
                "refund_amount": str(refund) if refund else "",
            },
        )
        return {"booking": booking, "refund_amount": refund}

    def check_in(self, booking_id: str, actor) -> Booking:
        booking = self._get(booking_id)
        self.center_service.verify_center_access(booking.center_id, actor)
        if booking.status not in CHECK_IN_STATUSES:
            raise ValidationError("Only paid or confirmed bookings can be checked in")
        booking.status = BookingStatus.CHECKED_IN.value
        booking.checked_in_at = utcnow()
        booking.checked_in_by = actor.id
        return self.booking_repo.save(booking)

    def sign_waiver(self, booking_id: str, actor, ip_address: Optional[str]) -> Booking:
        booking = self._get(booking_id)
        if booking.user_id != actor.id:
            raise ForbiddenError("Only the booking owner can sign the waiver")
        booking.waiver_signed_at = utcnow()
        booking.waiver_ip_address = ip_address
        return self.booking_repo.save(booking)

    # ------------------- Waiting list -------------------

    def _offer_spot(self, trip: Trip) -> Optional[WaitingListEntry]:
        """Offer freed capacity to the head of the waiting list."""
        if trip.max_participants - (trip.current_participants or 0) <= 0:
            return None
        entry = self.waitlist_repo.first_waiting(trip.id)
        if entry is None:
            return None
        now = utcnow()
        entry.notified_at = now
        entry.expires_at = now + timedelta(hours=config.WAITLIST_OFFER_HOURS)
        entry = self.waitlist_repo.save(entry)
        self.notifications.notify(
            entry.user_id,
            NotificationType.WAITLIST_AVAILABLE.value,
            "A spot opened up",
            f"A spot is available on {trip.title_en}.",
            data={
                "trip_id": trip.id,
                "trip_title": trip.title_en,
                "expires_at": f"{entry.expires_at:%Y-%m-%d %H:%M} UTC",
            },
            channels=[
                NotificationChannel.PUSH.value,
                NotificationChannel.EMAIL.value,
                NotificationChannel.IN_APP.value,
            ],
        )
        return entry

    def offer_spot(self, trip_id: str) -> Optional[WaitingListEntry]:
        return self._offer_spot(self.trip_service.get_trip(trip_id))

    def join_waitlist(self, trip_id: str, actor, number_of_divers: int = 1) -> WaitingListEntry:
        self.trip_service.get_trip(trip_id)
        if self.waitlist_repo.get_entry(trip_id, actor.id) is not None:
            raise ConflictError("You are already on the waiting list for this trip")
        entry = WaitingListEntry(
            trip_id=trip_id,
            user_id=actor.id,
            number_of_divers=number_of_divers,
            position=self.waitlist_repo.next_position(trip_id),
        )
        entry = self.waitlist_repo.add(entry)
        logger.info(
            "Joined waiting list",
            extra={"context": {"trip_id": trip_id, "user_id": actor.id, "position": entry.position}},
        )
        return entry

    def leave_waitlist(self, trip_id: str, actor) -> None:
        entry = self.waitlist_repo.get_entry(trip_id, actor.id)
        if entry is None:
            raise NotFoundError("Waiting list entry")
        self.waitlist_repo.remove(entry)

    def get_waitlist(self, trip_id: str, actor) -> List[WaitingListEntry]:
        trip = self.trip_service.get_trip(trip_id)
        self.center_service.verify_center_access(trip.center_id, actor)
        return self.waitlist_repo.list_for_trip(trip_id)

    def expire_waitlist_offers(self) -> int:
        """Drop offers nobody took up in time and pass the spot on."""
        expired = self.waitlist_repo.list_expired_offers(utcnow())
        trip_ids = set()
        for entry in expired:
            trip_ids.add(entry.trip_id)
            self.waitlist_repo.remove(entry)
        for trip_id in trip_ids:
            trip = self.trip_repo.get_by_id(trip_id)
            if trip is not None and trip.status in BOOKABLE_TRIP_STATUSES:
                self._offer_spot(trip)
        return len(expired)

    def send_trip_reminders(self, now: Optional[datetime] = None) -> int:
        """Remind divers with paid or confirmed bookings whose trip departs in 24-25 hours."""
        now = now or utcnow()
        start_hours, end_hours = config.TRIP_REMINDER_WINDOW_HOURS
        trips = self.trip_repo.list_departing_between(
            now + timedelta(hours=start_hours),
            now + timedelta(hours=end_hours),
            list(BOOKABLE_TRIP_STATUSES),
        )
        sent = 0
        for trip in trips:
            for booking in self.booking_repo.list_by_status(trip.id, CHECK_IN_STATUSES):
                self.notifications.notify(
                    booking.user_id,
                    NotificationType.TRIP_REMINDER.value,
                    "Trip reminder",
                    f"{trip.title_en} departs tomorrow.",
                    data={
                        "trip_id": trip.id,
                        "trip_title": trip.title_en,
                        "booking_number": booking.booking_number,
                        "departure": f"{trip.departure_datetime:%Y-%m-%d %H:%M}",
                        "meeting_point": trip.meeting_point_en or "",
                    },
                    channels=[NotificationChannel.PUSH.value, NotificationChannel.EMAIL.value],
                )
                sent += 1
        logger.info("Trip reminders sent", extra={"context": {"trips": len(trips), "bookings": sent}})
        return sent
