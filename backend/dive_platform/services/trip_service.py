import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from dive_platform.core.exceptions import ConflictError, NotFoundError, ValidationError
from dive_platform.db.base import Trip, TripInstructor
from dive_platform.domain.enums import BookingStatus, NotificationType, TripStatus, UserRole
from dive_platform.domain.interfaces import ITripRepository, IUserRepository
from dive_platform.repositories.booking_repository import BookingRepository
from dive_platform.repositories.trip_repository import TripFilters
from dive_platform.schemas.trips import check_trip_rules
from dive_platform.services.center_service import CenterService
from dive_platform.services.notification_service import NotificationService
from dive_platform.utils.date_utils import utcnow
from dive_platform.utils.pagination import offset_for, paginate

logger = logging.getLogger(__name__)

TRIP_CANCELLED_REASON = "Trip was cancelled by the center"
INSTRUCTOR_ROLES = (
    UserRole.INSTRUCTOR.value,
    UserRole.CENTER_OWNER.value,
    UserRole.CENTER_STAFF.value,
)
CLOSED_STATUSES = (TripStatus.CANCELLED.value, TripStatus.COMPLETED.value)
RULE_FIELDS = (
    "departure_datetime",
    "return_datetime",
    "max_participants",
    "min_participants",
    "min_age",
    "max_age",
)


class TripService:
    def __init__(
        self,
        trip_repo: ITripRepository,
        booking_repo: BookingRepository,
        center_service: CenterService,
        user_repo: IUserRepository,
        notification_service: NotificationService,
    ):
        self.trip_repo = trip_repo
        self.booking_repo = booking_repo
        self.center_service = center_service
        self.user_repo = user_repo
        self.notifications = notification_service

    def list_trips(self, filters: TripFilters, page: int, limit: int) -> Dict[str, Any]:
        # Public listing only shows bookable trips unless asked otherwise
        if not filters.center_id and not filters.status:
            filters.status = TripStatus.PUBLISHED.value
        items, total = self.trip_repo.search(filters, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)

    def get_trip(self, trip_id: str) -> Trip:
        trip = self.trip_repo.get_by_id(trip_id)
        if trip is None:
            raise NotFoundError("Trip")
        return trip

    def _check_vessel(self, center_id: str, vessel_id: Optional[str]) -> None:
        if vessel_id and self.center_service.vessel_repo.get(center_id, vessel_id) is None:
            raise ValidationError(
                "Validation failed", {"vessel_id": "Vessel does not belong to this center"}
            )

    def create_trip(self, center_id: str, actor, values: Dict[str, Any]) -> Trip:
        self.center_service.verify_ownership(center_id, actor)
        self._check_vessel(center_id, values.get("vessel_id"))
        trip = Trip(center_id=center_id, **values)
        trip.status = TripStatus.DRAFT.value
        trip.current_participants = 0
        trip = self.trip_repo.create(trip)
        logger.info(
            "Trip created",
            extra={"context": {"trip_id": trip.id, "center_id": center_id}},
        )
        return trip

    def update_trip(self, trip_id: str, actor, changes: Dict[str, Any]) -> Trip:
        trip = self.get_trip(trip_id)
        self.center_service.verify_center_access(trip.center_id, actor)
        if trip.status in CLOSED_STATUSES:
            raise ValidationError("Cannot update a cancelled or completed trip")

        merged = {field: changes.get(field, getattr(trip, field)) for field in RULE_FIELDS}
        check_trip_rules(merged, require_future="departure_datetime" in changes)
        if merged["max_participants"] < (trip.current_participants or 0):
            raise ValidationError(
                "Validation failed",
                {"max_participants": "Cannot be lower than the current participants"},
            )
        if "vessel_id" in changes:
            self._check_vessel(trip.center_id, changes["vessel_id"])

        for key, value in changes.items():
            setattr(trip, key, value)
        trip = self.trip_repo.save(trip)
        return self.update_status_if_full(trip.id) or trip

    def publish_trip(self, trip_id: str, actor) -> Trip:
        trip = self.get_trip(trip_id)
        self.center_service.verify_ownership(trip.center_id, actor)
        if trip.status != TripStatus.DRAFT.value:
            raise ValidationError("Only draft trips can be published")
        if not trip.site_id:
            raise ValidationError("A dive site is required before publishing", {"site_id": "Required"})
        trip.status = TripStatus.PUBLISHED.value
        trip.published_at = utcnow()
        trip = self.trip_repo.save(trip)
        logger.info("Trip published", extra={"context": {"trip_id": trip.id}})
        return trip

    def cancel_trip(self, trip_id: str, actor) -> Trip:
        trip = self.get_trip(trip_id)
        self.center_service.verify_ownership(trip.center_id, actor)

        trip = self.trip_repo.get_for_update(trip_id)
        if trip.status in CLOSED_STATUSES:
            raise ValidationError("Trip is already cancelled or completed")
        trip.status = TripStatus.CANCELLED.value
        bookings = self.booking_repo.cancel_all_for_trip(
            trip, TRIP_CANCELLED_REASON, actor.id, utcnow()
        )
        logger.info(
            "Trip cancelled",
            extra={"context": {"trip_id": trip.id, "bookings_cancelled": len(bookings)}},
        )
        for booking in bookings:
            self.notifications.notify(
                booking.user_id,
                NotificationType.TRIP_CANCELLED.value,
                "Trip cancelled",
                f"{trip.title_en} on {trip.departure_datetime:%Y-%m-%d} was cancelled by the center.",
                data={
                    "trip_id": trip.id,
                    "trip_title": trip.title_en,
                    "booking_id": booking.id,
                    "booking_number": booking.booking_number,
                },
            )
        return self.get_trip(trip_id)

    def delete_trip(self, trip_id: str, actor) -> None:
        trip = self.get_trip(trip_id)
        self.center_service.verify_ownership(trip.center_id, actor)
        if trip.status != TripStatus.DRAFT.value:
            raise ValidationError("Only draft trips can be deleted")
        if self.trip_repo.count_bookings(trip_id) > 0:
            raise ValidationError("Cannot delete a trip with bookings")
        self.trip_repo.delete(trip)
        logger.info("Trip deleted", extra={"context": {"trip_id": trip_id}})

    def update_status_if_full(self, trip_id: str) -> Optional[Trip]:
        """Flip between published and full as the head count crosses capacity."""
        trip = self.trip_repo.get_by_id(trip_id)
        if trip is None:
            return None
        current = trip.current_participants or 0
        if trip.status == TripStatus.PUBLISHED.value and current >= trip.max_participants:
            trip.status = TripStatus.FULL.value
            trip = self.trip_repo.save(trip)
        elif trip.status == TripStatus.FULL.value and current < trip.max_participants:
            trip.status = TripStatus.PUBLISHED.value
            trip = self.trip_repo.save(trip)
        return trip

    # ------------------- Trip instructors -------------------

    def list_instructors(self, trip_id: str) -> List[TripInstructor]:
        self.get_trip(trip_id)
        return self.trip_repo.list_instructors(trip_id)

    def add_instructor(self, trip_id: str, actor, instructor_id: str, role: str) -> TripInstructor:
        trip = self.get_trip(trip_id)
        self.center_service.verify_ownership(trip.center_id, actor)
        instructor = self.user_repo.get_by_id(instructor_id)
        if instructor is None:
            raise NotFoundError("Instructor")
        if instructor.role not in INSTRUCTOR_ROLES:
            raise ValidationError("User cannot be assigned as a trip instructor")
        if self.trip_repo.get_trip_instructor(trip_id, instructor_id) is not None:
            raise ConflictError("Instructor is already assigned to this trip")
        assignment = TripInstructor(trip_id=trip_id, instructor_id=instructor_id, role=role)
        return self.trip_repo.add_instructor(assignment, trip)

    def remove_instructor(self, trip_id: str, actor, instructor_id: str) -> None:
        trip = self.get_trip(trip_id)
        self.center_service.verify_ownership(trip.center_id, actor)
        assignment = self.trip_repo.get_trip_instructor(trip_id, instructor_id)
        if assignment is None:
            raise NotFoundError("Trip instructor")
        self.trip_repo.remove_instructor(assignment, trip)

    # ------------------- Scheduled -------------------

    def complete_finished_trips(self, now: Optional[datetime] = None) -> int:
        """Close trips that have returned and complete their checked-in bookings."""
        now = now or utcnow()
        trips = self.trip_repo.list_finished(now)
        for trip in trips:
            for booking in self.booking_repo.list_by_status(trip.id, [BookingStatus.CHECKED_IN.value]):
                booking.status = BookingStatus.COMPLETED.value
                self.booking_repo.db.add(booking)
            trip.status = TripStatus.COMPLETED.value
            self.trip_repo.save(trip)
        if trips:
            logger.info("Finished trips completed", extra={"context": {"count": len(trips)}})
        return len(trips)
