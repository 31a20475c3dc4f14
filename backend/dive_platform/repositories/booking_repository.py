from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dive_platform.db.base import Booking, Trip, WaitingListEntry
from dive_platform.domain.enums import ACTIVE_BOOKING_STATUSES, BookingStatus
from dive_platform.domain.interfaces import IBookingRepository


class BookingRepository(IBookingRepository):
    """Repository for bookings.

    Methods that change a trip's head count take the trip row loaded with
    ``TripRepository.get_for_update`` in the same session so the booking and
    the counter are committed together.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, booking_id: str) -> Optional[Booking]:
        return self.db.get(Booking, booking_id)

    def find_active_for_user(self, trip_id: str, user_id: str) -> Optional[Booking]:
        stmt = select(Booking).where(
            Booking.trip_id == trip_id,
            Booking.user_id == user_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return self.db.execute(stmt).scalars().unique().first()

    def number_exists(self, booking_number: str) -> bool:
        stmt = select(Booking.id).where(Booking.booking_number == booking_number)
        return self.db.execute(stmt).first() is not None

    def create_reserving_spots(self, booking: Booking, trip: Trip) -> Booking:
        trip.current_participants = (trip.current_participants or 0) + booking.number_of_divers
        self.db.add(trip)
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def release_spots(self, booking: Booking, trip: Trip) -> Booking:
        """Persist a booking that left the active set and give its spots back."""
        trip.current_participants = max(
            0, (trip.current_participants or 0) - booking.number_of_divers
        )
        self.db.add(trip)
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def save(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def list_for_user(
        self, user_id: str, status: Optional[str], offset: int, limit: int
    ) -> Tuple[List[Booking], int]:
        conditions = [Booking.user_id == user_id]
        if status:
            conditions.append(Booking.status == status)
        total = self.db.execute(
            select(func.count()).select_from(Booking).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Booking)
            .join(Trip, Trip.id == Booking.trip_id)
            .where(*conditions)
            .order_by(Trip.departure_datetime.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def list_for_trip(
        self, trip_id: str, status: Optional[str], offset: int, limit: int
    ) -> Tuple[List[Booking], int]:
        conditions = [Booking.trip_id == trip_id]
        if status:
            conditions.append(Booking.status == status)
        total = self.db.execute(
            select(func.count()).select_from(Booking).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def list_by_status(self, trip_id: str, statuses: Iterable[str]) -> List[Booking]:
        stmt = select(Booking).where(
            Booking.trip_id == trip_id, Booking.status.in_(list(statuses))
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def cancel_all_for_trip(
        self, trip: Trip, reason: str, cancelled_by: str, now: datetime
    ) -> List[Booking]:
        """Cancel every active booking of ``trip`` in one transaction."""
        bookings = self.list_by_status(trip.id, ACTIVE_BOOKING_STATUSES)
        for booking in bookings:
            booking.status = BookingStatus.CANCELLED.value
            booking.cancellation_reason = reason
            booking.cancelled_at = now
            booking.cancelled_by = cancelled_by
            self.db.add(booking)
        trip.current_participants = 0
        self.db.add(trip)
        self.db.commit()
        return bookings


class WaitingListRepository:
    """Ordered waiting list per trip; positions are kept contiguous from 1."""

    def __init__(self, db: Session):
        self.db = db

    def get_entry(self, trip_id: str, user_id: str) -> Optional[WaitingListEntry]:
        stmt = select(WaitingListEntry).where(
            WaitingListEntry.trip_id == trip_id, WaitingListEntry.user_id == user_id
        )
        return self.db.execute(stmt).scalars().unique().first()

    def list_for_trip(self, trip_id: str) -> List[WaitingListEntry]:
        stmt = (
            select(WaitingListEntry)
            .where(WaitingListEntry.trip_id == trip_id)
            .order_by(WaitingListEntry.position.asc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def next_position(self, trip_id: str) -> int:
        stmt = select(func.max(WaitingListEntry.position)).where(
            WaitingListEntry.trip_id == trip_id
        )
        return (self.db.execute(stmt).scalar() or 0) + 1

    def add(self, entry: WaitingListEntry) -> WaitingListEntry:
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def save(self, entry: WaitingListEntry) -> WaitingListEntry:
        self.db.add(entry)
        self.db.commit()
        return entry

    def remove(self, entry: WaitingListEntry) -> None:
        """Delete ``entry`` and renumber the remaining entries 1..n."""
        trip_id = entry.trip_id
        self.db.delete(entry)
        self.db.flush()
        for position, remaining in enumerate(self.list_for_trip(trip_id), start=1):
            remaining.position = position
        self.db.commit()

    def first_waiting(self, trip_id: str) -> Optional[WaitingListEntry]:
        """Head of the queue that has not been offered a spot yet."""
        stmt = (
            select(WaitingListEntry)
            .where(
                WaitingListEntry.trip_id == trip_id,
                WaitingListEntry.notified_at.is_(None),
            )
            .order_by(WaitingListEntry.position.asc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().unique().first()

    def list_expired_offers(self, now: datetime) -> List[WaitingListEntry]:
        stmt = select(WaitingListEntry).where(
            WaitingListEntry.expires_at.is_not(None),
            WaitingListEntry.expires_at < now,
        )
        return list(self.db.execute(stmt).scalars().unique().all())
