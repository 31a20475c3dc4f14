from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from dive_platform.db.base import Booking, Trip, TripInstructor
from dive_platform.domain.enums import TripInstructorRole, TripStatus
from dive_platform.domain.interfaces import ITripRepository
from dive_platform.utils.date_utils import utcnow


@dataclass
class TripFilters:
    status: Optional[str] = None
    center_id: Optional[str] = None
    site_id: Optional[str] = None
    trip_type: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    upcoming: bool = False


class TripRepository(ITripRepository):
    """Repository for trips and their instructor assignments."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, trip_id: str) -> Optional[Trip]:
        return self.db.get(Trip, trip_id)

    def get_for_update(self, trip_id: str) -> Optional[Trip]:
        """Load a trip with a row lock (no-op on SQLite) for capacity changes.

        ``populate_existing`` overwrites an instance already in the identity
        map, so the head count read after the lock is the committed one.
        """
        stmt = (
            select(Trip)
            .where(Trip.id == trip_id)
            .with_for_update(of=Trip)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().unique().first()

    def search(self, filters: TripFilters, offset: int, limit: int) -> Tuple[List[Trip], int]:
        conditions = []
        if filters.status:
            conditions.append(Trip.status == filters.status)
        if filters.center_id:
            conditions.append(Trip.center_id == filters.center_id)
        if filters.site_id:
            conditions.append(Trip.site_id == filters.site_id)
        if filters.trip_type:
            conditions.append(Trip.trip_type == filters.trip_type)
        if filters.date_from:
            conditions.append(Trip.departure_datetime >= filters.date_from)
        if filters.date_to:
            conditions.append(Trip.departure_datetime <= filters.date_to)
        if filters.upcoming:
            conditions.append(Trip.departure_datetime > utcnow())

        total = self.db.execute(
            select(func.count()).select_from(Trip).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Trip)
            .where(*conditions)
            .order_by(Trip.departure_datetime.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def create(self, trip: Trip) -> Trip:
        self.db.add(trip)
        self.db.commit()
        self.db.refresh(trip)
        return trip

    def save(self, trip: Trip) -> Trip:
        self.db.add(trip)
        self.db.commit()
        self.db.refresh(trip)
        return trip

    def delete(self, trip: Trip) -> None:
        self.db.delete(trip)
        self.db.commit()

    def count_bookings(self, trip_id: str) -> int:
        stmt = select(func.count()).select_from(Booking).where(Booking.trip_id == trip_id)
        return self.db.execute(stmt).scalar_one()

    def list_departing_between(
        self, start: datetime, end: datetime, statuses: List[str]
    ) -> List[Trip]:
        stmt = select(Trip).where(
            Trip.departure_datetime >= start,
            Trip.departure_datetime < end,
            Trip.status.in_(statuses),
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def list_finished(self, now: datetime) -> List[Trip]:
        stmt = select(Trip).where(
            Trip.return_datetime < now,
            Trip.status.in_(
                [
                    TripStatus.PUBLISHED.value,
                    TripStatus.FULL.value,
                    TripStatus.IN_PROGRESS.value,
                ]
            ),
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    # ------------------- Trip instructors -------------------

    def list_instructors(self, trip_id: str) -> List[TripInstructor]:
        lead_first = case((TripInstructor.role == TripInstructorRole.LEAD.value, 0), else_=1)
        stmt = (
            select(TripInstructor)
            .where(TripInstructor.trip_id == trip_id)
            .order_by(lead_first, TripInstructor.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def get_trip_instructor(self, trip_id: str, instructor_id: str) -> Optional[TripInstructor]:
        stmt = select(TripInstructor).where(
            TripInstructor.trip_id == trip_id,
            TripInstructor.instructor_id == instructor_id,
        )
        return self.db.execute(stmt).scalars().first()

    def add_instructor(self, assignment: TripInstructor, trip: Trip) -> TripInstructor:
        self.db.add(assignment)
        if assignment.role == TripInstructorRole.LEAD.value:
            trip.lead_instructor_id = assignment.instructor_id
            self.db.add(trip)
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def remove_instructor(self, assignment: TripInstructor, trip: Trip) -> None:
        if trip.lead_instructor_id == assignment.instructor_id:
            trip.lead_instructor_id = None
            self.db.add(trip)
        self.db.delete(assignment)
        self.db.commit()
