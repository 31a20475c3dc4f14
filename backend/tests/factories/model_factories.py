"""
Persisted model factories for integration tests.

Each helper writes one committed row with sensible defaults; keyword
arguments override any column.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

from dive_platform.core.security import hash_password
from dive_platform.db.base import (
    Booking,
    Certification,
    DiveSite,
    DivingCenter,
    Payment,
    Trip,
    User,
)
from dive_platform.domain.enums import (
    BookingStatus,
    CenterStatus,
    PaymentStatus,
    TripStatus,
    TripType,
    UserRole,
    UserStatus,
    VerificationStatus,
)
from dive_platform.utils.date_utils import utcnow

DEFAULT_PASSWORD = "Str0ngPass!"


def _suffix() -> str:
    return uuid.uuid4().hex[:8]


def _persist(db, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def create_user(db, role: str = UserRole.DIVER.value, **overrides) -> User:
    values = dict(
        email=f"user-{_suffix()}@example.com",
        password_hash=hash_password(DEFAULT_PASSWORD),
        first_name="Sara",
        last_name="Alharbi",
        role=role,
        status=UserStatus.ACTIVE.value,
        date_of_birth=date(1990, 5, 17),
        total_logged_dives=25,
    )
    values.update(overrides)
    return _persist(db, User(**values))


def create_site(db, **overrides) -> DiveSite:
    values = dict(
        srsa_site_code=f"RS-{_suffix()}",
        name_en="Sharm Obhur Reef",
        conservation_fee_sar=Decimal("35.00"),
    )
    values.update(overrides)
    return _persist(db, DiveSite(**values))


def create_center(db, owner: User, **overrides) -> DivingCenter:
    suffix = _suffix()
    values = dict(
        owner_user_id=owner.id,
        name_en=f"Red Sea Divers {suffix}",
        slug=f"red-sea-divers-{suffix}",
        srsa_license_number=f"SRSA-{suffix}",
        city="Jeddah",
        status=CenterStatus.ACTIVE.value,
    )
    values.update(overrides)
    return _persist(db, DivingCenter(**values))


def create_trip(db, center: DivingCenter, **overrides) -> Trip:
    departure = utcnow() + timedelta(days=7)
    values = dict(
        center_id=center.id,
        title_en="Two-tank reef dive",
        trip_type=TripType.MORNING.value,
        departure_datetime=departure,
        return_datetime=departure + timedelta(hours=6),
        max_participants=10,
        price_per_person_sar=Decimal("500.00"),
        conservation_fee_included=True,
        status=TripStatus.PUBLISHED.value,
        current_participants=0,
        min_age=10,
    )
    values.update(overrides)
    return _persist(db, Trip(**values))


def create_booking(db, trip: Trip, user: User, **overrides) -> Booking:
    values = dict(
        booking_number=f"BK{_suffix().upper()}",
        trip_id=trip.id,
        user_id=user.id,
        center_id=trip.center_id,
        status=BookingStatus.PENDING.value,
        number_of_divers=1,
        base_price=Decimal("500.00"),
        total_amount=Decimal("618.75"),
    )
    values.update(overrides)
    return _persist(db, Booking(**values))


def create_payment(db, booking: Booking, **overrides) -> Payment:
    values = dict(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount_sar=booking.total_amount,
        payment_method="MADA",
        status=PaymentStatus.PENDING.value,
        gateway_checkout_id=f"chk-{_suffix()}",
    )
    values.update(overrides)
    return _persist(db, Payment(**values))


def create_certification(db, user: User, level: str = "Open Water", **overrides) -> Certification:
    values = dict(
        user_id=user.id,
        agency="PADI",
        certification_level=level,
        verification_status=VerificationStatus.VERIFIED.value,
    )
    values.update(overrides)
    return _persist(db, Certification(**values))
