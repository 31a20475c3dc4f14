from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableDict, MutableList
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dive_platform.domain.enums import (
    BookingStatus,
    CenterStatus,
    NotificationPriority,
    NotificationStatus,
    PaymentStatus,
    ReviewStatus,
    SyncStatus,
    TripStatus,
    UserRole,
    UserStatus,
    VerificationStatus,
    VesselStatus,
)
from dive_platform.utils.date_utils import utcnow

from .session import Base


def json_type():
    """JSONB on PostgreSQL, JSON elsewhere (SQLite in tests).

    A new instance per column: ``as_mutable`` binds to the type object, so
    list and dict columns must never share one.
    """
    return JSON().with_variant(JSONB(), "postgresql")


Money = Numeric(10, 2)


def _uuid() -> str:
    return str(uuid.uuid4())


def _uuid_pk() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=_uuid)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True
    )


# ------------------- USERS & AUTH -------------------


# Explicitly implement the Flask-Login interface without inheriting UserMixin
class User(TimestampMixin, Base):
    """Platform account: divers, instructors, center owners/staff, parents, admins."""

    __tablename__ = "users"

    id: Mapped[str] = _uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.DIVER.value)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=UserStatus.PENDING_VERIFICATION.value
    )
    preferred_language: Mapped[str] = mapped_column(String(2), nullable=False, default="ar")
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    parent_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_logged_dives: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Flask-Login required methods/properties
    def get_id(self) -> str:
        return str(self.id)

    @property
    def is_active(self) -> bool:
        return self.status not in (
            UserStatus.SUSPENDED.value,
            UserStatus.DEACTIVATED.value,
        )

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_anonymous(self) -> bool:
        return False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class VerificationToken(Base):
    """Single-use email verification / password reset tokens (stored hashed)."""

    __tablename__ = "verification_tokens"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    token_type: Mapped[str] = mapped_column(String(30), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


# ------------------- INSTRUCTORS -------------------


class InstructorProfile(TimestampMixin, Base):
    __tablename__ = "instructor_profiles"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    instructor_number: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")
    certification_agency: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")
    instructor_level: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")
    specialties: Mapped[List[str]] = mapped_column(
        MutableList.as_mutable(json_type()), nullable=False, default=list
    )
    languages_spoken: Mapped[List[str]] = mapped_column(
        MutableList.as_mutable(json_type()), nullable=False, default=list
    )
    years_experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bio_en: Mapped[Optional[str]] = mapped_column(Text)
    bio_ar: Mapped[Optional[str]] = mapped_column(Text)
    hourly_rate_sar: Mapped[Optional[Decimal]] = mapped_column(Money)
    daily_rate_sar: Mapped[Optional[Decimal]] = mapped_column(Money)
    is_independent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    availability_calendar: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    rating_average: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=0)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user: Mapped["User"] = relationship("User", lazy="joined")


# ------------------- CENTERS -------------------


class DivingCenter(TimestampMixin, Base):
    __tablename__ = "diving_centers"

    id: Mapped[str] = _uuid_pk()
    owner_user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    name_en: Mapped[str] = mapped_column(String(200), nullable=False)
    name_ar: Mapped[Optional[str]] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(220), unique=True, nullable=False)
    description_en: Mapped[Optional[str]] = mapped_column(Text)
    description_ar: Mapped[Optional[str]] = mapped_column(Text)
    srsa_license_number: Mapped[str] = mapped_column(String(50), nullable=False)
    license_expiry_date: Mapped[Optional[date]] = mapped_column(Date)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    address_en: Mapped[Optional[str]] = mapped_column(String(500))
    address_ar: Mapped[Optional[str]] = mapped_column(String(500))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    phone_emergency: Mapped[Optional[str]] = mapped_column(String(20))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    website: Mapped[Optional[str]] = mapped_column(String(255))
    rating_average: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=0)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=CenterStatus.PENDING_VERIFICATION.value
    )

    def __repr__(self):
        return f"<DivingCenter(id={self.id}, slug='{self.slug}', status={self.status})>"


class Vessel(TimestampMixin, Base):
    __tablename__ = "vessels"

    id: Mapped[str] = _uuid_pk()
    center_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("diving_centers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    name_ar: Mapped[Optional[str]] = mapped_column(String(100))
    registration_number: Mapped[Optional[str]] = mapped_column(String(50))
    vessel_type: Mapped[Optional[str]] = mapped_column(String(50))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    diver_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    safety_equipment: Mapped[List[str]] = mapped_column(
        MutableList.as_mutable(json_type()), nullable=False, default=list
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=VesselStatus.ACTIVE.value)


class CenterStaff(TimestampMixin, Base):
    __tablename__ = "center_staff"
    __table_args__ = (UniqueConstraint("center_id", "user_id", name="uq_center_staff_member"),)

    id: Mapped[str] = _uuid_pk()
    center_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("diving_centers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    title_en: Mapped[Optional[str]] = mapped_column(String(100))
    title_ar: Mapped[Optional[str]] = mapped_column(String(100))
    permissions: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    employment_type: Mapped[Optional[str]] = mapped_column(String(30))
    hired_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    terminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    user: Mapped["User"] = relationship("User", lazy="joined")


# ------------------- SITES, CERTIFICATIONS, DIVE LOGS -------------------


class DiveSite(TimestampMixin, Base):
    __tablename__ = "dive_sites"

    id: Mapped[str] = _uuid_pk()
    srsa_site_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name_en: Mapped[str] = mapped_column(String(200), nullable=False)
    name_ar: Mapped[Optional[str]] = mapped_column(String(200))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    max_depth_meters: Mapped[Optional[int]] = mapped_column(Integer)
    conservation_fee_sar: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("35"))
    difficulty_level: Mapped[Optional[str]] = mapped_column(String(30))
    min_certification_level: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Certification(TimestampMixin, Base):
    __tablename__ = "certifications"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agency: Mapped[str] = mapped_column(String(50), nullable=False)
    certification_level: Mapped[str] = mapped_column(String(50), nullable=False)
    certification_number: Mapped[Optional[str]] = mapped_column(String(100))
    issue_date: Mapped[Optional[date]] = mapped_column(Date)
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value
    )
    verified_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"))
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    verification_notes: Mapped[Optional[str]] = mapped_column(String(500))

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], lazy="joined")

    def reset_verification(self) -> None:
        """Edited credentials go back to the admin queue."""
        self.verification_status = VerificationStatus.PENDING.value
        self.verified_by = None
        self.verified_at = None
        self.verification_notes = None


class DiveLog(TimestampMixin, Base):
    __tablename__ = "dive_logs"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trip_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("trips.id"))
    dive_date: Mapped[date] = mapped_column(Date, nullable=False)
    site_name: Mapped[Optional[str]] = mapped_column(String(200))
    max_depth_m: Mapped[Optional[float]] = mapped_column(Float)
    duration_min: Mapped[Optional[int]] = mapped_column(Integer)
    water_temp_c: Mapped[Optional[float]] = mapped_column(Float)
    visibility_m: Mapped[Optional[float]] = mapped_column(Float)
    buddy_name: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)


class Favorite(TimestampMixin, Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "target_type", "target_id", name="uq_favorite_target"),
    )

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_id: Mapped[str] = mapped_column(String(36), nullable=False)


# ------------------- TRIPS -------------------


class Trip(TimestampMixin, Base):
    __tablename__ = "trips"

    id: Mapped[str] = _uuid_pk()
    center_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("diving_centers.id"), nullable=False, index=True
    )
    vessel_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("vessels.id"))
    site_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("dive_sites.id"))
    lead_instructor_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"))
    title_en: Mapped[str] = mapped_column(String(200), nullable=False)
    title_ar: Mapped[Optional[str]] = mapped_column(String(200))
    description_en: Mapped[Optional[str]] = mapped_column(Text)
    description_ar: Mapped[Optional[str]] = mapped_column(Text)
    trip_type: Mapped[str] = mapped_column(String(20), nullable=False)
    departure_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    return_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    meeting_point_en: Mapped[Optional[str]] = mapped_column(String(500))
    meeting_point_ar: Mapped[Optional[str]] = mapped_column(String(500))
    meeting_point_lat: Mapped[Optional[float]] = mapped_column(Float)
    meeting_point_long: Mapped[Optional[float]] = mapped_column(Float)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    min_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_certification_level: Mapped[Optional[str]] = mapped_column(String(50))
    min_logged_dives: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_age: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    max_age: Mapped[Optional[int]] = mapped_column(Integer)
    number_of_dives: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    includes_equipment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_meals: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_refreshments: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    price_per_person_sar: Mapped[Decimal] = mapped_column(Money, nullable=False)
    equipment_rental_price_sar: Mapped[Optional[Decimal]] = mapped_column(Money)
    conservation_fee_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancellation_policy: Mapped[Optional[str]] = mapped_column(Text)
    cancellation_deadline_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TripStatus.DRAFT.value, index=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    center: Mapped["DivingCenter"] = relationship("DivingCenter", lazy="joined")
    site: Mapped[Optional["DiveSite"]] = relationship("DiveSite", lazy="joined")
    vessel: Mapped[Optional["Vessel"]] = relationship("Vessel")

    @property
    def available_spots(self) -> int:
        return max(0, self.max_participants - (self.current_participants or 0))

    def __repr__(self):
        return f"<Trip(id={self.id}, status={self.status}, departure={self.departure_datetime})>"


class TripInstructor(Base):
    __tablename__ = "trip_instructors"
    __table_args__ = (UniqueConstraint("trip_id", "instructor_id", name="uq_trip_instructor"),)

    id: Mapped[str] = _uuid_pk()
    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True
    )
    instructor_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    instructor: Mapped["User"] = relationship("User", lazy="joined")


# ------------------- BOOKINGS -------------------


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_trip_user", "trip_id", "user_id"),)

    id: Mapped[str] = _uuid_pk()
    booking_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    trip_id: Mapped[str] = mapped_column(String(36), ForeignKey("trips.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    center_id: Mapped[str] = mapped_column(String(36), ForeignKey("diving_centers.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )
    number_of_divers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    base_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    equipment_rental: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    conservation_fee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    insurance_fee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    platform_fee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    vat_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")
    special_requests: Mapped[Optional[str]] = mapped_column(Text)
    dietary_requirements: Mapped[Optional[str]] = mapped_column(String(500))
    equipment_sizes: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    waiver_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    waiver_ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    parent_consent_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    checked_in_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"))
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"))
    refund_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)

    trip: Mapped["Trip"] = relationship("Trip", lazy="joined")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], lazy="joined")

    def __repr__(self):
        return f"<Booking(id={self.id}, number={self.booking_number}, status={self.status})>"


class WaitingListEntry(Base):
    __tablename__ = "waiting_list"
    __table_args__ = (UniqueConstraint("trip_id", "user_id", name="uq_waiting_list_user"),)

    id: Mapped[str] = _uuid_pk()
    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    number_of_divers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped["User"] = relationship("User", lazy="joined")


# ------------------- PAYMENTS -------------------


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[str] = _uuid_pk()
    booking_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bookings.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    amount_sar: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_gateway: Mapped[str] = mapped_column(String(20), nullable=False, default="hyperpay")
    gateway_checkout_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    checkout_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    gateway_response: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=PaymentStatus.PENDING.value, index=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500))
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    refund_amount_sar: Mapped[Decimal] = mapped_column(Money, nullable=False, default=0)
    refund_reason: Mapped[Optional[str]] = mapped_column(String(500))
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))

    booking: Mapped["Booking"] = relationship("Booking", lazy="joined")


# ------------------- REVIEWS -------------------


class Review(TimestampMixin, Base):
    """A diver's rating of a center or instructor, tied to a completed booking."""

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "booking_id", "reviewable_type", "reviewable_id", name="uq_review_per_booking"
        ),
        Index("ix_reviews_target", "reviewable_type", "reviewable_id", "status"),
    )

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), nullable=False)
    reviewable_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reviewable_id: Mapped[str] = mapped_column(String(36), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(200))
    content: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReviewStatus.PUBLISHED.value
    )

    user: Mapped["User"] = relationship("User", lazy="joined")


# ------------------- NOTIFICATIONS & MOBILE -------------------


class Notification(TimestampMixin, Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    channel: Mapped[str] = mapped_column(String(10), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=NotificationPriority.NORMAL.value
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=NotificationStatus.PENDING.value
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[Optional[str]] = mapped_column(String(500))
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class MobileDevice(TimestampMixin, Base):
    __tablename__ = "mobile_devices"
    __table_args__ = (
        UniqueConstraint("user_id", "device_identifier", name="uq_device_per_user"),
    )

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    device_identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    device_type: Mapped[str] = mapped_column(String(10), nullable=False)
    device_name: Mapped[Optional[str]] = mapped_column(String(100))
    os_version: Mapped[Optional[str]] = mapped_column(String(50))
    app_version: Mapped[Optional[str]] = mapped_column(String(50))
    model: Mapped[Optional[str]] = mapped_column(String(100))
    push_token: Mapped[Optional[str]] = mapped_column(String(500))
    push_token_type: Mapped[Optional[str]] = mapped_column(String(10))
    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class NotificationPreference(TimestampMixin, Base):
    __tablename__ = "notification_preferences"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    in_app_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notification_types: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    quiet_hours_start: Mapped[Optional[str]] = mapped_column(String(5))
    quiet_hours_end: Mapped[Optional[str]] = mapped_column(String(5))
    timezone: Mapped[str] = mapped_column(String(50), nullable=False, default="Asia/Riyadh")


class SyncQueueItem(TimestampMixin, Base):
    __tablename__ = "sync_queue"
    __table_args__ = (UniqueConstraint("user_id", "client_id", name="uq_sync_client_id"),)

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    device_id: Mapped[Optional[str]] = mapped_column(String(36))
    client_id: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(36))
    payload: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(json_type()), nullable=False, default=dict
    )
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=SyncStatus.PENDING.value)
    server_entity_id: Mapped[Optional[str]] = mapped_column(String(36))
    error_message: Mapped[Optional[str]] = mapped_column(String(500))
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class SyncCheckpoint(Base):
    __tablename__ = "sync_checkpoints"
    __table_args__ = (
        UniqueConstraint("user_id", "device_id", "entity_type", name="uq_sync_checkpoint"),
    )

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(String(36), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SyncTombstone(Base):
    """Records deletions so delta sync can tell clients which rows disappeared."""

    __tablename__ = "sync_tombstones"
    __table_args__ = (Index("ix_tombstones_user_entity", "user_id", "entity_type", "deleted_at"),)

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
