"""Enumerations shared by models, services and request validation."""

from enum import Enum
from typing import Tuple


class StrEnum(str, Enum):
    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)

    def __str__(self) -> str:
        return self.value


class UserRole(StrEnum):
    DIVER = "diver"
    INSTRUCTOR = "instructor"
    CENTER_OWNER = "center_owner"
    CENTER_STAFF = "center_staff"
    PARENT = "parent"
    ADMIN = "admin"
    INSPECTOR = "inspector"


SELF_REGISTER_ROLES = (
    UserRole.DIVER.value,
    UserRole.INSTRUCTOR.value,
    UserRole.CENTER_OWNER.value,
    UserRole.PARENT.value,
)


class UserStatus(StrEnum):
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class VerificationTokenType(StrEnum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class CenterStatus(StrEnum):
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class VesselStatus(StrEnum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    DEACTIVATED = "deactivated"


class StaffRole(StrEnum):
    MANAGER = "manager"
    INSTRUCTOR = "instructor"
    DIVEMASTER = "divemaster"
    BOAT_CAPTAIN = "boat_captain"
    RECEPTIONIST = "receptionist"


class TripType(StrEnum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    FULL_DAY = "full_day"
    NIGHT = "night"
    MULTI_DAY = "multi_day"
    LIVEABOARD = "liveaboard"


class TripStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    FULL = "full"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TripInstructorRole(StrEnum):
    LEAD = "lead"
    ASSISTANT = "assistant"
    DIVEMASTER = "divemaster"


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.PAID.value,
)


class CertificationLevel(StrEnum):
    OPEN_WATER = "Open Water"
    ADVANCED_OPEN_WATER = "Advanced Open Water"
    RESCUE_DIVER = "Rescue Diver"
    DIVEMASTER = "Divemaster"
    INSTRUCTOR = "Instructor"


# Ordered from entry level upwards
CERTIFICATION_LADDER = CertificationLevel.values()


class VerificationStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(StrEnum):
    MADA = "MADA"
    VISA = "VISA"
    MASTER = "MASTER"
    APPLEPAY = "APPLEPAY"
    STC_PAY = "STC_PAY"


class NotificationType(StrEnum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
    LOGIN_ALERT = "login_alert"
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_REMINDER = "booking_reminder"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_UPDATED = "booking_updated"
    WAITLIST_AVAILABLE = "waitlist_available"
    TRIP_REMINDER = "trip_reminder"
    TRIP_CANCELLED = "trip_cancelled"
    TRIP_UPDATED = "trip_updated"
    PAYMENT_SUCCESSFUL = "payment_successful"
    PAYMENT_FAILED = "payment_failed"
    REFUND_PROCESSED = "refund_processed"
    CENTER_VERIFIED = "center_verified"
    CENTER_REJECTED = "center_rejected"
    CERTIFICATION_VERIFIED = "certification_verified"
    CERTIFICATION_REJECTED = "certification_rejected"
    NEW_BOOKING = "new_booking"
    SYSTEM_ANNOUNCEMENT = "system_announcement"


class NotificationChannel(StrEnum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class NotificationPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    READ = "read"


class NotificationTopic(StrEnum):
    ALL_USERS = "all_users"
    DIVERS = "divers"
    INSTRUCTORS = "instructors"
    CENTER_OWNERS = "center_owners"
    ADMINS = "admins"


class DeviceType(StrEnum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class PushTokenType(StrEnum):
    FCM = "fcm"
    APN = "apn"
    WEB_PUSH = "web_push"


class SyncAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SyncStatus(StrEnum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"
    CONFLICT = "conflict"


class SyncEntityType(StrEnum):
    DIVE_LOGS = "dive_logs"
    CERTIFICATIONS = "certifications"
    FAVORITES = "favorites"
    BOOKINGS = "bookings"


WRITABLE_SYNC_ENTITIES = (
    SyncEntityType.DIVE_LOGS.value,
    SyncEntityType.CERTIFICATIONS.value,
    SyncEntityType.FAVORITES.value,
)


class FavoriteTarget(StrEnum):
    CENTER = "center"
    TRIP = "trip"
    INSTRUCTOR = "instructor"


class ReviewableType(StrEnum):
    CENTER = "center"
    INSTRUCTOR = "instructor"


class ReviewStatus(StrEnum):
    PUBLISHED = "published"
    HIDDEN = "hidden"
