"""
Service factories.

Controllers open a session per request and call one of these to get a
service wired to repositories bound to that session. Tests patch the
factory a controller imports to inject mocks.
"""

from typing import Dict

from sqlalchemy.orm import Session

from dive_platform.domain.enums import NotificationChannel
from dive_platform.domain.interfaces import INotificationProvider
from dive_platform.repositories.booking_repository import BookingRepository, WaitingListRepository
from dive_platform.repositories.center_repository import (
    CenterRepository,
    StaffRepository,
    VesselRepository,
)
from dive_platform.repositories.instructor_repository import (
    CertificationRepository,
    InstructorRepository,
    SiteRepository,
)
from dive_platform.repositories.mobile_repository import (
    DeviceRepository,
    PreferenceRepository,
    SyncRepository,
)
from dive_platform.repositories.notification_repository import NotificationRepository
from dive_platform.repositories.payment_repository import PaymentRepository
from dive_platform.repositories.review_repository import ReviewRepository
from dive_platform.repositories.trip_repository import TripRepository
from dive_platform.repositories.user_repository import TokenRepository, UserRepository
from dive_platform.services.auth_service import AuthService
from dive_platform.services.booking_service import BookingService
from dive_platform.services.center_service import CenterService
from dive_platform.services.certification_service import CertificationService
from dive_platform.services.device_service import DeviceService
from dive_platform.services.hyperpay_client import HyperPayClient
from dive_platform.services.instructor_service import InstructorService, SiteService
from dive_platform.services.notification_service import NotificationService
from dive_platform.services.payment_service import PaymentService
from dive_platform.services.preference_service import PreferenceService
from dive_platform.services.providers.email_provider import EmailProvider
from dive_platform.services.providers.push_provider import PushProvider
from dive_platform.services.providers.sms_provider import SmsProvider
from dive_platform.services.review_service import ReviewService
from dive_platform.services.sync_service import SyncService
from dive_platform.services.trip_service import TripService
from dive_platform.services.user_service import UserService


def build_providers() -> Dict[str, INotificationProvider]:
    return {
        NotificationChannel.EMAIL.value: EmailProvider(),
        NotificationChannel.SMS.value: SmsProvider(),
        NotificationChannel.PUSH.value: PushProvider(),
    }


def build_preference_service(db: Session) -> PreferenceService:
    return PreferenceService(PreferenceRepository(db))


def build_notification_service(db: Session) -> NotificationService:
    return NotificationService(
        NotificationRepository(db),
        UserRepository(db),
        DeviceRepository(db),
        build_preference_service(db),
        build_providers(),
    )


def build_auth_service(db: Session) -> AuthService:
    return AuthService(
        UserRepository(db),
        TokenRepository(db),
        InstructorRepository(db),
        build_notification_service(db),
    )


def build_center_service(db: Session) -> CenterService:
    return CenterService(
        CenterRepository(db),
        VesselRepository(db),
        StaffRepository(db),
        UserRepository(db),
        build_notification_service(db),
    )


def build_instructor_service(db: Session) -> InstructorService:
    return InstructorService(InstructorRepository(db))


def build_site_service(db: Session) -> SiteService:
    return SiteService(SiteRepository(db))


def build_trip_service(db: Session) -> TripService:
    return TripService(
        TripRepository(db),
        BookingRepository(db),
        build_center_service(db),
        UserRepository(db),
        build_notification_service(db),
    )


def build_booking_service(db: Session) -> BookingService:
    trip_service = build_trip_service(db)
    return BookingService(
        BookingRepository(db),
        WaitingListRepository(db),
        trip_service,
        trip_service.center_service,
        UserRepository(db),
        CertificationRepository(db),
        trip_service.notifications,
    )


def build_payment_service(db: Session) -> PaymentService:
    return PaymentService(
        PaymentRepository(db),
        BookingRepository(db),
        build_center_service(db),
        HyperPayClient(),
        build_notification_service(db),
    )


def build_device_service(db: Session) -> DeviceService:
    return DeviceService(DeviceRepository(db))


def build_sync_service(db: Session) -> SyncService:
    return SyncService(SyncRepository(db), UserRepository(db))


def build_certification_service(db: Session) -> CertificationService:
    return CertificationService(CertificationRepository(db), build_notification_service(db))


def build_user_service(db: Session) -> UserService:
    return UserService(UserRepository(db), TokenRepository(db))


def build_review_service(db: Session) -> ReviewService:
    return ReviewService(
        ReviewRepository(db),
        BookingRepository(db),
        CenterRepository(db),
        InstructorRepository(db),
    )
