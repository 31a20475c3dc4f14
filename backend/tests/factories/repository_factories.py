"""
Repository test factories.

Mocks are built with ``spec`` set to the repository class so a typo in a
method name fails the test instead of silently returning a Mock.
"""

from unittest.mock import Mock

from dive_platform.domain.interfaces import IPaymentGateway
from dive_platform.repositories.booking_repository import BookingRepository, WaitingListRepository
from dive_platform.repositories.center_repository import (
    CenterRepository,
    StaffRepository,
    VesselRepository,
)
from dive_platform.repositories.instructor_repository import CertificationRepository
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


def _echo_first(*args, **kwargs):
    return args[0]


class UserRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=UserRepository)
        repo.get_by_id.return_value = None
        repo.get_by_email.return_value = None
        repo.create.side_effect = _echo_first
        repo.save.side_effect = _echo_first
        repo.list_active_ids.return_value = []
        return repo

    @staticmethod
    def create_token_mock() -> Mock:
        repo = Mock(spec=TokenRepository)
        repo.get_refresh_token.return_value = None
        repo.get_verification_token.return_value = None
        repo.revoke_refresh_token.return_value = True
        repo.revoke_all_for_user.return_value = 0
        return repo


class CenterRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=CenterRepository)
        repo.get_by_id.return_value = None
        repo.slug_exists.return_value = False
        repo.create.side_effect = _echo_first
        repo.save.side_effect = _echo_first
        return repo

    @staticmethod
    def create_vessel_mock() -> Mock:
        repo = Mock(spec=VesselRepository)
        repo.get.return_value = None
        repo.list_for_center.return_value = []
        return repo

    @staticmethod
    def create_staff_mock() -> Mock:
        repo = Mock(spec=StaffRepository)
        repo.is_active_member.return_value = False
        repo.get_membership.return_value = None
        return repo


class TripRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=TripRepository)
        repo.get_by_id.return_value = None
        repo.get_for_update.return_value = None
        repo.search.return_value = ([], 0)
        repo.count_bookings.return_value = 0
        repo.create.side_effect = _echo_first
        repo.save.side_effect = _echo_first
        repo.list_departing_between.return_value = []
        repo.list_finished.return_value = []
        return repo


class BookingRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=BookingRepository)
        repo.get_by_id.return_value = None
        repo.find_active_for_user.return_value = None
        repo.number_exists.return_value = False
        repo.save.side_effect = _echo_first
        repo.release_spots.side_effect = _echo_first
        repo.list_by_status.return_value = []
        repo.list_for_user.return_value = ([], 0)
        repo.cancel_all_for_trip.return_value = []

        def reserve(booking, trip):
            trip.current_participants = (trip.current_participants or 0) + booking.number_of_divers
            booking.id = booking.id or "booking-1"
            return booking

        repo.create_reserving_spots.side_effect = reserve
        return repo

    @staticmethod
    def create_waitlist_mock() -> Mock:
        repo = Mock(spec=WaitingListRepository)
        repo.get_entry.return_value = None
        repo.first_waiting.return_value = None
        repo.next_position.return_value = 1
        repo.list_expired_offers.return_value = []
        repo.add.side_effect = _echo_first
        repo.save.side_effect = _echo_first
        return repo

    @staticmethod
    def create_certification_mock(levels=None) -> Mock:
        repo = Mock(spec=CertificationRepository)
        repo.verified_levels.return_value = list(levels or [])
        repo.get.return_value = None
        repo.list_for_user.return_value = []
        repo.list_by_status.return_value = ([], 0)
        repo.save.side_effect = _echo_first
        return repo


class PaymentRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=PaymentRepository)
        repo.get_by_id.return_value = None
        repo.get_by_checkout_id.return_value = None
        repo.get_pending_for_booking.return_value = None
        repo.search.return_value = ([], 0)
        repo.create.side_effect = _echo_first
        repo.save.side_effect = _echo_first
        return repo

    @staticmethod
    def create_gateway_mock() -> Mock:
        gateway = Mock(spec=IPaymentGateway)
        gateway.verify_webhook_signature.return_value = True
        return gateway


class NotificationRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=NotificationRepository)
        repo.get_by_id.return_value = None
        repo.create.side_effect = _echo_first
        repo.save.side_effect = _echo_first
        repo.count_unread.return_value = 0
        repo.mark_read.return_value = 0
        repo.search.return_value = ([], 0)
        return repo


class MobileRepositoryFactory:
    @staticmethod
    def create_device_mock() -> Mock:
        repo = Mock(spec=DeviceRepository)
        repo.get_by_id.return_value = None
        repo.get_by_identifier.return_value = None
        repo.list_active.return_value = []
        repo.list_push_tokens.return_value = []
        repo.save.side_effect = _echo_first
        return repo

    @staticmethod
    def create_preference_mock() -> Mock:
        repo = Mock(spec=PreferenceRepository)
        repo.get_for_user.return_value = None
        repo.save.side_effect = _echo_first
        return repo

    @staticmethod
    def create_sync_mock() -> Mock:
        repo = Mock(spec=SyncRepository)
        repo.get_queue_item.return_value = None
        repo.get_entity.return_value = None
        repo.add_queue_item.side_effect = _echo_first
        repo.save_queue_item.side_effect = _echo_first
        repo.add_entity.side_effect = _echo_first
        repo.list_changed.return_value = []
        repo.list_all.return_value = []
        repo.list_deleted_ids.return_value = []
        repo.count_by_status.return_value = {}
        return repo


class ReviewRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        repo = Mock(spec=ReviewRepository)
        repo.get.return_value = None
        repo.exists.return_value = False
        repo.list_for_target.return_value = ([], 0)
        repo.list_for_user.return_value = ([], 0)
        repo.save_with_rating.side_effect = _echo_first
        return repo
