"""
Abstract repository and gateway interfaces.

Services depend on these contracts rather than on the SQLAlchemy
implementations, so unit tests can hand them ``Mock(spec=...)`` doubles.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional


class IUserReader(ABC):
    """Interface for user read operations."""

    @abstractmethod
    def get_by_id(self, user_id: str):
        """Get user by ID."""
        pass

    @abstractmethod
    def get_by_email(self, email: str):
        """Get user by email (case-insensitive)."""
        pass

    @abstractmethod
    def list_active_ids(self, roles: Optional[Iterable[str]] = None) -> List[str]:
        """Ids of users that can receive notifications, optionally by role."""
        pass


class IUserWriter(ABC):
    """Interface for user write operations."""

    @abstractmethod
    def create(self, user):
        """Create a new user."""
        pass

    @abstractmethod
    def save(self, user):
        """Persist changes to an existing user."""
        pass


class IUserRepository(IUserReader, IUserWriter):
    """Complete user repository interface combining read/write operations."""

    pass


class ITokenRepository(ABC):
    """Refresh tokens and single-use verification tokens, stored hashed."""

    @abstractmethod
    def add_refresh_token(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        pass

    @abstractmethod
    def get_refresh_token(self, token_hash: str):
        pass

    @abstractmethod
    def revoke_refresh_token(self, token_hash: str) -> bool:
        """Revoke one token; False when it was unknown or already revoked."""
        pass

    @abstractmethod
    def revoke_all_for_user(self, user_id: str) -> int:
        pass

    @abstractmethod
    def add_verification_token(
        self, user_id: str, token_hash: str, token_type: str, expires_at: datetime
    ):
        pass

    @abstractmethod
    def get_verification_token(self, token_hash: str, token_type: str):
        pass

    @abstractmethod
    def mark_used(self, token) -> None:
        pass


class ICenterRepository(ABC):
    """Interface for diving center persistence."""

    @abstractmethod
    def get_by_id(self, center_id: str):
        pass

    @abstractmethod
    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        pass

    @abstractmethod
    def list_active(self, city: Optional[str], offset: int, limit: int):
        """Active centers and the total count, best rated first."""
        pass

    @abstractmethod
    def create(self, center):
        pass

    @abstractmethod
    def save(self, center):
        pass


class ITripRepository(ABC):
    """Interface for trip persistence."""

    @abstractmethod
    def get_by_id(self, trip_id: str):
        pass

    @abstractmethod
    def get_for_update(self, trip_id: str):
        """Load a trip holding a row lock until the next commit."""
        pass

    @abstractmethod
    def search(self, filters, offset: int, limit: int):
        pass

    @abstractmethod
    def create(self, trip):
        pass

    @abstractmethod
    def save(self, trip):
        pass

    @abstractmethod
    def delete(self, trip) -> None:
        pass

    @abstractmethod
    def count_bookings(self, trip_id: str) -> int:
        pass


class IBookingRepository(ABC):
    """Interface for booking persistence."""

    @abstractmethod
    def get_by_id(self, booking_id: str):
        pass

    @abstractmethod
    def find_active_for_user(self, trip_id: str, user_id: str):
        """Pending, confirmed or paid booking of ``user_id`` on the trip."""
        pass

    @abstractmethod
    def create_reserving_spots(self, booking, trip):
        """Insert ``booking`` and add its divers to the trip head count."""
        pass

    @abstractmethod
    def release_spots(self, booking, trip):
        pass

    @abstractmethod
    def save(self, booking):
        pass


class IPaymentRepository(ABC):
    """Interface for payment persistence."""

    @abstractmethod
    def get_by_id(self, payment_id: str):
        pass

    @abstractmethod
    def get_by_checkout_id(self, checkout_id: str):
        pass

    @abstractmethod
    def get_pending_for_booking(self, booking_id: str):
        pass

    @abstractmethod
    def create(self, payment):
        pass

    @abstractmethod
    def save(self, payment, *related):
        pass


class INotificationRepository(ABC):
    """Interface for stored notifications."""

    @abstractmethod
    def get_by_id(self, notification_id: str):
        pass

    @abstractmethod
    def create(self, notification):
        pass

    @abstractmethod
    def save(self, notification):
        pass

    @abstractmethod
    def count_unread(self, user_id: str) -> int:
        pass

    @abstractmethod
    def mark_read(self, user_id: str, notification_ids: Optional[Iterable[str]] = None) -> int:
        pass


class IPaymentGateway(ABC):
    """Card/wallet payment gateway."""

    @abstractmethod
    def prepare_checkout(
        self,
        payment_id: str,
        amount: Decimal,
        payment_method: str,
        customer: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Create a hosted checkout; returns ``checkout_id`` and ``expires_at``."""
        pass

    @abstractmethod
    def get_payment_status(self, resource_path: str, payment_method: str):
        pass

    @abstractmethod
    def refund(self, gateway_payment_id: str, amount: Decimal, payment_method: str):
        pass

    @abstractmethod
    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        pass


class INotificationProvider(ABC):
    """A delivery channel backend (SMTP, SMS gateway, push service)."""

    @abstractmethod
    def send(self, recipient: Any, title: str, body: str, data: Optional[Dict[str, Any]] = None):
        """Deliver one message and return a ``DeliveryResult``."""
        pass
