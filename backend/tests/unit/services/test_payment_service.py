"""
Unit tests for PaymentService: checkout, gateway results, webhooks and refunds.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock

import pytest

from dive_platform.core.exceptions import (
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from dive_platform.db.base import Booking, Payment
from dive_platform.domain.entities import GatewayResult
from dive_platform.domain.enums import BookingStatus, NotificationType, PaymentStatus, UserRole
from dive_platform.schemas.payments import CheckoutRequest, RefundRequest
from dive_platform.services.payment_service import PaymentService
from dive_platform.utils.date_utils import utcnow
from tests.factories.mock_factories import make_actor
from tests.factories.repository_factories import (
    BookingRepositoryFactory,
    PaymentRepositoryFactory,
)

SUCCESS = GatewayResult(
    code="000.100.110",
    description="Request successfully processed",
    transaction_id="8ac7a4a1",
    is_success=True,
)
PENDING = GatewayResult(code="000.200.000", description="transaction pending", is_pending=True)
DECLINED = GatewayResult(code="800.100.151", description="transaction declined (invalid card)")


def make_booking(**overrides):
    values = dict(
        id="booking-1",
        booking_number="BK250301-ABC123",
        trip_id="trip-1",
        user_id="diver-1",
        center_id="center-1",
        status=BookingStatus.PENDING.value,
        total_amount=Decimal("1237.50"),
        refund_amount=Decimal("0.00"),
        currency="SAR",
    )
    values.update(overrides)
    return Booking(**values)


def make_payment(booking=None, **overrides):
    booking = booking or make_booking()
    values = dict(
        id="payment-1",
        booking_id=booking.id,
        user_id=booking.user_id,
        amount_sar=Decimal("1237.50"),
        payment_method="MADA",
        status=PaymentStatus.PENDING.value,
        gateway_checkout_id="chk-1",
        refund_amount_sar=Decimal("0.00"),
    )
    values.update(overrides)
    payment = Payment(**values)
    payment.booking = booking
    return payment


@pytest.fixture
def payment_repo():
    return PaymentRepositoryFactory.create_mock_full()


@pytest.fixture
def booking_repo():
    return BookingRepositoryFactory.create_mock_full()


@pytest.fixture
def gateway():
    gateway = PaymentRepositoryFactory.create_gateway_mock()
    gateway.prepare_checkout.return_value = {
        "checkout_id": "chk-new",
        "expires_at": utcnow() + timedelta(minutes=15),
        "result_code": "000.200.100",
    }
    return gateway


@pytest.fixture
def center_service():
    return Mock()


@pytest.fixture
def notifications():
    return Mock()


@pytest.fixture
def service(payment_repo, booking_repo, center_service, gateway, notifications):
    return PaymentService(payment_repo, booking_repo, center_service, gateway, notifications)


@pytest.fixture
def diver():
    return make_actor(UserRole.DIVER.value, "diver-1")


def checkout_request(**overrides):
    values = dict(
        booking_id="booking-1", payment_method="MADA", return_url="https://app.example.com/pay"
    )
    values.update(overrides)
    return CheckoutRequest(**values)


class TestCheckout:
    def test_creates_payment_and_checkout(self, service, booking_repo, payment_repo, gateway, diver):
        booking_repo.get_by_id.return_value = make_booking()

        checkout = service.initiate_checkout(diver, checkout_request(), "10.0.0.1", "pytest")

        assert checkout["checkout_id"] == "chk-new"
        assert checkout["form_url"] == "https://app.example.com/pay?checkoutId=chk-new"
        created = payment_repo.create.call_args.args[0]
        assert created.amount_sar == Decimal("1237.50")
        assert created.status == PaymentStatus.PENDING.value
        assert gateway.prepare_checkout.call_args.args[2] == "MADA"

    def test_reuses_open_checkout(self, service, booking_repo, payment_repo, gateway, diver):
        booking = make_booking()
        booking_repo.get_by_id.return_value = booking
        payment_repo.get_pending_for_booking.return_value = make_payment(
            booking, checkout_expires_at=utcnow() + timedelta(minutes=5)
        )

        checkout = service.initiate_checkout(diver, checkout_request())

        assert checkout["checkout_id"] == "chk-1"
        gateway.prepare_checkout.assert_not_called()

    def test_expired_checkout_is_replaced(self, service, booking_repo, payment_repo, diver):
        booking = make_booking()
        booking_repo.get_by_id.return_value = booking
        stale = make_payment(booking, checkout_expires_at=utcnow() - timedelta(minutes=1))
        payment_repo.get_pending_for_booking.return_value = stale

        checkout = service.initiate_checkout(diver, checkout_request())

        assert stale.status == PaymentStatus.FAILED.value
        assert checkout["checkout_id"] == "chk-new"

    def test_cannot_pay_for_someone_else(self, service, booking_repo):
        booking_repo.get_by_id.return_value = make_booking()

        with pytest.raises(ForbiddenError):
            service.initiate_checkout(make_actor(UserRole.DIVER.value, "other"), checkout_request())

    def test_cancelled_booking_not_payable(self, service, booking_repo, diver):
        booking_repo.get_by_id.return_value = make_booking(status=BookingStatus.CANCELLED.value)

        with pytest.raises(ValidationError, match="not awaiting payment"):
            service.initiate_checkout(diver, checkout_request())

    def test_missing_booking(self, service, diver):
        with pytest.raises(NotFoundError):
            service.initiate_checkout(diver, checkout_request())


class TestStatusAndWebhook:
    def test_success_marks_booking_paid(self, service, payment_repo, gateway, notifications):
        payment = make_payment()
        payment_repo.get_by_checkout_id.return_value = payment
        gateway.get_payment_status.return_value = SUCCESS

        result = service.check_status("chk-1")

        assert result.status == PaymentStatus.COMPLETED.value
        assert result.gateway_transaction_id == "8ac7a4a1"
        assert payment.booking.status == BookingStatus.PAID.value
        gateway.get_payment_status.assert_called_once_with("/v1/checkouts/chk-1/payment", "MADA")
        assert notifications.notify.call_args.args[1] == NotificationType.PAYMENT_SUCCESSFUL.value

    def test_pending_moves_to_processing(self, service, payment_repo, gateway):
        payment_repo.get_by_checkout_id.return_value = make_payment()
        gateway.get_payment_status.return_value = PENDING

        assert service.check_status("chk-1").status == PaymentStatus.PROCESSING.value

    def test_decline_records_reason(self, service, payment_repo, gateway, notifications):
        payment_repo.get_by_checkout_id.return_value = make_payment()
        gateway.get_payment_status.return_value = DECLINED

        payment = service.check_status("chk-1")

        assert payment.status == PaymentStatus.FAILED.value
        assert payment.failure_reason == "transaction declined (invalid card)"
        assert notifications.notify.call_args.args[1] == NotificationType.PAYMENT_FAILED.value

    def test_settled_payment_not_polled(self, service, payment_repo, gateway):
        payment_repo.get_by_checkout_id.return_value = make_payment(status=PaymentStatus.COMPLETED.value)

        service.check_status("chk-1")

        gateway.get_payment_status.assert_not_called()

    def test_webhook_bad_signature(self, service, gateway):
        gateway.verify_webhook_signature.return_value = False

        with pytest.raises(ValidationError, match="Invalid webhook signature"):
            service.handle_webhook(b"{}", "bad", {})

    def test_webhook_applies_nested_payload(self, service, payment_repo):
        payment_repo.get_by_id.return_value = make_payment()
        body = {
            "type": "PAYMENT",
            "payload": {
                "id": "8ac7a4a1",
                "result": {"code": "000.000.000", "description": "ok"},
                "customParameters": {"paymentId": "payment-1"},
            },
        }

        payment = service.handle_webhook(b"raw", "sig", body)

        assert payment.status == PaymentStatus.COMPLETED.value
        payment_repo.get_by_id.assert_called_once_with("payment-1")

    def test_webhook_replay_is_ignored(self, service, payment_repo, notifications):
        payment_repo.get_by_id.return_value = make_payment(status=PaymentStatus.COMPLETED.value)
        body = {"id": "x", "result": {"code": "800.100.151"}, "merchantTransactionId": "payment-1"}

        payment = service.handle_webhook(b"raw", "sig", body)

        assert payment.status == PaymentStatus.COMPLETED.value
        notifications.notify.assert_not_called()

    def test_webhook_unknown_payment_acknowledged(self, service):
        body = {"id": "x", "result": {"code": "000.000.000"}, "merchantTransactionId": "ghost"}

        assert service.handle_webhook(b"raw", "sig", body) is None


class TestRefunds:
    def completed(self, **overrides):
        values = dict(status=PaymentStatus.COMPLETED.value, gateway_transaction_id="8ac7a4a1")
        values.update(overrides)
        return make_payment(make_booking(status=BookingStatus.PAID.value), **values)

    def test_full_refund(self, service, payment_repo, gateway, owner_actor):
        payment_repo.get_by_id.return_value = self.completed()
        gateway.refund.return_value = SUCCESS

        payment = service.refund("payment-1", owner_actor, RefundRequest(reason="Trip cancelled"))

        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refund_amount_sar == Decimal("1237.50")
        assert payment.booking.status == BookingStatus.REFUNDED.value
        gateway.refund.assert_called_once_with("8ac7a4a1", Decimal("1237.50"), "MADA")

    def test_partial_refund(self, service, payment_repo, gateway, owner_actor):
        payment_repo.get_by_id.return_value = self.completed()
        gateway.refund.return_value = SUCCESS

        payment = service.refund(
            "payment-1", owner_actor, RefundRequest(reason="Goodwill", amount=Decimal("200"))
        )

        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED.value
        assert payment.booking.status == BookingStatus.PAID.value
        assert payment.booking.refund_amount == Decimal("200.00")

    def test_refund_exceeding_remaining(self, service, payment_repo, owner_actor):
        payment_repo.get_by_id.return_value = self.completed(
            status=PaymentStatus.PARTIALLY_REFUNDED.value, refund_amount_sar=Decimal("1000.00")
        )

        with pytest.raises(ValidationError, match="refundable amount"):
            service.refund("payment-1", owner_actor, RefundRequest(reason="x", amount=Decimal("500")))

    def test_refund_exceeding_payment(self, service, payment_repo, owner_actor):
        payment_repo.get_by_id.return_value = self.completed()

        with pytest.raises(ValidationError, match="exceeds the payment amount"):
            service.refund("payment-1", owner_actor, RefundRequest(reason="x", amount=Decimal("5000")))

    def test_pending_payment_not_refundable(self, service, payment_repo, owner_actor):
        payment_repo.get_by_id.return_value = make_payment()

        with pytest.raises(ValidationError, match="Only completed payments"):
            service.refund("payment-1", owner_actor, RefundRequest(reason="x"))

    def test_gateway_rejection(self, service, payment_repo, gateway, owner_actor):
        payment_repo.get_by_id.return_value = self.completed()
        gateway.refund.return_value = DECLINED

        with pytest.raises(ExternalServiceError):
            service.refund("payment-1", owner_actor, RefundRequest(reason="x"))

    def test_foreign_owner_rejected(self, service, payment_repo, center_service):
        payment_repo.get_by_id.return_value = self.completed()
        center_service.verify_ownership.side_effect = ForbiddenError("Not authorized to manage this center")

        with pytest.raises(ForbiddenError):
            service.refund("payment-1", make_actor(UserRole.CENTER_OWNER.value, "x"), RefundRequest(reason="x"))
