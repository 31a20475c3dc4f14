"""
Payments for bookings through the HyperPay gateway.

A payment row is created per checkout attempt. Gateway outcomes (status
polling or webhook) only move a payment out of ``pending``/``processing``,
so replays of the same result leave the row untouched.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from dive_platform.core.exceptions import (
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from dive_platform.db.base import Payment
from dive_platform.domain.entities import GatewayResult, money
from dive_platform.domain.enums import (
    BookingStatus,
    NotificationType,
    PaymentStatus,
    UserRole,
)
from dive_platform.domain.interfaces import IBookingRepository, IPaymentGateway, IPaymentRepository
from dive_platform.repositories.payment_repository import PaymentFilters
from dive_platform.schemas.payments import CheckoutRequest, RefundRequest
from dive_platform.services.center_service import CenterService
from dive_platform.services.hyperpay_client import parse_result
from dive_platform.services.notification_service import NotificationService
from dive_platform.utils.date_utils import ensure_aware, utcnow
from dive_platform.utils.pagination import offset_for, paginate

logger = logging.getLogger(__name__)

PAYABLE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value)
REFUNDABLE_PAYMENT_STATUSES = (
    PaymentStatus.COMPLETED.value,
    PaymentStatus.PARTIALLY_REFUNDED.value,
)


class PaymentService:
    def __init__(
        self,
        payment_repo: IPaymentRepository,
        booking_repo: IBookingRepository,
        center_service: CenterService,
        gateway: IPaymentGateway,
        notification_service: NotificationService,
    ):
        self.payment_repo = payment_repo
        self.booking_repo = booking_repo
        self.center_service = center_service
        self.gateway = gateway
        self.notifications = notification_service

    # ------------------- Checkout -------------------

    def _checkout_response(self, payment: Payment, return_url: str) -> Dict[str, Any]:
        return {
            "checkout_id": payment.gateway_checkout_id,
            "payment_id": payment.id,
            "form_url": f"{return_url}?checkoutId={payment.gateway_checkout_id}",
            "expires_at": ensure_aware(payment.checkout_expires_at),
            "widget_url": getattr(self.gateway, "widget_url", None),
        }

    def initiate_checkout(
        self,
        actor,
        request: CheckoutRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        booking = self.booking_repo.get_by_id(request.booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        if booking.user_id != actor.id:
            raise ForbiddenError("You can only pay for your own bookings")
        if booking.status not in PAYABLE_BOOKING_STATUSES:
            raise ValidationError("Booking is not awaiting payment")

        existing = self.payment_repo.get_pending_for_booking(booking.id)
        if existing is not None:
            expires_at = ensure_aware(existing.checkout_expires_at)
            if existing.gateway_checkout_id and expires_at and expires_at > utcnow():
                logger.info(
                    "Reusing open checkout",
                    extra={"context": {"payment_id": existing.id, "booking_id": booking.id}},
                )
                return self._checkout_response(existing, request.return_url)
            existing.status = PaymentStatus.FAILED.value
            existing.failed_at = utcnow()
            existing.failure_reason = "Checkout expired or replaced"
            self.payment_repo.save(existing)

        payment = self.payment_repo.create(
            Payment(
                booking_id=booking.id,
                user_id=actor.id,
                amount_sar=money(booking.total_amount),
                currency=booking.currency or "SAR",
                payment_method=request.payment_method,
                payment_gateway="hyperpay",
                status=PaymentStatus.PENDING.value,
                gateway_response={},
                refund_amount_sar=Decimal("0.00"),
                ip_address=ip_address,
                user_agent=(user_agent or "")[:500] or None,
            )
        )
        checkout = self.gateway.prepare_checkout(
            payment.id,
            payment.amount_sar,
            payment.payment_method,
            {"email": actor.email, "ip": ip_address, "booking_id": booking.id},
        )
        payment.gateway_checkout_id = checkout["checkout_id"]
        payment.checkout_expires_at = checkout["expires_at"]
        payment = self.payment_repo.save(payment)
        logger.info(
            "Checkout prepared",
            extra={
                "context": {
                    "payment_id": payment.id,
                    "booking_id": booking.id,
                    "amount": str(payment.amount_sar),
                }
            },
        )
        return self._checkout_response(payment, request.return_url)

    # ------------------- Gateway results -------------------

    def _apply_result(self, payment: Payment, result: GatewayResult) -> Payment:
        if payment.status not in OPEN_PAYMENT_STATUSES:
            logger.info(
                "Ignoring gateway result for settled payment",
                extra={"context": {"payment_id": payment.id, "status": payment.status}},
            )
            return payment

        now = utcnow()
        payment.gateway_response = result.raw
        booking = payment.booking
        data = {
            "payment_id": payment.id,
            "booking_id": payment.booking_id,
            "booking_number": booking.booking_number if booking else "",
            "amount": str(payment.amount_sar),
        }

        if result.is_success:
            payment.status = PaymentStatus.COMPLETED.value
            payment.paid_at = now
            payment.gateway_transaction_id = result.transaction_id
            related = []
            if booking is not None and booking.status in PAYABLE_BOOKING_STATUSES:
                booking.status = BookingStatus.PAID.value
                related.append(booking)
            payment = self.payment_repo.save(payment, *related)
            logger.info(
                "Payment completed",
                extra={"context": {"payment_id": payment.id, "transaction_id": result.transaction_id}},
            )
            self.notifications.notify(
                payment.user_id,
                NotificationType.PAYMENT_SUCCESSFUL.value,
                "Payment received",
                f"We received {payment.amount_sar} SAR.",
                data=data,
            )
        elif result.is_pending:
            payment.status = PaymentStatus.PROCESSING.value
            payment = self.payment_repo.save(payment)
        else:
            payment.status = PaymentStatus.FAILED.value
            payment.failed_at = now
            payment.failure_reason = (result.description or result.code or "Payment failed")[:500]
            payment = self.payment_repo.save(payment)
            logger.warning(
                "Payment failed",
                extra={"context": {"payment_id": payment.id, "code": result.code}},
            )
            data["reason"] = payment.failure_reason
            self.notifications.notify(
                payment.user_id,
                NotificationType.PAYMENT_FAILED.value,
                "Payment failed",
                f"Your payment failed: {payment.failure_reason}",
                data=data,
            )
        return payment

    def check_status(self, checkout_id: str, resource_path: Optional[str] = None) -> Payment:
        payment = self.payment_repo.get_by_checkout_id(checkout_id)
        if payment is None:
            raise NotFoundError("Payment")
        if payment.status not in OPEN_PAYMENT_STATUSES:
            return payment
        path = resource_path or f"/v1/checkouts/{checkout_id}/payment"
        result = self.gateway.get_payment_status(path, payment.payment_method)
        return self._apply_result(payment, result)

    def handle_webhook(
        self, raw_body: bytes, signature: Optional[str], payload: Dict[str, Any]
    ) -> Optional[Payment]:
        """Apply a signed gateway notification; unknown payments are acknowledged and ignored."""
        if not self.gateway.verify_webhook_signature(raw_body, signature):
            logger.warning("Invalid webhook signature")
            raise ValidationError("Invalid webhook signature")

        body = payload.get("payload") if isinstance(payload.get("payload"), dict) else payload
        custom = body.get("customParameters") or {}
        payment_id = custom.get("paymentId") or body.get("merchantTransactionId")
        if not payment_id:
            logger.warning(
                "Webhook missing paymentId", extra={"context": {"transaction_id": body.get("id")}}
            )
            return None

        payment = self.payment_repo.get_by_id(payment_id)
        if payment is None:
            logger.warning(
                "Payment not found for webhook",
                extra={"context": {"payment_id": payment_id, "transaction_id": body.get("id")}},
            )
            return None

        result = parse_result(body)
        return self._apply_result(payment, result)

    # ------------------- Refunds -------------------

    def refund(self, payment_id: str, actor, request: RefundRequest) -> Payment:
        payment = self._get(payment_id)
        booking = payment.booking
        if actor.role != UserRole.ADMIN.value:
            self.center_service.verify_ownership(booking.center_id, actor)
        if payment.status not in REFUNDABLE_PAYMENT_STATUSES:
            raise ValidationError("Only completed payments can be refunded")

        already = money(payment.refund_amount_sar)
        remaining = money(payment.amount_sar) - already
        amount = money(request.amount) if request.amount is not None else remaining
        if amount > money(payment.amount_sar):
            raise ValidationError("Refund amount exceeds the payment amount")
        if amount > remaining or amount <= 0:
            raise ValidationError(f"Refund amount exceeds the refundable amount ({remaining})")
        if not payment.gateway_transaction_id:
            raise ValidationError("Payment has no gateway transaction to refund")

        result = self.gateway.refund(payment.gateway_transaction_id, amount, payment.payment_method)
        if not result.is_success:
            logger.error(
                "Gateway refund rejected",
                extra={"context": {"payment_id": payment.id, "code": result.code}},
            )
            raise ExternalServiceError("HyperPay", f"Refund failed: {result.description or result.code}")

        total_refunded = already + amount
        fully_refunded = total_refunded >= money(payment.amount_sar)
        payment.refund_amount_sar = total_refunded
        payment.refund_reason = request.reason
        payment.refunded_at = utcnow()
        payment.status = (
            PaymentStatus.REFUNDED.value if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED.value
        )
        booking.refund_amount = money(booking.refund_amount) + amount
        if fully_refunded:
            booking.status = BookingStatus.REFUNDED.value
        payment = self.payment_repo.save(payment, booking)
        logger.info(
            "Payment refunded",
            extra={
                "context": {
                    "payment_id": payment.id,
                    "amount": str(amount),
                    "status": payment.status,
                }
            },
        )
        self.notifications.notify(
            payment.user_id,
            NotificationType.REFUND_PROCESSED.value,
            "Refund processed",
            f"A refund of {amount} SAR was issued.",
            data={
                "payment_id": payment.id,
                "booking_id": booking.id,
                "booking_number": booking.booking_number,
                "amount": str(amount),
            },
        )
        return payment

    # ------------------- Read -------------------

    def _get(self, payment_id: str) -> Payment:
        payment = self.payment_repo.get_by_id(payment_id)
        if payment is None:
            raise NotFoundError("Payment")
        return payment

    def _can_view(self, payment: Payment, actor) -> bool:
        if payment.user_id == actor.id or actor.role == UserRole.ADMIN.value:
            return True
        booking = payment.booking
        if booking is None:
            return False
        center = self.center_service.get_center(booking.center_id)
        return center.owner_user_id == actor.id

    def get_payment(self, payment_id: str, actor) -> Payment:
        payment = self._get(payment_id)
        if not self._can_view(payment, actor):
            raise ForbiddenError("Not authorized to view this payment")
        return payment

    def payments_for_booking(self, booking_id: str, actor, page: int, limit: int) -> Dict[str, Any]:
        booking = self.booking_repo.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        if booking.user_id != actor.id and actor.role != UserRole.ADMIN.value:
            self.center_service.verify_ownership(booking.center_id, actor)
        return self.list_payments(PaymentFilters(booking_id=booking_id), page, limit)

    def my_payments(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        return self.list_payments(PaymentFilters(user_id=user_id), page, limit)

    def list_payments(self, filters: PaymentFilters, page: int, limit: int) -> Dict[str, Any]:
        items, total = self.payment_repo.search(filters, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)
