"""DTOs for checkout, refunds and payment listings."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.domain.enums import PaymentMethod, PaymentStatus
from dive_platform.schemas.common import ResponseDTO


@dataclass
class CheckoutRequest:
    booking_id: str
    payment_method: str
    return_url: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutRequest":
        result = ValidationResult()
        booking_id = Validator.string(
            data.get("booking_id"), "booking_id", result, max_length=36, required=True
        )
        method = Validator.string(
            data.get("payment_method"),
            "payment_method",
            result,
            required=True,
            choices=PaymentMethod.values(),
        )
        return_url = Validator.string(
            data.get("return_url"), "return_url", result, max_length=2000, required=True
        )
        if return_url and not return_url.startswith(("http://", "https://")):
            result.add_error("return_url", "return_url must be an http(s) URL")
        result.raise_if_invalid()
        return cls(booking_id=booking_id, payment_method=method, return_url=return_url)


@dataclass
class RefundRequest:
    reason: str
    amount: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefundRequest":
        result = ValidationResult()
        amount = Validator.decimal(
            data.get("amount"), "amount", result, min_value=Decimal("0"), exclusive_min=True
        )
        reason = Validator.string(
            data.get("reason"), "reason", result, min_length=1, max_length=500, required=True
        )
        result.raise_if_invalid()
        return cls(reason=reason, amount=amount)


@dataclass
class PaymentQuery:
    status: Optional[str] = None
    booking_id: Optional[str] = None
    user_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "PaymentQuery":
        result = ValidationResult()
        status = Validator.string(
            args.get("status"), "status", result, choices=PaymentStatus.values()
        )
        date_from = Validator.datetime_value(args.get("date_from"), "date_from", result)
        date_to = Validator.datetime_value(args.get("date_to"), "date_to", result)
        result.raise_if_invalid("Invalid query parameters")
        return cls(
            status=status,
            booking_id=args.get("booking_id") or None,
            user_id=args.get("user_id") or None,
            date_from=date_from,
            date_to=date_to,
        )


@dataclass
class PaymentResponse(ResponseDTO):
    id: str
    booking_id: str
    user_id: str
    amount_sar: Decimal
    currency: str
    payment_method: str
    payment_gateway: str
    gateway_checkout_id: Optional[str]
    gateway_transaction_id: Optional[str]
    status: str
    paid_at: Optional[datetime]
    failed_at: Optional[datetime]
    failure_reason: Optional[str]
    refunded_at: Optional[datetime]
    refund_amount_sar: Decimal
    refund_reason: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            booking_id=payment.booking_id,
            user_id=payment.user_id,
            amount_sar=payment.amount_sar,
            currency=payment.currency,
            payment_method=payment.payment_method,
            payment_gateway=payment.payment_gateway,
            gateway_checkout_id=payment.gateway_checkout_id,
            gateway_transaction_id=payment.gateway_transaction_id,
            status=payment.status,
            paid_at=payment.paid_at,
            failed_at=payment.failed_at,
            failure_reason=payment.failure_reason,
            refunded_at=payment.refunded_at,
            refund_amount_sar=payment.refund_amount_sar or Decimal("0"),
            refund_reason=payment.refund_reason,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )
