"""DTOs for bookings, price quotes, waivers and the waiting list."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.schemas.common import FieldParser, ResponseDTO, collect_fields, text_field

MAX_DIVERS_PER_BOOKING = 20


def _parse_divers(data: Dict[str, Any], result: ValidationResult) -> int:
    divers = Validator.integer(
        data.get("number_of_divers"),
        "number_of_divers",
        result,
        min_value=1,
        max_value=MAX_DIVERS_PER_BOOKING,
    )
    return divers or 1


@dataclass
class PriceQuoteRequest:
    number_of_divers: int = 1
    needs_equipment: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceQuoteRequest":
        result = ValidationResult()
        divers = _parse_divers(data, result)
        needs_equipment = Validator.boolean(data.get("needs_equipment"), "needs_equipment", result)
        result.raise_if_invalid()
        return cls(number_of_divers=divers, needs_equipment=bool(needs_equipment))


BOOKING_DETAIL_FIELDS: Dict[str, FieldParser] = {
    "special_requests": text_field("special_requests", 1000),
    "dietary_requirements": text_field("dietary_requirements", 500),
    "equipment_sizes": lambda v, r: Validator.mapping(v, "equipment_sizes", r),
}


@dataclass
class BookingCreateRequest:
    number_of_divers: int = 1
    needs_equipment: bool = False
    special_requests: Optional[str] = None
    dietary_requirements: Optional[str] = None
    equipment_sizes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookingCreateRequest":
        quote = PriceQuoteRequest.from_dict(data)
        details = collect_fields(data, BOOKING_DETAIL_FIELDS, partial=False)
        return cls(
            number_of_divers=quote.number_of_divers,
            needs_equipment=quote.needs_equipment,
            special_requests=details["special_requests"],
            dietary_requirements=details["dietary_requirements"],
            equipment_sizes=details["equipment_sizes"] or {},
        )


@dataclass
class BookingUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookingUpdateRequest":
        return cls(changes=collect_fields(data, BOOKING_DETAIL_FIELDS, partial=True))


@dataclass
class CancelBookingRequest:
    reason: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CancelBookingRequest":
        result = ValidationResult()
        reason = Validator.string(
            data.get("reason"), "reason", result, min_length=10, max_length=500, required=True
        )
        result.raise_if_invalid()
        return cls(reason=reason)


@dataclass
class WaiverRequest:
    signature: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaiverRequest":
        result = ValidationResult()
        signature = Validator.string(
            data.get("signature"), "signature", result, max_length=100000, required=True
        )
        if data.get("agreed_to_terms") is not True:
            result.add_error("agreed_to_terms", "You must agree to the terms")
        result.raise_if_invalid()
        return cls(signature=signature)


@dataclass
class WaitlistJoinRequest:
    number_of_divers: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaitlistJoinRequest":
        result = ValidationResult()
        divers = _parse_divers(data, result)
        result.raise_if_invalid()
        return cls(number_of_divers=divers)


@dataclass
class BookingResponse(ResponseDTO):
    id: str
    booking_number: str
    trip_id: str
    user_id: str
    center_id: str
    status: str
    number_of_divers: int
    base_price: Decimal
    equipment_rental: Decimal
    conservation_fee: Decimal
    insurance_fee: Decimal
    platform_fee: Decimal
    vat_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str
    special_requests: Optional[str]
    dietary_requirements: Optional[str]
    equipment_sizes: Dict[str, Any]
    waiver_signed: bool
    waiver_signed_at: Optional[datetime]
    parent_consent_required: bool
    checked_in_at: Optional[datetime]
    cancellation_reason: Optional[str]
    cancelled_at: Optional[datetime]
    refund_amount: Decimal
    trip: Optional[Dict[str, Any]]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, booking) -> "BookingResponse":
        trip = booking.trip
        return cls(
            id=booking.id,
            booking_number=booking.booking_number,
            trip_id=booking.trip_id,
            user_id=booking.user_id,
            center_id=booking.center_id,
            status=booking.status,
            number_of_divers=booking.number_of_divers,
            base_price=booking.base_price,
            equipment_rental=booking.equipment_rental,
            conservation_fee=booking.conservation_fee,
            insurance_fee=booking.insurance_fee,
            platform_fee=booking.platform_fee,
            vat_amount=booking.vat_amount,
            discount_amount=booking.discount_amount,
            total_amount=booking.total_amount,
            currency=booking.currency,
            special_requests=booking.special_requests,
            dietary_requirements=booking.dietary_requirements,
            equipment_sizes=dict(booking.equipment_sizes or {}),
            waiver_signed=booking.waiver_signed_at is not None,
            waiver_signed_at=booking.waiver_signed_at,
            parent_consent_required=bool(booking.parent_consent_required),
            checked_in_at=booking.checked_in_at,
            cancellation_reason=booking.cancellation_reason,
            cancelled_at=booking.cancelled_at,
            refund_amount=booking.refund_amount or Decimal("0"),
            trip=(
                {
                    "id": trip.id,
                    "title_en": trip.title_en,
                    "title_ar": trip.title_ar,
                    "departure_datetime": trip.departure_datetime,
                    "return_datetime": trip.return_datetime,
                    "status": trip.status,
                }
                if trip is not None
                else None
            ),
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


@dataclass
class WaitingListResponse(ResponseDTO):
    id: str
    trip_id: str
    user_id: str
    number_of_divers: int
    position: int
    notified_at: Optional[datetime]
    expires_at: Optional[datetime]
    created_at: Optional[datetime]
    user: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, entry) -> "WaitingListResponse":
        user = entry.user
        return cls(
            id=entry.id,
            trip_id=entry.trip_id,
            user_id=entry.user_id,
            number_of_divers=entry.number_of_divers,
            position=entry.position,
            notified_at=entry.notified_at,
            expires_at=entry.expires_at,
            created_at=entry.created_at,
            user=(
                {"id": user.id, "full_name": user.full_name, "email": user.email}
                if user is not None
                else None
            ),
        )
