"""DTOs for trips and trip instructor assignments."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.domain.enums import (
    CERTIFICATION_LADDER,
    TripInstructorRole,
    TripStatus,
    TripType,
)
from dive_platform.schemas.common import (
    FieldParser,
    ResponseDTO,
    collect_fields,
    text_field,
    to_float,
)
from dive_platform.utils.date_utils import ensure_aware, utcnow


def _int(name: str, low: int, high: int, required: bool = False) -> FieldParser:
    return lambda v, r: Validator.integer(
        v, name, r, min_value=low, max_value=high, required=required
    )


def _bool(name: str) -> FieldParser:
    return lambda v, r: Validator.boolean(v, name, r)


def _coordinate(name: str, bound: int) -> FieldParser:
    return lambda v, r: to_float(
        Validator.decimal(v, name, r, min_value=Decimal(-bound), max_value=Decimal(bound))
    )


TRIP_FIELDS: Dict[str, FieldParser] = {
    "title_en": text_field("title_en", 200, min_length=3, required=True),
    "title_ar": text_field("title_ar", 200),
    "description_en": text_field("description_en", 5000),
    "description_ar": text_field("description_ar", 5000),
    "trip_type": lambda v, r: Validator.string(
        v, "trip_type", r, required=True, choices=TripType.values()
    ),
    "vessel_id": text_field("vessel_id", 36),
    "site_id": text_field("site_id", 36),
    "departure_datetime": lambda v, r: Validator.datetime_value(
        v, "departure_datetime", r, required=True
    ),
    "return_datetime": lambda v, r: Validator.datetime_value(
        v, "return_datetime", r, required=True
    ),
    "meeting_point_en": text_field("meeting_point_en", 500),
    "meeting_point_ar": text_field("meeting_point_ar", 500),
    "meeting_point_lat": _coordinate("meeting_point_lat", 90),
    "meeting_point_long": _coordinate("meeting_point_long", 180),
    "max_participants": _int("max_participants", 1, 100, required=True),
    "min_participants": _int("min_participants", 1, 100),
    "min_certification_level": lambda v, r: Validator.string(
        v, "min_certification_level", r, choices=CERTIFICATION_LADDER
    ),
    "min_logged_dives": _int("min_logged_dives", 0, 10000),
    "min_age": _int("min_age", 8, 100),
    "max_age": _int("max_age", 8, 100),
    "number_of_dives": _int("number_of_dives", 1, 10),
    "includes_equipment": _bool("includes_equipment"),
    "includes_meals": _bool("includes_meals"),
    "includes_refreshments": _bool("includes_refreshments"),
    "price_per_person_sar": lambda v, r: Validator.decimal(
        v, "price_per_person_sar", r, min_value=Decimal("0"), exclusive_min=True, required=True
    ),
    "equipment_rental_price_sar": lambda v, r: Validator.decimal(
        v, "equipment_rental_price_sar", r, min_value=Decimal("0")
    ),
    "conservation_fee_included": _bool("conservation_fee_included"),
    "cancellation_policy": text_field("cancellation_policy", 2000),
    "cancellation_deadline_hours": _int("cancellation_deadline_hours", 0, 720),
}


def check_trip_rules(values: Mapping[str, Any], require_future: bool = True) -> None:
    """Cross-field checks on a complete set of trip values (create, or row merged with a PATCH)."""
    result = ValidationResult()
    departure = ensure_aware(values.get("departure_datetime"))
    arrival = ensure_aware(values.get("return_datetime"))
    if departure is not None:
        if require_future and departure <= utcnow():
            result.add_error("departure_datetime", "Departure must be in the future")
        if arrival is not None and arrival <= departure:
            result.add_error("return_datetime", "Return must be after departure")

    max_participants = values.get("max_participants")
    min_participants = values.get("min_participants")
    if max_participants and min_participants and min_participants > max_participants:
        result.add_error("min_participants", "min_participants cannot exceed max_participants")

    min_age = values.get("min_age")
    max_age = values.get("max_age")
    if min_age is not None and max_age is not None and max_age < min_age:
        result.add_error("max_age", "max_age must be greater than or equal to min_age")
    result.raise_if_invalid()


@dataclass
class TripCreateRequest:
    values: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TripCreateRequest":
        parsed = collect_fields(data, TRIP_FIELDS, partial=False)
        # Unset optionals fall back to column defaults
        values = {key: value for key, value in parsed.items() if value is not None}
        check_trip_rules(values)
        return cls(values=values)


@dataclass
class TripUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TripUpdateRequest":
        return cls(changes=collect_fields(data, TRIP_FIELDS, partial=True))


@dataclass
class TripQuery:
    status: Optional[str] = None
    center_id: Optional[str] = None
    site_id: Optional[str] = None
    trip_type: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    upcoming: bool = False

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "TripQuery":
        result = ValidationResult()
        status = Validator.string(args.get("status"), "status", result, choices=TripStatus.values())
        trip_type = Validator.string(
            args.get("trip_type"), "trip_type", result, choices=TripType.values()
        )
        date_from = Validator.datetime_value(args.get("date_from"), "date_from", result)
        date_to = Validator.datetime_value(args.get("date_to"), "date_to", result)
        result.raise_if_invalid("Invalid query parameters")
        upcoming = (args.get("upcoming") or "").lower() in ("true", "1", "yes")
        return cls(
            status=status,
            center_id=args.get("center_id") or None,
            site_id=args.get("site_id") or None,
            trip_type=trip_type,
            date_from=date_from,
            date_to=date_to,
            upcoming=upcoming,
        )


@dataclass
class TripInstructorRequest:
    instructor_id: str
    role: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TripInstructorRequest":
        result = ValidationResult()
        instructor_id = Validator.string(
            data.get("instructor_id"), "instructor_id", result, max_length=36, required=True
        )
        role = Validator.string(
            data.get("role"), "role", result, choices=TripInstructorRole.values()
        )
        result.raise_if_invalid()
        return cls(instructor_id=instructor_id, role=role or TripInstructorRole.ASSISTANT.value)


@dataclass
class TripResponse(ResponseDTO):
    id: str
    center_id: str
    vessel_id: Optional[str]
    site_id: Optional[str]
    lead_instructor_id: Optional[str]
    title_en: str
    title_ar: Optional[str]
    description_en: Optional[str]
    description_ar: Optional[str]
    trip_type: str
    departure_datetime: datetime
    return_datetime: datetime
    meeting_point_en: Optional[str]
    meeting_point_ar: Optional[str]
    meeting_point_lat: Optional[float]
    meeting_point_long: Optional[float]
    max_participants: int
    min_participants: int
    current_participants: int
    available_spots: int
    min_certification_level: Optional[str]
    min_logged_dives: int
    min_age: int
    max_age: Optional[int]
    number_of_dives: int
    includes_equipment: bool
    includes_meals: bool
    includes_refreshments: bool
    price_per_person_sar: Decimal
    equipment_rental_price_sar: Optional[Decimal]
    conservation_fee_included: bool
    cancellation_policy: Optional[str]
    cancellation_deadline_hours: int
    status: str
    published_at: Optional[datetime]
    center: Optional[Dict[str, Any]]
    site: Optional[Dict[str, Any]]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, trip) -> "TripResponse":
        center = trip.center
        site = trip.site
        return cls(
            id=trip.id,
            center_id=trip.center_id,
            vessel_id=trip.vessel_id,
            site_id=trip.site_id,
            lead_instructor_id=trip.lead_instructor_id,
            title_en=trip.title_en,
            title_ar=trip.title_ar,
            description_en=trip.description_en,
            description_ar=trip.description_ar,
            trip_type=trip.trip_type,
            departure_datetime=trip.departure_datetime,
            return_datetime=trip.return_datetime,
            meeting_point_en=trip.meeting_point_en,
            meeting_point_ar=trip.meeting_point_ar,
            meeting_point_lat=trip.meeting_point_lat,
            meeting_point_long=trip.meeting_point_long,
            max_participants=trip.max_participants,
            min_participants=trip.min_participants,
            current_participants=trip.current_participants or 0,
            available_spots=trip.available_spots,
            min_certification_level=trip.min_certification_level,
            min_logged_dives=trip.min_logged_dives or 0,
            min_age=trip.min_age,
            max_age=trip.max_age,
            number_of_dives=trip.number_of_dives,
            includes_equipment=bool(trip.includes_equipment),
            includes_meals=bool(trip.includes_meals),
            includes_refreshments=bool(trip.includes_refreshments),
            price_per_person_sar=trip.price_per_person_sar,
            equipment_rental_price_sar=trip.equipment_rental_price_sar,
            conservation_fee_included=bool(trip.conservation_fee_included),
            cancellation_policy=trip.cancellation_policy,
            cancellation_deadline_hours=trip.cancellation_deadline_hours,
            status=trip.status,
            published_at=trip.published_at,
            center=(
                {
                    "id": center.id,
                    "name_en": center.name_en,
                    "name_ar": center.name_ar,
                    "slug": center.slug,
                    "city": center.city,
                }
                if center is not None
                else None
            ),
            site=(
                {
                    "id": site.id,
                    "name_en": site.name_en,
                    "name_ar": site.name_ar,
                    "conservation_fee_sar": site.conservation_fee_sar,
                }
                if site is not None
                else None
            ),
            created_at=trip.created_at,
            updated_at=trip.updated_at,
        )


@dataclass
class TripInstructorResponse(ResponseDTO):
    id: str
    trip_id: str
    instructor_id: str
    role: str
    instructor: Optional[Dict[str, Any]]

    @classmethod
    def from_domain(cls, assignment) -> "TripInstructorResponse":
        user = assignment.instructor
        return cls(
            id=assignment.id,
            trip_id=assignment.trip_id,
            instructor_id=assignment.instructor_id,
            role=assignment.role,
            instructor=(
                {"id": user.id, "full_name": user.full_name, "email": user.email}
                if user is not None
                else None
            ),
        )
