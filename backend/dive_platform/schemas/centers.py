"""DTOs for diving centers, vessels and staff."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.domain.enums import CenterStatus, StaffRole, VesselStatus
from dive_platform.schemas.common import (
    FieldParser,
    ResponseDTO,
    collect_fields,
    text_field,
    to_float,
)


def _coordinate(field_name: str, bound: int):
    return lambda value, result: to_float(
        Validator.decimal(
            value, field_name, result, min_value=Decimal(-bound), max_value=Decimal(bound)
        )
    )


CENTER_FIELDS: Dict[str, FieldParser] = {
    "name_en": text_field("name_en", 200, min_length=2, required=True),
    "name_ar": text_field("name_ar", 200),
    "description_en": text_field("description_en", 5000),
    "description_ar": text_field("description_ar", 5000),
    "srsa_license_number": text_field("srsa_license_number", 50, required=True),
    "license_expiry_date": lambda v, r: Validator.date_value(v, "license_expiry_date", r),
    "city": text_field("city", 100, required=True),
    "address_en": text_field("address_en", 500),
    "address_ar": text_field("address_ar", 500),
    "latitude": _coordinate("latitude", 90),
    "longitude": _coordinate("longitude", 180),
    "phone_emergency": text_field("phone_emergency", 20),
    "email": lambda v, r: Validator.email(v, "email", r),
    "website": text_field("website", 255),
}


@dataclass
class CenterCreateRequest:
    values: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CenterCreateRequest":
        return cls(values=collect_fields(data, CENTER_FIELDS, partial=False))


@dataclass
class CenterUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CenterUpdateRequest":
        return cls(changes=collect_fields(data, CENTER_FIELDS, partial=True))


@dataclass
class CenterStatusRequest:
    status: str
    reason: Optional[str] = None

    ALLOWED = (
        CenterStatus.PENDING_VERIFICATION.value,
        CenterStatus.ACTIVE.value,
        CenterStatus.SUSPENDED.value,
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CenterStatusRequest":
        result = ValidationResult()
        status = Validator.string(
            data.get("status"), "status", result, required=True, choices=cls.ALLOWED
        )
        reason = Validator.string(data.get("reason"), "reason", result, max_length=500)
        result.raise_if_invalid()
        return cls(status=status, reason=reason)


@dataclass
class CenterResponse(ResponseDTO):
    id: str
    owner_user_id: str
    name_en: str
    name_ar: Optional[str]
    slug: str
    description_en: Optional[str]
    description_ar: Optional[str]
    srsa_license_number: str
    license_expiry_date: Optional[date]
    city: str
    address_en: Optional[str]
    address_ar: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    phone_emergency: Optional[str]
    email: Optional[str]
    website: Optional[str]
    rating_average: Decimal
    total_reviews: int
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, center) -> "CenterResponse":
        return cls(
            id=center.id,
            owner_user_id=center.owner_user_id,
            name_en=center.name_en,
            name_ar=center.name_ar,
            slug=center.slug,
            description_en=center.description_en,
            description_ar=center.description_ar,
            srsa_license_number=center.srsa_license_number,
            license_expiry_date=center.license_expiry_date,
            city=center.city,
            address_en=center.address_en,
            address_ar=center.address_ar,
            latitude=center.latitude,
            longitude=center.longitude,
            phone_emergency=center.phone_emergency,
            email=center.email,
            website=center.website,
            rating_average=center.rating_average or Decimal("0"),
            total_reviews=center.total_reviews or 0,
            status=center.status,
            created_at=center.created_at,
            updated_at=center.updated_at,
        )


# ------------------- Vessels -------------------

VESSEL_FIELDS: Dict[str, FieldParser] = {
    "name": text_field("name", 100, min_length=1, required=True),
    "name_ar": text_field("name_ar", 100),
    "registration_number": text_field("registration_number", 50),
    "vessel_type": text_field("vessel_type", 50),
    "capacity": lambda v, r: Validator.integer(
        v, "capacity", r, min_value=1, max_value=500, required=True
    ),
    "diver_capacity": lambda v, r: Validator.integer(
        v, "diver_capacity", r, min_value=1, max_value=500, required=True
    ),
    "safety_equipment": lambda v, r: Validator.string_list(v, "safety_equipment", r),
    "status": lambda v, r: Validator.string(
        v,
        "status",
        r,
        choices=(VesselStatus.ACTIVE.value, VesselStatus.MAINTENANCE.value),
    ),
}


def check_diver_capacity(capacity: Optional[int], diver_capacity: Optional[int]) -> None:
    if capacity is None or diver_capacity is None:
        return
    if diver_capacity > capacity:
        result = ValidationResult()
        result.add_error("diver_capacity", "diver_capacity cannot exceed capacity")
        result.raise_if_invalid()


@dataclass
class VesselCreateRequest:
    values: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VesselCreateRequest":
        values = collect_fields(data, VESSEL_FIELDS, partial=False)
        check_diver_capacity(values["capacity"], values["diver_capacity"])
        if values.get("safety_equipment") is None:
            values["safety_equipment"] = []
        if values.get("status") is None:
            values["status"] = VesselStatus.ACTIVE.value
        return cls(values=values)


@dataclass
class VesselUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VesselUpdateRequest":
        return cls(changes=collect_fields(data, VESSEL_FIELDS, partial=True))


@dataclass
class VesselResponse(ResponseDTO):
    id: str
    center_id: str
    name: str
    name_ar: Optional[str]
    registration_number: Optional[str]
    vessel_type: Optional[str]
    capacity: int
    diver_capacity: int
    safety_equipment: List[str]
    status: str
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, vessel) -> "VesselResponse":
        return cls(
            id=vessel.id,
            center_id=vessel.center_id,
            name=vessel.name,
            name_ar=vessel.name_ar,
            registration_number=vessel.registration_number,
            vessel_type=vessel.vessel_type,
            capacity=vessel.capacity,
            diver_capacity=vessel.diver_capacity,
            safety_equipment=list(vessel.safety_equipment or []),
            status=vessel.status,
            created_at=vessel.created_at,
        )


# ------------------- Staff -------------------

STAFF_FIELDS: Dict[str, FieldParser] = {
    "role": lambda v, r: Validator.string(
        v, "role", r, required=True, choices=StaffRole.values()
    ),
    "title_en": text_field("title_en", 100),
    "title_ar": text_field("title_ar", 100),
    "permissions": lambda v, r: Validator.mapping(v, "permissions", r),
    "employment_type": text_field("employment_type", 30),
}


@dataclass
class StaffAddRequest:
    user_email: str
    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaffAddRequest":
        result = ValidationResult()
        email = Validator.email(data.get("user_email"), "user_email", result, required=True)
        result.raise_if_invalid()
        values = collect_fields(data, STAFF_FIELDS, partial=False)
        if values.get("permissions") is None:
            values["permissions"] = {}
        return cls(user_email=email, values=values)


@dataclass
class StaffUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaffUpdateRequest":
        parsers = dict(STAFF_FIELDS)
        parsers["is_active"] = lambda v, r: Validator.boolean(v, "is_active", r)
        return cls(changes=collect_fields(data, parsers, partial=True))


@dataclass
class StaffResponse(ResponseDTO):
    id: str
    center_id: str
    user_id: str
    role: str
    title_en: Optional[str]
    title_ar: Optional[str]
    permissions: Dict[str, Any]
    employment_type: Optional[str]
    hired_at: Optional[datetime]
    terminated_at: Optional[datetime]
    is_active: bool
    user: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, staff) -> "StaffResponse":
        user = staff.user
        return cls(
            id=staff.id,
            center_id=staff.center_id,
            user_id=staff.user_id,
            role=staff.role,
            title_en=staff.title_en,
            title_ar=staff.title_ar,
            permissions=dict(staff.permissions or {}),
            employment_type=staff.employment_type,
            hired_at=staff.hired_at,
            terminated_at=staff.terminated_at,
            is_active=staff.is_active,
            user=(
                {"id": user.id, "email": user.email, "full_name": user.full_name}
                if user is not None
                else None
            ),
        )
