"""DTOs for instructor profiles, schedules and dive sites."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dive_platform.core.validation import HHMM_RE, ValidationResult, Validator
from dive_platform.domain.enums import CERTIFICATION_LADDER
from dive_platform.schemas.common import (
    FieldParser,
    ResponseDTO,
    collect_fields,
    text_field,
    to_float,
)


def _non_negative_money(name: str):
    return lambda v, r: Validator.decimal(v, name, r, min_value=Decimal("0"))


INSTRUCTOR_FIELDS: Dict[str, FieldParser] = {
    "instructor_number": text_field("instructor_number", 50, min_length=1),
    "certification_agency": text_field("certification_agency", 50, min_length=1),
    "instructor_level": text_field("instructor_level", 50, min_length=1),
    "specialties": lambda v, r: Validator.string_list(v, "specialties", r),
    "languages_spoken": lambda v, r: Validator.string_list(v, "languages_spoken", r),
    "years_experience": lambda v, r: Validator.integer(
        v, "years_experience", r, min_value=0, max_value=60
    ),
    "bio_en": text_field("bio_en", 2000),
    "bio_ar": text_field("bio_ar", 2000),
    "hourly_rate_sar": _non_negative_money("hourly_rate_sar"),
    "daily_rate_sar": _non_negative_money("daily_rate_sar"),
    "is_independent": lambda v, r: Validator.boolean(v, "is_independent", r),
}


@dataclass
class InstructorUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstructorUpdateRequest":
        return cls(changes=collect_fields(data, INSTRUCTOR_FIELDS, partial=True))


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


@dataclass
class ScheduleUpdateRequest:
    """Availability calendar: ``{"YYYY-MM-DD": [{"start": "HH:MM", "end": "HH:MM"}]}``."""

    calendar: Dict[str, List[Dict[str, str]]]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleUpdateRequest":
        result = ValidationResult()
        raw = data.get("availability_calendar", data.get("calendar"))
        if not isinstance(raw, dict):
            result.add_error("availability_calendar", "availability_calendar must be an object")
            result.raise_if_invalid()

        calendar: Dict[str, List[Dict[str, str]]] = {}
        for day, slots in raw.items():
            try:
                date.fromisoformat(day)
            except (TypeError, ValueError):
                result.add_error(day, "Keys must be dates in YYYY-MM-DD format")
                continue
            if not isinstance(slots, list):
                result.add_error(day, "Each day must be a list of time slots")
                continue
            cleaned = []
            for slot in slots:
                start = slot.get("start") if isinstance(slot, dict) else None
                end = slot.get("end") if isinstance(slot, dict) else None
                if not (isinstance(start, str) and HHMM_RE.match(start)) or not (
                    isinstance(end, str) and HHMM_RE.match(end)
                ):
                    result.add_error(day, "Slots need start and end times in HH:MM format")
                    break
                if _minutes(start) >= _minutes(end):
                    result.add_error(day, "Slot start must be before end")
                    break
                cleaned.append({"start": start, "end": end})
            calendar[day] = cleaned
        result.raise_if_invalid()
        return cls(calendar=calendar)


@dataclass
class InstructorResponse(ResponseDTO):
    id: str
    user_id: str
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    instructor_number: str
    certification_agency: str
    instructor_level: str
    specialties: List[str]
    languages_spoken: List[str]
    years_experience: int
    bio_en: Optional[str]
    bio_ar: Optional[str]
    hourly_rate_sar: Optional[Decimal]
    daily_rate_sar: Optional[Decimal]
    is_independent: bool
    rating_average: Decimal
    total_reviews: int
    verified: bool
    verified_at: Optional[datetime]

    @classmethod
    def from_domain(cls, profile) -> "InstructorResponse":
        user = profile.user
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            first_name=user.first_name if user else None,
            last_name=user.last_name if user else None,
            email=user.email if user else None,
            instructor_number=profile.instructor_number,
            certification_agency=profile.certification_agency,
            instructor_level=profile.instructor_level,
            specialties=list(profile.specialties or []),
            languages_spoken=list(profile.languages_spoken or []),
            years_experience=profile.years_experience or 0,
            bio_en=profile.bio_en,
            bio_ar=profile.bio_ar,
            hourly_rate_sar=profile.hourly_rate_sar,
            daily_rate_sar=profile.daily_rate_sar,
            is_independent=bool(profile.is_independent),
            rating_average=profile.rating_average or Decimal("0"),
            total_reviews=profile.total_reviews or 0,
            verified=profile.verified_at is not None,
            verified_at=profile.verified_at,
        )


# ------------------- Dive sites -------------------


@dataclass
class SiteCreateRequest:
    values: Dict[str, Any]

    PARSERS = {
        "srsa_site_code": text_field("srsa_site_code", 50, required=True),
        "name_en": text_field("name_en", 200, min_length=2, required=True),
        "name_ar": text_field("name_ar", 200),
        "latitude": lambda v, r: to_float(
            Validator.decimal(v, "latitude", r, min_value=Decimal(-90), max_value=Decimal(90))
        ),
        "longitude": lambda v, r: to_float(
            Validator.decimal(v, "longitude", r, min_value=Decimal(-180), max_value=Decimal(180))
        ),
        "max_depth_meters": lambda v, r: Validator.integer(
            v, "max_depth_meters", r, min_value=1, max_value=400
        ),
        "conservation_fee_sar": _non_negative_money("conservation_fee_sar"),
        "difficulty_level": text_field("difficulty_level", 30),
        "min_certification_level": lambda v, r: Validator.string(
            v, "min_certification_level", r, choices=CERTIFICATION_LADDER
        ),
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteCreateRequest":
        values = collect_fields(data, cls.PARSERS, partial=False)
        if values.get("conservation_fee_sar") is None:
            values["conservation_fee_sar"] = Decimal("35")
        return cls(values=values)


@dataclass
class SiteResponse(ResponseDTO):
    id: str
    srsa_site_code: str
    name_en: str
    name_ar: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    max_depth_meters: Optional[int]
    conservation_fee_sar: Decimal
    difficulty_level: Optional[str]
    min_certification_level: Optional[str]
    is_active: bool

    @classmethod
    def from_domain(cls, site) -> "SiteResponse":
        return cls(
            id=site.id,
            srsa_site_code=site.srsa_site_code,
            name_en=site.name_en,
            name_ar=site.name_ar,
            latitude=site.latitude,
            longitude=site.longitude,
            max_depth_meters=site.max_depth_meters,
            conservation_fee_sar=site.conservation_fee_sar,
            difficulty_level=site.difficulty_level,
            min_certification_level=site.min_certification_level,
            is_active=site.is_active,
        )
