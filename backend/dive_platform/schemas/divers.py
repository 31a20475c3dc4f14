"""DTOs for diver certifications and their admin verification."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.domain.enums import CERTIFICATION_LADDER, VerificationStatus
from dive_platform.schemas.common import FieldParser, ResponseDTO, collect_fields, text_field

# Shared with offline sync so both write paths accept the same values
CERTIFICATION_FIELDS: Dict[str, FieldParser] = {
    "agency": text_field("agency", 50, required=True),
    "certification_level": lambda v, r: Validator.string(
        v, "certification_level", r, required=True, choices=CERTIFICATION_LADDER
    ),
    "certification_number": text_field("certification_number", 100),
    "issue_date": lambda v, r: Validator.date_value(v, "issue_date", r),
}

VERIFICATION_DECISIONS = (VerificationStatus.VERIFIED.value, VerificationStatus.REJECTED.value)


@dataclass
class CertificationRequest:
    values: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], partial: bool = False) -> "CertificationRequest":
        values = collect_fields(data, CERTIFICATION_FIELDS, partial=partial)
        if not partial:
            values = {key: value for key, value in values.items() if value is not None}
        return cls(values=values)


@dataclass
class VerifyCertificationRequest:
    status: str
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifyCertificationRequest":
        result = ValidationResult()
        status = Validator.string(
            data.get("status"), "status", result, required=True, choices=VERIFICATION_DECISIONS
        )
        notes = Validator.string(data.get("notes"), "notes", result, max_length=500)
        result.raise_if_invalid()
        return cls(status=status, notes=notes)


@dataclass
class CertificationResponse(ResponseDTO):
    id: str
    user_id: str
    user_email: Optional[str]
    agency: str
    certification_level: str
    certification_number: Optional[str]
    issue_date: Optional[date]
    verification_status: str
    verified_at: Optional[datetime]
    verification_notes: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, cert) -> "CertificationResponse":
        return cls(
            id=cert.id,
            user_id=cert.user_id,
            user_email=cert.user.email if cert.user else None,
            agency=cert.agency,
            certification_level=cert.certification_level,
            certification_number=cert.certification_number,
            issue_date=cert.issue_date,
            verification_status=cert.verification_status,
            verified_at=cert.verified_at,
            verification_notes=cert.verification_notes,
            created_at=cert.created_at,
        )
