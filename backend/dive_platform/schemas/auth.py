"""DTOs for registration, login and token endpoints."""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

from dive_platform.core.validation import SAUDI_PHONE_RE, ValidationResult, Validator
from dive_platform.domain.enums import SELF_REGISTER_ROLES, UserRole
from dive_platform.schemas.common import ResponseDTO, collect_fields, text_field
from dive_platform.utils.date_utils import is_minor

PASSWORD_STRENGTH_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).+$")
LANGUAGES = ("ar", "en")


def validate_password(value: Any, result: ValidationResult, field: str = "password"):
    password = Validator.string(value, field, result, min_length=8, max_length=100, required=True)
    if password is not None and not PASSWORD_STRENGTH_RE.match(password):
        result.add_error(
            field, "Password must contain an uppercase letter, a lowercase letter and a digit"
        )
        return None
    return password


@dataclass
class RegisterRequest:
    email: str
    password: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: str = UserRole.DIVER.value
    preferred_language: str = "ar"
    date_of_birth: Optional[date] = None
    parent_email: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegisterRequest":
        result = ValidationResult()
        email = Validator.email(data.get("email"), "email", result, required=True)
        password = validate_password(data.get("password"), result)
        first_name = Validator.string(
            data.get("first_name"), "first_name", result, min_length=1, max_length=100, required=True
        )
        last_name = Validator.string(
            data.get("last_name"), "last_name", result, min_length=1, max_length=100, required=True
        )
        phone = Validator.string(
            data.get("phone_number"),
            "phone_number",
            result,
            pattern=SAUDI_PHONE_RE,
            pattern_message="must be in the format +966XXXXXXXXX",
        )
        role = Validator.string(data.get("role"), "role", result, choices=SELF_REGISTER_ROLES)
        language = Validator.string(
            data.get("preferred_language"), "preferred_language", result, choices=LANGUAGES
        )
        dob = Validator.date_value(data.get("date_of_birth"), "date_of_birth", result)
        parent_email = Validator.email(data.get("parent_email"), "parent_email", result)
        if dob is not None and is_minor(dob) and not parent_email:
            result.add_error("parent_email", "Parent email is required for users under 18")
        result.raise_if_invalid()
        return cls(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone,
            role=role or UserRole.DIVER.value,
            preferred_language=language or "ar",
            date_of_birth=dob,
            parent_email=parent_email,
        )


@dataclass
class LoginRequest:
    email: str
    password: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoginRequest":
        result = ValidationResult()
        email = Validator.email(data.get("email"), "email", result, required=True)
        password = Validator.string(data.get("password"), "password", result, required=True)
        result.raise_if_invalid()
        return cls(email=email, password=password)


def require_token(data: Dict[str, Any], field: str) -> str:
    """Pull a required opaque token string out of a request body."""
    result = ValidationResult()
    token = Validator.string(data.get(field), field, result, max_length=2000, required=True)
    result.raise_if_invalid()
    return token


@dataclass
class ResetPasswordRequest:
    token: str
    password: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResetPasswordRequest":
        result = ValidationResult()
        token = Validator.string(data.get("token"), "token", result, required=True)
        password = validate_password(data.get("password"), result)
        result.raise_if_invalid()
        return cls(token=token, password=password)


@dataclass
class UserResponse(ResponseDTO):
    id: str
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str]
    role: str
    status: str
    preferred_language: str
    date_of_birth: Optional[date]
    total_logged_dives: int
    email_verified: bool
    last_login_at: Optional[datetime]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            role=user.role,
            status=user.status,
            preferred_language=user.preferred_language,
            date_of_birth=user.date_of_birth,
            total_logged_dives=user.total_logged_dives or 0,
            email_verified=user.email_verified_at is not None,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


@dataclass
class TokenPair(ResponseDTO):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


@dataclass
class UserUpdateRequest:
    """Self-service profile edits; email, role and status are not writable here."""

    changes: Dict[str, Any]

    PARSERS = {
        "first_name": text_field("first_name", 100, min_length=1),
        "last_name": text_field("last_name", 100, min_length=1),
        "phone_number": lambda v, r: Validator.string(
            v,
            "phone_number",
            r,
            pattern=SAUDI_PHONE_RE,
            pattern_message="must be in the format +966XXXXXXXXX",
        ),
        "preferred_language": lambda v, r: Validator.string(
            v, "preferred_language", r, choices=LANGUAGES
        ),
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserUpdateRequest":
        return cls(changes=collect_fields(data, cls.PARSERS, partial=True))
