"""
Common validation utilities for request payloads.

Request DTOs parse raw JSON through ``Validator`` helpers, collecting every
field error in a ``ValidationResult`` before raising a single
``ValidationError`` whose ``details`` map field names to messages.
"""

import logging
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from dive_platform.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SAUDI_PHONE_RE = re.compile(r"^\+966[0-9]{9}$")
HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


class ValidationResult:
    """Container for field errors collected during parsing."""

    def __init__(self):
        self.errors: Dict[str, str] = {}

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, field: str, message: str) -> None:
        # Keep the first error reported for a field
        self.errors.setdefault(field, message)

    def raise_if_invalid(self, message: str = "Validation failed") -> None:
        if self.errors:
            logger.info(
                "Request validation failed",
                extra={"context": {"fields": sorted(self.errors)}},
            )
            raise ValidationError(message, self.errors)


class Validator:
    """Field converters. Each returns the cleaned value or None after recording an error."""

    @staticmethod
    def is_missing(value: Any) -> bool:
        return value is None or (isinstance(value, str) and value.strip() == "")

    @staticmethod
    def required(value: Any, field: str, result: ValidationResult) -> bool:
        if Validator.is_missing(value):
            result.add_error(field, f"{field} is required")
            return False
        return True

    @staticmethod
    def string(
        value: Any,
        field: str,
        result: ValidationResult,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        required: bool = False,
        choices: Optional[Iterable[str]] = None,
        pattern: Optional[re.Pattern] = None,
        pattern_message: str = "has an invalid format",
    ) -> Optional[str]:
        if Validator.is_missing(value):
            if required:
                result.add_error(field, f"{field} is required")
            return None
        if not isinstance(value, str):
            result.add_error(field, f"{field} must be a string")
            return None
        value = value.strip()
        if min_length is not None and len(value) < min_length:
            result.add_error(field, f"{field} must be at least {min_length} characters")
            return None
        if max_length is not None and len(value) > max_length:
            result.add_error(field, f"{field} must be at most {max_length} characters")
            return None
        if choices is not None:
            allowed = list(choices)
            if value not in allowed:
                result.add_error(field, f"{field} must be one of: {', '.join(allowed)}")
                return None
        if pattern is not None and not pattern.match(value):
            result.add_error(field, f"{field} {pattern_message}")
            return None
        return value

    @staticmethod
    def email(
        value: Any, field: str, result: ValidationResult, required: bool = False
    ) -> Optional[str]:
        cleaned = Validator.string(value, field, result, max_length=255, required=required)
        if cleaned is None:
            return None
        if not EMAIL_RE.match(cleaned):
            result.add_error(field, "Invalid email address")
            return None
        return cleaned.lower()

    @staticmethod
    def integer(
        value: Any,
        field: str,
        result: ValidationResult,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        required: bool = False,
    ) -> Optional[int]:
        if Validator.is_missing(value):
            if required:
                result.add_error(field, f"{field} is required")
            return None
        if isinstance(value, bool):
            result.add_error(field, f"{field} must be an integer")
            return None
        try:
            int_value = int(value)
        except (TypeError, ValueError):
            result.add_error(field, f"{field} must be an integer")
            return None
        if isinstance(value, float) and value != int_value:
            result.add_error(field, f"{field} must be an integer")
            return None
        if min_value is not None and int_value < min_value:
            result.add_error(field, f"{field} must be at least {min_value}")
            return None
        if max_value is not None and int_value > max_value:
            result.add_error(field, f"{field} must be at most {max_value}")
            return None
        return int_value

    @staticmethod
    def decimal(
        value: Any,
        field: str,
        result: ValidationResult,
        min_value: Optional[Decimal] = None,
        max_value: Optional[Decimal] = None,
        required: bool = False,
        exclusive_min: bool = False,
    ) -> Optional[Decimal]:
        if Validator.is_missing(value):
            if required:
                result.add_error(field, f"{field} is required")
            return None
        if isinstance(value, bool):
            result.add_error(field, f"{field} must be a number")
            return None
        try:
            decimal_value = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            result.add_error(field, f"{field} must be a number")
            return None
        if not decimal_value.is_finite():
            result.add_error(field, f"{field} must be a number")
            return None
        if min_value is not None:
            if exclusive_min and decimal_value <= min_value:
                result.add_error(field, f"{field} must be greater than {min_value}")
                return None
            if not exclusive_min and decimal_value < min_value:
                result.add_error(field, f"{field} must be at least {min_value}")
                return None
        if max_value is not None and decimal_value > max_value:
            result.add_error(field, f"{field} must be at most {max_value}")
            return None
        return decimal_value

    @staticmethod
    def boolean(value: Any, field: str, result: ValidationResult) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        result.add_error(field, f"{field} must be a boolean")
        return None

    @staticmethod
    def date_value(
        value: Any, field: str, result: ValidationResult, required: bool = False
    ) -> Optional[date]:
        if Validator.is_missing(value):
            if required:
                result.add_error(field, f"{field} is required")
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            result.add_error(field, f"{field} must be a date (YYYY-MM-DD)")
            return None

    @staticmethod
    def datetime_value(
        value: Any, field: str, result: ValidationResult, required: bool = False
    ) -> Optional[datetime]:
        """Parse ISO-8601 and normalise to UTC; naive values are taken as UTC."""
        if Validator.is_missing(value):
            if required:
                result.add_error(field, f"{field} is required")
            return None
        if isinstance(value, datetime):
            parsed = value
        else:
            text = str(value).strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                result.add_error(field, f"{field} must be an ISO-8601 datetime")
                return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def string_list(
        value: Any, field: str, result: ValidationResult, max_items: int = 50
    ) -> Optional[list]:
        if value is None:
            return None
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            result.add_error(field, f"{field} must be a list of strings")
            return None
        if len(value) > max_items:
            result.add_error(field, f"{field} must have at most {max_items} items")
            return None
        return [v.strip() for v in value if v.strip()]

    @staticmethod
    def mapping(value: Any, field: str, result: ValidationResult) -> Optional[dict]:
        if value is None:
            return None
        if not isinstance(value, dict):
            result.add_error(field, f"{field} must be an object")
            return None
        return value
