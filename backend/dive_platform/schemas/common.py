"""
Shared pieces for request/response DTOs.

Request DTOs expose ``from_dict(data)`` which validates the raw JSON body and
raises ``ValidationError`` with field-keyed errors. Response DTOs expose
``from_domain(row)`` and ``to_dict()`` producing JSON-safe values (money as
float, datetimes as ISO-8601 strings).
"""

from dataclasses import fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.utils.date_utils import isoformat


def to_json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return isoformat(value)
    if isinstance(value, list):
        return [to_json_value(item) for item in value]
    if isinstance(value, dict):
        return {key: to_json_value(item) for key, item in value.items()}
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class ResponseDTO:
    """Mixin for response dataclasses."""

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: to_json_value(getattr(self, f.name)) for f in fields(self)}


FieldParser = Callable[[Any, ValidationResult], Any]


def collect_fields(
    data: Dict[str, Any], parsers: Dict[str, FieldParser], partial: bool
) -> Dict[str, Any]:
    """Run each parser over ``data``.

    On partial updates only keys present in ``data`` are parsed and null
    values are dropped, so a PATCH never clears a column.
    """
    result = ValidationResult()
    values: Dict[str, Any] = {}
    for key, parse in parsers.items():
        if partial and key not in data:
            continue
        value = parse(data.get(key), result)
        if partial and value is None:
            continue
        values[key] = value
    result.raise_if_invalid()
    return values


def text_field(name: str, max_length: int, min_length: Optional[int] = None, required=False):
    return lambda value, result: Validator.string(
        value, name, result, min_length=min_length, max_length=max_length, required=required
    )


def to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None
