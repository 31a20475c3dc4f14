"""Unit tests for request field validation."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from dive_platform.core.exceptions import ValidationError
from dive_platform.core.validation import (
    HHMM_RE,
    SAUDI_PHONE_RE,
    ValidationResult,
    Validator,
)


@pytest.fixture
def result():
    return ValidationResult()


class TestStrings:
    def test_strips_and_accepts(self, result):
        assert Validator.string("  Jeddah ", "city", result) == "Jeddah"
        assert result.is_valid

    def test_required_missing(self, result):
        assert Validator.string("   ", "city", result, required=True) is None
        assert result.errors == {"city": "city is required"}

    def test_length_limits(self, result):
        Validator.string("ab", "name", result, min_length=3)
        Validator.string("x" * 11, "code", result, max_length=10)

        assert result.errors["name"] == "name must be at least 3 characters"
        assert result.errors["code"] == "code must be at most 10 characters"

    def test_choices(self, result):
        Validator.string("boat", "trip_type", result, choices=["morning", "night"])

        assert result.errors["trip_type"] == "trip_type must be one of: morning, night"

    def test_pattern(self, result):
        value = Validator.string(
            "0551234567", "phone", result, pattern=SAUDI_PHONE_RE, pattern_message="must be +966XXXXXXXXX"
        )

        assert value is None
        assert result.errors["phone"] == "phone must be +966XXXXXXXXX"

    def test_first_error_wins(self, result):
        result.add_error("email", "first")
        result.add_error("email", "second")

        assert result.errors["email"] == "first"


class TestEmail:
    def test_lowercases(self, result):
        assert Validator.email("Diver@Example.COM", "email", result) == "diver@example.com"

    def test_invalid(self, result):
        assert Validator.email("not-an-email", "email", result) is None
        assert result.errors["email"] == "Invalid email address"


class TestNumbers:
    def test_integer_bounds(self, result):
        assert Validator.integer("4", "divers", result, min_value=1, max_value=10) == 4
        Validator.integer(0, "low", result, min_value=1)
        Validator.integer(11, "high", result, max_value=10)

        assert result.errors["low"] == "low must be at least 1"
        assert result.errors["high"] == "high must be at most 10"

    @pytest.mark.parametrize("value", [True, 2.5, "two"])
    def test_integer_rejects_non_integers(self, result, value):
        assert Validator.integer(value, "divers", result) is None
        assert result.errors["divers"] == "divers must be an integer"

    def test_decimal(self, result):
        assert Validator.decimal("450.50", "price", result) == Decimal("450.50")

    def test_decimal_exclusive_minimum(self, result):
        Validator.decimal(0, "price", result, min_value=Decimal("0"), exclusive_min=True)

        assert result.errors["price"] == "price must be greater than 0"

    def test_decimal_rejects_nan(self, result):
        assert Validator.decimal("NaN", "price", result) is None
        assert "price" in result.errors


class TestOtherTypes:
    def test_boolean(self, result):
        assert Validator.boolean(True, "flag", result) is True
        assert Validator.boolean(None, "flag", result) is None
        assert Validator.boolean("yes", "flag", result) is None
        assert result.errors["flag"] == "flag must be a boolean"

    def test_date_value(self, result):
        assert Validator.date_value("1990-05-17", "dob", result) == date(1990, 5, 17)
        Validator.date_value("17/05/1990", "bad", result)

        assert result.errors["bad"] == "bad must be a date (YYYY-MM-DD)"

    def test_datetime_normalised_to_utc(self, result):
        parsed = Validator.datetime_value("2025-03-01T11:00:00+03:00", "at", result)

        assert parsed == datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)

    def test_datetime_zulu_and_naive(self, result):
        assert Validator.datetime_value("2025-03-01T08:00:00Z", "a", result).tzinfo == timezone.utc
        assert Validator.datetime_value("2025-03-01T08:00:00", "b", result).tzinfo == timezone.utc

    def test_string_list(self, result):
        assert Validator.string_list([" en ", "", "ar"], "langs", result) == ["en", "ar"]
        Validator.string_list("en", "bad", result)

        assert result.errors["bad"] == "bad must be a list of strings"

    def test_mapping(self, result):
        assert Validator.mapping({"a": 1}, "data", result) == {"a": 1}
        Validator.mapping([1], "bad", result)

        assert result.errors["bad"] == "bad must be an object"


class TestPatterns:
    @pytest.mark.parametrize("value", ["00:00", "9:30", "23:59"])
    def test_valid_quiet_hours(self, value):
        assert HHMM_RE.match(value)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon"])
    def test_invalid_quiet_hours(self, value):
        assert not HHMM_RE.match(value)

    def test_saudi_phone(self):
        assert SAUDI_PHONE_RE.match("+966551234567")
        assert not SAUDI_PHONE_RE.match("+96655123456")


def test_raise_if_invalid_carries_details():
    result = ValidationResult()
    result.add_error("email", "Invalid email address")

    with pytest.raises(ValidationError) as exc_info:
        result.raise_if_invalid("Invalid registration")

    assert exc_info.value.message == "Invalid registration"
    assert exc_info.value.details == {"email": "Invalid email address"}
    assert exc_info.value.to_dict()["code"] == "VALIDATION_ERROR"
