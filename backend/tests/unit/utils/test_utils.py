"""Tests for the pagination, date and text helpers."""

import re
from datetime import date, datetime, timedelta, timezone

import pytest

from dive_platform.utils.date_utils import (
    calculate_age,
    ensure_aware,
    hours_until,
    is_minor,
    isoformat,
)
from dive_platform.utils.pagination import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    normalize_pagination,
    offset_for,
    paginate,
)
from dive_platform.utils.text_utils import camel_to_snake, generate_booking_number, generate_slug


class TestPagination:
    @pytest.mark.parametrize(
        "page, limit, expected",
        [
            (None, None, (1, DEFAULT_LIMIT)),
            (0, 5, (1, 5)),
            (-3, 0, (1, DEFAULT_LIMIT)),
            (1, -4, (1, 1)),
            (2, 500, (2, MAX_LIMIT)),
        ],
    )
    def test_normalize_pagination(self, page, limit, expected):
        assert normalize_pagination(page, limit) == expected

    def test_offset_for(self):
        assert offset_for(1, 20) == 0
        assert offset_for(3, 10) == 20

    def test_paginate_metadata(self):
        result = paginate(["a", "b"], total=45, page=2, limit=20)

        assert result["data"] == ["a", "b"]
        assert result["pagination"] == {
            "page": 2,
            "limit": 20,
            "total": 45,
            "totalPages": 3,
            "hasNext": True,
            "hasPrev": True,
        }

    def test_paginate_empty(self):
        pagination = paginate([], total=0, page=1, limit=20)["pagination"]

        assert pagination["totalPages"] == 0
        assert pagination["hasNext"] is False
        assert pagination["hasPrev"] is False


class TestDateUtils:
    def test_ensure_aware_marks_naive_as_utc(self):
        naive = datetime(2025, 3, 1, 8, 0)

        assert ensure_aware(naive).tzinfo == timezone.utc
        assert ensure_aware(None) is None

    def test_ensure_aware_converts_offsets(self):
        riyadh = timezone(timedelta(hours=3))
        aware = datetime(2025, 3, 1, 11, 0, tzinfo=riyadh)

        assert ensure_aware(aware).hour == 8

    def test_isoformat_handles_dates_and_none(self):
        assert isoformat(date(2025, 3, 1)) == "2025-03-01"
        assert isoformat(datetime(2025, 3, 1, 8, 0)) == "2025-03-01T08:00:00+00:00"
        assert isoformat(None) is None

    def test_calculate_age_before_and_after_birthday(self):
        born = date(2000, 6, 15)

        assert calculate_age(born, date(2025, 6, 14)) == 24
        assert calculate_age(born, date(2025, 6, 15)) == 25
        assert calculate_age(None) is None

    def test_is_minor(self):
        assert is_minor(date(2010, 1, 1), date(2025, 1, 1)) is True
        assert is_minor(date(2007, 1, 1), date(2025, 1, 1)) is False
        assert is_minor(None) is False

    def test_hours_until_accepts_naive_moment(self):
        now = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
        departure = datetime(2025, 3, 2, 20, 0)

        assert hours_until(departure, now) == pytest.approx(36.0)


class TestTextUtils:
    def test_generate_slug(self):
        assert generate_slug("  Red Sea Divers & Co. ") == "red-sea-divers-co"
        assert generate_slug("Jeddah__Reef--Club") == "jeddah-reef-club"

    def test_booking_number_format(self):
        number = generate_booking_number(datetime(2025, 3, 1, tzinfo=timezone.utc))

        assert re.fullmatch(r"BK250301-[0-9A-F]{6}", number)

    def test_camel_to_snake(self):
        assert camel_to_snake("numberOfDivers") == "number_of_divers"
