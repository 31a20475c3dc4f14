"""
Unit tests for booking pricing, eligibility and refund rules.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from dive_platform.domain.policies import (
    calculate_booking_price,
    calculate_refund,
    certification_rank,
    check_eligibility,
)


def make_trip(**overrides):
    values = dict(
        price_per_person_sar=Decimal("500"),
        equipment_rental_price_sar=None,
        conservation_fee_included=True,
        site_id=None,
        site=None,
        min_age=10,
        max_age=None,
        min_logged_dives=0,
        min_certification_level=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_diver(**overrides):
    values = dict(date_of_birth=date(1990, 1, 1), total_logged_dives=30)
    values.update(overrides)
    return SimpleNamespace(**values)


class TestCalculateBookingPrice:
    def test_two_divers_with_conservation_included(self):
        price = calculate_booking_price(make_trip(), 2)

        assert price.base_price == Decimal("1000.00")
        assert price.insurance_fee == Decimal("30.00")
        assert price.platform_fee == Decimal("50.00")
        assert price.vat_amount == Decimal("157.50")
        assert price.conservation_fee == Decimal("0.00")
        assert price.total_amount == Decimal("1237.50")
        assert price.currency == "SAR"

    def test_equipment_rental_added_per_diver(self):
        trip = make_trip(equipment_rental_price_sar=Decimal("100"))

        price = calculate_booking_price(trip, 2, needs_equipment=True)

        assert price.equipment_rental == Decimal("200.00")
        assert price.total_amount == Decimal("1437.50")

    def test_equipment_ignored_when_not_requested(self):
        trip = make_trip(equipment_rental_price_sar=Decimal("100"))

        price = calculate_booking_price(trip, 2, needs_equipment=False)

        assert price.equipment_rental == Decimal("0.00")

    def test_default_conservation_fee_when_site_not_loaded(self):
        trip = make_trip(conservation_fee_included=False, site_id="site-1", site=None)

        price = calculate_booking_price(trip, 2)

        assert price.conservation_fee == Decimal("70.00")

    def test_site_conservation_fee_used_when_available(self):
        site = SimpleNamespace(conservation_fee_sar=Decimal("50"))
        trip = make_trip(conservation_fee_included=False, site_id="site-1", site=site)

        price = calculate_booking_price(trip, 1)

        assert price.conservation_fee == Decimal("50.00")

    def test_no_conservation_fee_without_site(self):
        trip = make_trip(conservation_fee_included=False)

        assert calculate_booking_price(trip, 3).conservation_fee == Decimal("0.00")

    def test_vat_excludes_insurance_and_conservation(self):
        trip = make_trip(conservation_fee_included=False, site_id="site-1")

        price = calculate_booking_price(trip, 1)

        assert price.vat_amount == Decimal("78.75")
        assert price.total_amount == Decimal("500.00") + Decimal("35.00") + Decimal(
            "15.00"
        ) + Decimal("25.00") + Decimal("78.75")

    def test_zero_divers_rejected(self):
        with pytest.raises(ValueError):
            calculate_booking_price(make_trip(), 0)


class TestCheckEligibility:
    def test_eligible_diver(self):
        result = check_eligibility(make_trip(), make_diver(), [], today=date(2025, 6, 1))

        assert result.eligible is True
        assert result.reasons == []

    def test_too_young(self):
        diver = make_diver(date_of_birth=date(2018, 1, 1))

        result = check_eligibility(make_trip(min_age=10), diver, [], today=date(2025, 6, 1))

        assert result.eligible is False
        assert result.reasons == ["Minimum age is 10 years (you are 7)"]

    def test_too_old(self):
        diver = make_diver(date_of_birth=date(1950, 1, 1))

        result = check_eligibility(make_trip(max_age=60), diver, [], today=date(2025, 6, 1))

        assert result.reasons == ["Maximum age is 60 years (you are 75)"]

    def test_unknown_birth_date_skips_age_checks(self):
        diver = make_diver(date_of_birth=None)

        result = check_eligibility(make_trip(min_age=18), diver, [])

        assert result.eligible is True

    def test_not_enough_logged_dives(self):
        diver = make_diver(total_logged_dives=4)

        result = check_eligibility(make_trip(min_logged_dives=20), diver, [])

        assert result.reasons == ["Minimum 20 logged dives required (you have 4)"]

    def test_higher_certification_satisfies_requirement(self):
        trip = make_trip(min_certification_level="Advanced Open Water")

        result = check_eligibility(trip, make_diver(), ["Open Water", "Rescue Diver"])

        assert result.eligible is True

    def test_missing_certification(self):
        trip = make_trip(min_certification_level="Advanced Open Water")

        result = check_eligibility(trip, make_diver(), ["Open Water"])

        assert result.reasons == [
            "Verified Advanced Open Water certification or higher required"
        ]

    def test_collects_every_failure(self):
        trip = make_trip(min_logged_dives=50, min_certification_level="Divemaster")
        diver = make_diver(total_logged_dives=10)

        result = check_eligibility(trip, diver, [])

        assert len(result.reasons) == 2
        assert result.to_dict()["eligible"] is False


class TestCertificationRank:
    def test_ladder_order(self):
        assert certification_rank("Open Water") < certification_rank("Instructor")

    def test_unknown_level(self):
        assert certification_rank("Snorkeler") == -1
        assert certification_rank(None) == -1


class TestCalculateRefund:
    @pytest.mark.parametrize(
        "hours, expected",
        [
            (72, Decimal("1000.00")),
            (48, Decimal("1000.00")),
            (30, Decimal("500.00")),
            (24, Decimal("500.00")),
            (10, Decimal("0.00")),
        ],
    )
    def test_refund_tiers(self, hours, expected):
        assert calculate_refund(Decimal("1000"), hours, 24) == expected

    def test_deadline_beyond_full_refund_window(self):
        assert calculate_refund(Decimal("1000"), 60, 72) == Decimal("0.00")
