"""
Booking rules: pricing, eligibility and cancellation refunds.

Functions take any object exposing the trip/user attributes they read, so
they work on ORM rows and on test doubles alike.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from dive_platform.domain.entities import EligibilityResult, PriceBreakdown, money
from dive_platform.domain.enums import CERTIFICATION_LADDER
from dive_platform.utils.date_utils import calculate_age

DEFAULT_CONSERVATION_FEE = Decimal("35")
INSURANCE_FEE_PER_DIVER = Decimal("15")
PLATFORM_FEE_RATE = Decimal("0.05")
VAT_RATE = Decimal("0.15")
FULL_REFUND_HOURS = 48
PARTIAL_REFUND_RATE = Decimal("0.5")


def calculate_booking_price(
    trip, number_of_divers: int, needs_equipment: bool = False
) -> PriceBreakdown:
    divers = Decimal(number_of_divers)
    base = money(Decimal(str(trip.price_per_person_sar)) * divers)

    equipment = Decimal("0.00")
    if needs_equipment and trip.equipment_rental_price_sar:
        equipment = money(Decimal(str(trip.equipment_rental_price_sar)) * divers)

    conservation = Decimal("0.00")
    if not trip.conservation_fee_included and trip.site_id:
        site = getattr(trip, "site", None)
        fee = getattr(site, "conservation_fee_sar", None) if site is not None else None
        per_diver = Decimal(str(fee)) if fee is not None else DEFAULT_CONSERVATION_FEE
        conservation = money(per_diver * divers)

    insurance = money(INSURANCE_FEE_PER_DIVER * divers)
    platform_fee = money(base * PLATFORM_FEE_RATE)
    vat = money((base + platform_fee) * VAT_RATE)
    discount = Decimal("0.00")
    total = money(base + equipment + conservation + insurance + platform_fee + vat - discount)

    return PriceBreakdown(
        base_price=base,
        equipment_rental=equipment,
        conservation_fee=conservation,
        insurance_fee=insurance,
        platform_fee=platform_fee,
        vat_amount=vat,
        discount_amount=discount,
        total_amount=total,
        number_of_divers=number_of_divers,
    )


def certification_rank(level: Optional[str]) -> int:
    """Position on the certification ladder; -1 for unknown levels."""
    if level in CERTIFICATION_LADDER:
        return CERTIFICATION_LADDER.index(level)
    return -1


def check_eligibility(
    trip,
    user,
    verified_certification_levels: Iterable[str],
    today: Optional[date] = None,
) -> EligibilityResult:
    result = EligibilityResult()

    age = calculate_age(getattr(user, "date_of_birth", None), today)
    if age is not None:
        if trip.min_age and age < trip.min_age:
            result.fail(f"Minimum age is {trip.min_age} years (you are {age})")
        if trip.max_age and age > trip.max_age:
            result.fail(f"Maximum age is {trip.max_age} years (you are {age})")

    logged = getattr(user, "total_logged_dives", 0) or 0
    if trip.min_logged_dives and logged < trip.min_logged_dives:
        result.fail(
            f"Minimum {trip.min_logged_dives} logged dives required (you have {logged})"
        )

    if trip.min_certification_level:
        required = certification_rank(trip.min_certification_level)
        best = max(
            (certification_rank(level) for level in verified_certification_levels),
            default=-1,
        )
        if best < required:
            result.fail(
                f"Verified {trip.min_certification_level} certification or higher required"
            )

    return result


def calculate_refund(
    total_amount: Decimal, hours_until_departure: float, cancellation_deadline_hours: int
) -> Decimal:
    """Refund owed when a diver cancels ``hours_until_departure`` before the trip."""
    if hours_until_departure < cancellation_deadline_hours:
        return Decimal("0.00")
    if hours_until_departure >= FULL_REFUND_HOURS:
        return money(total_amount)
    return money(Decimal(str(total_amount)) * PARTIAL_REFUND_RATE)
