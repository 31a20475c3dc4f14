"""
Domain value objects - pure business data, no framework dependencies.

Persistence rows live in ``dive_platform.db.base``; these objects carry the
results of booking rules (pricing, eligibility, refunds) and notification
requests between services.
"""

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

TWO_PLACES = Decimal("0.01")


def money(value: Any) -> Decimal:
    """Quantize to 2 decimal places, rounding half up."""
    return Decimal(str(value or 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class PriceBreakdown:
    """Cost of a booking for ``number_of_divers`` divers, in SAR."""

    base_price: Decimal
    equipment_rental: Decimal
    conservation_fee: Decimal
    insurance_fee: Decimal
    platform_fee: Decimal
    vat_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    number_of_divers: int = 1
    currency: str = "SAR"

    def __post_init__(self):
        if self.number_of_divers < 1:
            raise ValueError("number_of_divers must be at least 1")
        if self.total_amount < 0:
            raise ValueError("Total amount cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = float(value)
        return data


@dataclass
class EligibilityResult:
    eligible: bool = True
    reasons: List[str] = field(default_factory=list)

    def fail(self, reason: str) -> None:
        self.eligible = False
        self.reasons.append(reason)

    def to_dict(self) -> Dict[str, Any]:
        return {"eligible": self.eligible, "reasons": list(self.reasons)}


@dataclass
class NotificationRequest:
    """A message for one user, fanned out to one or more channels."""

    user_id: str
    type: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    channels: Optional[List[str]] = None
    priority: str = "normal"

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id is required")
        if not self.type:
            raise ValueError("Notification type is required")


@dataclass
class DeliveryResult:
    """Outcome reported by a notification provider."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    invalid_tokens: List[str] = field(default_factory=list)


@dataclass
class GatewayResult:
    """Normalised HyperPay response."""

    code: str
    description: str
    raw: Dict[str, Any] = field(default_factory=dict)
    transaction_id: Optional[str] = None
    is_success: bool = False
    is_pending: bool = False
