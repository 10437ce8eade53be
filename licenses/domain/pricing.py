"""
License fee calculation.

fee = base(asset type) x scope x exclusivity x duration x territory,
then a volume discount for high-spend brands and a minimum-fee floor.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from core.domain.clock import exact_days
from core.domain.value_objects import AssetType, LicenseType
from licenses.domain.scope import LicenseScope

BASE_RATES_CENTS = {
    AssetType.PHOTO: 50000,
    AssetType.VIDEO: 100000,
    AssetType.AUDIO: 75000,
    AssetType.DESIGN: 50000,
    AssetType.WRITTEN: 30000,
    AssetType.THREE_D: 75000,
    AssetType.OTHER: 50000,
}

MEDIA_MULTIPLIERS = {"digital": 1.0, "print": 1.2, "broadcast": 2.0, "ooh": 1.8}

PLACEMENT_MULTIPLIERS = {
    "social": 1.0,
    "website": 1.1,
    "email": 0.9,
    "paid_ads": 1.5,
    "packaging": 1.4,
}

EXCLUSIVITY_MULTIPLIERS = {
    LicenseType.EXCLUSIVE: 3.0,
    LicenseType.EXCLUSIVE_TERRITORY: 1.8,
    LicenseType.NON_EXCLUSIVE: 1.0,
}

TERRITORY_GLOBAL = 2.0
TERRITORY_REGIONAL = 1.5
TERRITORY_SINGLE = 1.0
REGIONAL_MIN_TERRITORIES = 3

# (months upper bound, multiplier); beyond the last step +0.5 per year.
DURATION_STEPS = ((1, 1.0), (3, 1.8), (6, 2.5), (12, 4.0), (24, 7.0), (36, 9.5))

# (minimum historical spend in cents, discount rate)
VOLUME_DISCOUNTS = ((1000000, 0.10), (500000, 0.05), (250000, 0.03))

PLATFORM_COMMISSION_RATE = 0.10
MINIMUM_FEE_CENTS = 10000

MEDIA_WEIGHT = 0.6
PLACEMENT_WEIGHT = 0.4
BREADTH_BONUS = 1.2
MIN_SCOPE_MULTIPLIER = 0.5


def round_cents(value) -> int:
    """Round to the nearest cent, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class BreakdownEntry:
    """One line of a fee breakdown."""

    label: str
    amount_cents: int
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "amount_cents": self.amount_cents, "type": self.type}


@dataclass(frozen=True)
class FeeInput:
    """Everything the calculator needs about a prospective grant."""

    asset_type: AssetType
    license_type: LicenseType
    start_date: datetime
    end_date: datetime
    scope: LicenseScope
    brand_total_spent_cents: int = 0


@dataclass
class FeeBreakdown:
    """Result of a fee calculation."""

    base_rate_cents: int
    scope_multiplier: float
    exclusivity_multiplier: float
    duration_multiplier: float
    territory_multiplier: float
    subtotal_cents: int
    market_adjustment_cents: int
    total_fee_cents: int
    platform_fee_cents: int
    creator_net_cents: int
    exclusivity_premium_cents: int
    minimum_fee_applied: bool = False
    entries: List[BreakdownEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_rate_cents": self.base_rate_cents,
            "scope_multiplier": self.scope_multiplier,
            "exclusivity_multiplier": self.exclusivity_multiplier,
            "duration_multiplier": self.duration_multiplier,
            "territory_multiplier": self.territory_multiplier,
            "subtotal_cents": self.subtotal_cents,
            "market_adjustment_cents": self.market_adjustment_cents,
            "total_fee_cents": self.total_fee_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "creator_net_cents": self.creator_net_cents,
            "exclusivity_premium_cents": self.exclusivity_premium_cents,
            "minimum_fee_applied": self.minimum_fee_applied,
            "breakdown": [e.to_dict() for e in self.entries],
        }


@dataclass(frozen=True)
class TotalValueEstimate:
    """Projected value of a grant including revenue share."""

    fee_cents: int
    rev_share_cents: int
    total_cents: int
    platform_fee_cents: int
    creator_net_cents: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fee_cents": self.fee_cents,
            "rev_share_cents": self.rev_share_cents,
            "total_cents": self.total_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "creator_net_cents": self.creator_net_cents,
        }


class FeeCalculator:
    """
    Computes license fees.

    Stateless apart from the minimum fee, which deployments may override.
    """

    def __init__(self, minimum_fee_cents: int = MINIMUM_FEE_CENTS):
        self.minimum_fee_cents = minimum_fee_cents

    def calculate(self, fee_input: FeeInput) -> FeeBreakdown:
        """
        Calculate a fee and its breakdown.

        Args:
            fee_input: Grant characteristics and brand spend

        Returns:
            FeeBreakdown with every multiplier and adjustment
        """
        base = BASE_RATES_CENTS.get(fee_input.asset_type, BASE_RATES_CENTS[AssetType.OTHER])
        scope_mult = self.scope_multiplier(fee_input.scope)
        exclusivity_mult = EXCLUSIVITY_MULTIPLIERS[fee_input.license_type]
        duration_mult = self.duration_multiplier(fee_input.start_date, fee_input.end_date)
        territory_mult = self.territory_multiplier(fee_input.scope)

        subtotal = round_cents(base * scope_mult * exclusivity_mult * duration_mult * territory_mult)
        entries = [
            BreakdownEntry(f"Base rate ({fee_input.asset_type.value})", base, "base"),
            BreakdownEntry(f"Scope multiplier ({scope_mult:.2f}x)", round_cents(base * (scope_mult - 1)), "multiplier"),
            BreakdownEntry(
                f"Exclusivity ({fee_input.license_type.value}, {exclusivity_mult:.2f}x)",
                round_cents(base * (exclusivity_mult - 1)),
                "multiplier",
            ),
            BreakdownEntry(f"Duration multiplier ({duration_mult:.2f}x)", round_cents(base * (duration_mult - 1)), "multiplier"),
            BreakdownEntry(f"Territory multiplier ({territory_mult:.2f}x)", round_cents(base * (territory_mult - 1)), "multiplier"),
        ]

        adjustment = self.market_adjustment(subtotal, fee_input.brand_total_spent_cents)
        if adjustment:
            label = "Volume discount" if adjustment < 0 else "Premium rate"
            entries.append(BreakdownEntry(label, adjustment, "adjustment"))

        total = subtotal + adjustment
        minimum_applied = False
        if total < self.minimum_fee_cents:
            entries.append(
                BreakdownEntry("Minimum fee enforced", self.minimum_fee_cents - total, "adjustment")
            )
            total = self.minimum_fee_cents
            minimum_applied = True

        platform_fee = round_cents(total * PLATFORM_COMMISSION_RATE)
        entries.append(BreakdownEntry("Platform fee (10%)", -platform_fee, "fee"))

        premium = round_cents(base * (exclusivity_mult - 1)) if exclusivity_mult > 1 else 0

        return FeeBreakdown(
            base_rate_cents=base,
            scope_multiplier=scope_mult,
            exclusivity_multiplier=exclusivity_mult,
            duration_multiplier=duration_mult,
            territory_multiplier=territory_mult,
            subtotal_cents=subtotal,
            market_adjustment_cents=adjustment,
            total_fee_cents=total,
            platform_fee_cents=platform_fee,
            creator_net_cents=total - platform_fee,
            exclusivity_premium_cents=premium,
            minimum_fee_applied=minimum_applied,
            entries=entries,
        )

    @staticmethod
    def scope_multiplier(scope: LicenseScope) -> float:
        """Weighted media/placement average with a breadth bonus, floored at 0.5x."""
        media = scope.media.selected()
        placement = scope.placement.selected()
        avg_media = (
            sum(MEDIA_MULTIPLIERS.get(m, 1.0) for m in media) / len(media) if media else 1.0
        )
        avg_placement = (
            sum(PLACEMENT_MULTIPLIERS.get(p, 1.0) for p in placement) / len(placement)
            if placement
            else 1.0
        )
        combined = avg_media * MEDIA_WEIGHT + avg_placement * PLACEMENT_WEIGHT
        if len(media) >= 3 and len(placement) >= 3:
            return combined * BREADTH_BONUS
        return max(combined, MIN_SCOPE_MULTIPLIER)

    @staticmethod
    def duration_multiplier(start_date: datetime, end_date: datetime) -> float:
        """Step function over months (30-day units)."""
        months = exact_days(start_date, end_date) / 30
        for upper, multiplier in DURATION_STEPS:
            if months <= upper:
                return multiplier
        last_upper, last_multiplier = DURATION_STEPS[-1]
        return last_multiplier + (months - last_upper) / 12 * 0.5

    @staticmethod
    def territory_multiplier(scope: LicenseScope) -> float:
        territories = scope.territories
        if territories.is_global:
            return TERRITORY_GLOBAL
        if len(territories.territories) >= REGIONAL_MIN_TERRITORIES:
            return TERRITORY_REGIONAL
        return TERRITORY_SINGLE

    @staticmethod
    def market_adjustment(subtotal_cents: int, brand_total_spent_cents: int) -> int:
        """Negative adjustment for brands with a large spend history."""
        for threshold, rate in VOLUME_DISCOUNTS:
            if brand_total_spent_cents >= threshold:
                return round_cents(subtotal_cents * -rate)
        return 0

    @staticmethod
    def suggest_rev_share(license_type: LicenseType, fee_cents: int) -> int:
        """Suggested revenue share in basis points for a fee level."""
        bps = 1000
        if license_type == LicenseType.EXCLUSIVE:
            bps = 1500
        elif license_type == LicenseType.EXCLUSIVE_TERRITORY:
            bps = 1200
        if fee_cents >= 500000:
            bps -= 200
        elif fee_cents >= 100000:
            bps -= 100
        return max(bps, 500)

    @staticmethod
    def estimate_total_value(
        fee_cents: int, rev_share_bps: int, projected_revenue_cents: Optional[int] = None
    ) -> TotalValueEstimate:
        """Fee plus projected revenue share, with the platform split."""
        rev_share = (
            round_cents(projected_revenue_cents * rev_share_bps / 10000)
            if projected_revenue_cents
            else 0
        )
        total = fee_cents + rev_share
        platform_fee = round_cents(total * PLATFORM_COMMISSION_RATE)
        return TotalValueEstimate(
            fee_cents=fee_cents,
            rev_share_cents=rev_share,
            total_cents=total,
            platform_fee_cents=platform_fee,
            creator_net_cents=total - platform_fee,
        )
