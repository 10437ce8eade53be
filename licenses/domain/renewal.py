"""
Renewal eligibility and pricing.

Eligibility collects blocking reasons and warnings for a license that
may be renewed. Pricing applies a strategy, then loyalty and early
renewal discounts, then caps against the original fee, then the
minimum-fee floor.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from assets.domain.asset import IpAsset, Ownership
from assets.domain.usage import UsageSummary
from brands.domain.brand import Brand
from core.domain.clock import DAY, days_between
from core.domain.value_objects import AssetStatus, LicenseStatus
from licenses.domain.conflicts import ConflictResult
from licenses.domain.license import License
from licenses.domain.metadata import PricingAdjustment, RenewalTerms
from licenses.domain.policy import DEFAULT_POLICY, LicensingPolicy
from licenses.domain.pricing import PLATFORM_COMMISSION_RATE, round_cents

RENEWABLE_STATUSES = frozenset(
    {LicenseStatus.ACTIVE, LicenseStatus.EXPIRING_SOON, LicenseStatus.EXPIRED}
)
# Children in these statuses mean a renewal is already under way.
OPEN_RENEWAL_STATUSES = frozenset(
    {LicenseStatus.ACTIVE, LicenseStatus.PENDING_APPROVAL, LicenseStatus.DRAFT}
)

INFLATION_RATE = 0.05
HIGH_USAGE_VIEWS = 1_000_000
LOW_USAGE_VIEWS = 100_000
HIGH_USAGE_RATE = 0.10
LOW_USAGE_RATE = -0.05
HIGH_ROI = 5
LOW_ROI = 2
HIGH_ROI_RATE = 0.15
LOW_ROI_RATE = -0.05
MARKET_THRESHOLD = 0.10
MARKET_CAP = 0.15
EARLY_RENEWAL_DAYS = 60
EARLY_RENEWAL_RATE = 0.05
MAX_INCREASE = 0.25
MAX_DECREASE = 0.20

# (minimum renewal count, discount)
LOYALTY_TIERS = ((5, 0.15), (3, 0.10), (2, 0.05))

USAGE_LOOKBACK_DAYS = 90
PERFORMANCE_LOOKBACK_DAYS = 90
MARKET_LOOKBACK_DAYS = 180

ELIGIBLE_REASON = "License meets all renewal criteria"


class RenewalStrategy(Enum):
    """How the base renewal fee is derived."""

    AUTOMATIC = "AUTOMATIC"
    FLAT = "FLAT"
    USAGE_BASED = "USAGE_BASED"
    MARKET_RATE = "MARKET_RATE"
    PERFORMANCE_BASED = "PERFORMANCE_BASED"
    NEGOTIATED = "NEGOTIATED"

    def __str__(self) -> str:
        return self.value


def loyalty_discount(renewal_count: int) -> float:
    for threshold, rate in LOYALTY_TIERS:
        if renewal_count >= threshold:
            return rate
    return 0.0


def renewal_likelihood(renewal_count: int) -> str:
    if renewal_count >= 2:
        return "HIGH"
    if renewal_count == 0:
        return "LOW"
    return "MEDIUM"


def renewal_period(license: License) -> Tuple[datetime, datetime]:
    """Same duration as the original, starting one day after it ends."""
    start = license.end_date + DAY
    return start, start + (license.end_date - license.start_date)


@dataclass(frozen=True)
class PricingInputs:
    """Everything the pricing strategies read."""

    license: License
    strategy: RenewalStrategy
    days_until_expiration: int
    renewal_count: int = 0
    usage: UsageSummary = field(default_factory=UsageSummary)
    revenue_cents: int = 0
    market_fees_cents: Sequence[int] = ()
    negotiated_percent: Optional[float] = None


@dataclass(frozen=True)
class RenewalPricing:
    """Derived renewal fee with its audit trail."""

    original_fee_cents: int
    final_fee_cents: int
    platform_fee_cents: int
    creator_net_cents: int
    adjustments: Tuple[PricingAdjustment, ...]
    confidence: int
    reasoning: Tuple[str, ...]
    strategy: RenewalStrategy
    duration_days: int

    @property
    def comparison(self) -> Dict[str, Any]:
        absolute = self.final_fee_cents - self.original_fee_cents
        percent = (
            round(absolute / self.original_fee_cents * 100, 2) if self.original_fee_cents else 0.0
        )
        return {
            "percent_change": percent,
            "absolute_change_cents": absolute,
            "projected_annual_value_cents": round_cents(
                self.final_fee_cents * 365 / max(self.duration_days, 1)
            ),
        }

    def to_terms(self, license: License) -> RenewalTerms:
        start, end = renewal_period(license)
        return RenewalTerms(
            duration_days=self.duration_days,
            fee_cents=self.final_fee_cents,
            rev_share_bps=license.rev_share_bps,
            start_date=start,
            end_date=end,
            original_fee_cents=self.original_fee_cents,
            strategy=self.strategy.value,
            confidence=self.confidence,
            adjustments=self.adjustments,
            reasoning=self.reasoning,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_fee_cents": self.original_fee_cents,
            "final_fee_cents": self.final_fee_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "creator_net_cents": self.creator_net_cents,
            "adjustments": [a.to_dict() for a in self.adjustments],
            "confidence": self.confidence,
            "reasoning": list(self.reasoning),
            "strategy": self.strategy.value,
            "comparison": self.comparison,
        }


class RenewalPricingCalculator:
    """Computes renewal fees under a chosen strategy."""

    def __init__(self, minimum_fee_cents: int = DEFAULT_POLICY.minimum_fee_cents):
        self.minimum_fee_cents = minimum_fee_cents

    def calculate(self, inputs: PricingInputs) -> RenewalPricing:
        """
        Derive the renewal fee.

        Raises:
            ValueError: NEGOTIATED strategy without a percentage
        """
        original = inputs.license.fee_cents
        fee = original
        adjustments: List[PricingAdjustment] = []
        reasoning: List[str] = []

        def adjust(kind: str, label: str, rate: float, reason: str) -> None:
            nonlocal fee
            amount = round_cents(fee * rate)
            if amount == 0:
                return
            adjustments.append(
                PricingAdjustment(
                    type=kind,
                    label=label,
                    amount_cents=amount,
                    percent_change=round(rate * 100, 2),
                    reason=reason,
                )
            )
            fee += amount

        rate, label, reason = self.strategy_rate(inputs)
        if rate:
            adjust("strategy", label, rate, reason)
        reasoning.append(reason)

        loyalty = loyalty_discount(inputs.renewal_count)
        if loyalty:
            adjust(
                "loyalty",
                "Loyalty discount",
                -loyalty,
                f"{inputs.renewal_count} prior renewals",
            )
            reasoning.append(f"Loyalty discount of {loyalty:.0%} applied")

        if inputs.days_until_expiration > EARLY_RENEWAL_DAYS:
            adjust(
                "early_renewal",
                "Early renewal discount",
                -EARLY_RENEWAL_RATE,
                f"Renewed {inputs.days_until_expiration} days before expiration",
            )
            reasoning.append("Early renewal discount applied")

        ceiling = round_cents(original * (1 + MAX_INCREASE))
        floor = round_cents(original * (1 - MAX_DECREASE))
        if fee > ceiling or fee < floor:
            capped = min(max(fee, floor), ceiling)
            adjustments.append(
                PricingAdjustment(
                    type="cap",
                    label="Maximum increase cap" if fee > ceiling else "Maximum decrease cap",
                    amount_cents=capped - fee,
                    percent_change=round((capped - fee) / fee * 100, 2) if fee else 0.0,
                    reason="Renewal fee limited to +25%/-20% of the original fee",
                )
            )
            reasoning.append("Renewal fee capped against the original fee")
            fee = capped

        if fee < self.minimum_fee_cents:
            adjustments.append(
                PricingAdjustment(
                    type="minimum",
                    label="Minimum fee",
                    amount_cents=self.minimum_fee_cents - fee,
                    percent_change=0.0,
                    reason="Minimum license fee enforced",
                )
            )
            reasoning.append("Minimum license fee enforced")
            fee = self.minimum_fee_cents

        platform_fee = round_cents(fee * PLATFORM_COMMISSION_RATE)
        return RenewalPricing(
            original_fee_cents=original,
            final_fee_cents=fee,
            platform_fee_cents=platform_fee,
            creator_net_cents=fee - platform_fee,
            adjustments=tuple(adjustments),
            confidence=self.confidence(inputs, len(adjustments)),
            reasoning=tuple(reasoning),
            strategy=inputs.strategy,
            duration_days=inputs.license.duration_days,
        )

    def strategy_rate(self, inputs: PricingInputs) -> Tuple[float, str, str]:
        """(rate, label, reason) for the selected strategy."""
        strategy = inputs.strategy
        if strategy == RenewalStrategy.FLAT:
            return 0.0, "Flat renewal", "Flat renewal keeps the current fee"
        if strategy == RenewalStrategy.AUTOMATIC:
            return INFLATION_RATE, "Inflation adjustment", "Standard 5% inflation adjustment"
        if strategy == RenewalStrategy.NEGOTIATED:
            if inputs.negotiated_percent is None:
                raise ValueError("Negotiated renewals require a fee change percentage")
            return (
                inputs.negotiated_percent / 100,
                "Negotiated adjustment",
                f"Negotiated change of {inputs.negotiated_percent:+.2f}%",
            )
        if strategy == RenewalStrategy.USAGE_BASED:
            usage = inputs.usage
            if not usage.has_data:
                return 0.0, "Usage adjustment", "No usage data available; fee unchanged"
            if usage.total_views > HIGH_USAGE_VIEWS:
                return HIGH_USAGE_RATE, "High usage premium", f"{usage.total_views:,} views in the last 90 days"
            if usage.total_views < LOW_USAGE_VIEWS:
                return LOW_USAGE_RATE, "Low usage discount", f"{usage.total_views:,} views in the last 90 days"
            return 0.0, "Usage adjustment", "Usage within normal range; fee unchanged"
        if strategy == RenewalStrategy.PERFORMANCE_BASED:
            fee = inputs.license.fee_cents
            if not fee or not inputs.revenue_cents:
                return 0.0, "Performance adjustment", "No performance data available; fee unchanged"
            roi = inputs.revenue_cents / fee
            if roi > HIGH_ROI:
                return HIGH_ROI_RATE, "High performance premium", f"ROI of {roi:.1f}x"
            if roi < LOW_ROI:
                return LOW_ROI_RATE, "Low performance discount", f"ROI of {roi:.1f}x"
            return 0.0, "Performance adjustment", f"ROI of {roi:.1f}x; fee unchanged"
        if strategy == RenewalStrategy.MARKET_RATE:
            fees = list(inputs.market_fees_cents)
            fee = inputs.license.fee_cents
            if not fees or not fee:
                return 0.0, "Market adjustment", "No comparable licenses; fee unchanged"
            average = sum(fees) / len(fees)
            difference = (average - fee) / fee
            if abs(difference) < MARKET_THRESHOLD:
                return 0.0, "Market adjustment", "Fee within 10% of market rate"
            rate = max(-MARKET_CAP, min(MARKET_CAP, difference))
            return rate, "Market rate adjustment", f"Market average is {round_cents(average)} cents"
        raise ValueError(f"Unknown renewal strategy: {strategy}")

    @staticmethod
    def confidence(inputs: PricingInputs, adjustment_count: int) -> int:
        score = 50
        if inputs.strategy == RenewalStrategy.FLAT:
            score += 30
        elif inputs.strategy == RenewalStrategy.NEGOTIATED:
            score += 40
        if inputs.renewal_count > 3:
            score += 10
        if inputs.renewal_count > 5:
            score += 10
        if inputs.usage.days_with_data > 60:
            score += 15
        if inputs.usage.days_with_data > 90:
            score += 10
        if adjustment_count > 2:
            score += 5
        return max(0, min(100, score))


@dataclass
class EligibilityContext:
    """Records read to decide renewal eligibility."""

    license: License
    now: datetime
    open_renewals: List[License] = field(default_factory=list)
    asset: Optional[IpAsset] = None
    ownerships: List[Ownership] = field(default_factory=list)
    brand: Optional[Brand] = None
    probe: Optional[ConflictResult] = None
    renewal_count: int = 0
    relationship_start: Optional[datetime] = None


@dataclass
class EligibilityResult:
    """Whether a license can be renewed, and why."""

    eligible: bool
    reasons: List[str]
    warnings: List[str]
    metadata: Dict[str, Any]
    suggested_action: str
    suggested_terms: Optional[RenewalTerms] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eligible": self.eligible,
            "reasons": list(self.reasons),
            "warnings": list(self.warnings),
            "metadata": self.metadata,
            "suggested_action": self.suggested_action,
            "suggested_terms": self.suggested_terms.to_dict() if self.suggested_terms else None,
        }


class RenewalEligibilityChecker:
    """Applies the renewal window, standing and ownership rules."""

    def __init__(self, policy: LicensingPolicy = DEFAULT_POLICY):
        self.policy = policy

    def evaluate(self, ctx: EligibilityContext) -> EligibilityResult:
        license = ctx.license
        days_left = days_between(ctx.now, license.end_date)
        blocking: List[str] = []
        warnings: List[str] = []

        if days_left > self.policy.renewal_window_days:
            blocking.append(
                f"Too early to renew: license expires in {days_left} days "
                f"(renewal opens {self.policy.renewal_window_days} days before expiration)"
            )
        if days_left < -self.policy.renewal_grace_days:
            blocking.append(
                f"License expired {-days_left} days ago; renewals are allowed up to "
                f"{self.policy.renewal_grace_days} days after expiration"
            )
        if license.status not in RENEWABLE_STATUSES:
            blocking.append(f"License status {license.status.value} is not eligible for renewal")
        if ctx.open_renewals:
            blocking.append(f"A renewal already exists for this license ({ctx.open_renewals[0].id})")
        if license.is_deleted:
            blocking.append("License has been deleted")

        asset = ctx.asset
        if asset is None or asset.is_deleted:
            blocking.append("IP asset has been deleted")
        current = [o for o in ctx.ownerships if o.is_current(ctx.now)]
        if not current:
            blocking.append("IP asset has no current ownership records")

        brand = ctx.brand
        if brand is None or brand.is_deleted:
            blocking.append("Brand account has been deleted")
        elif not brand.is_active:
            blocking.append("Brand account is inactive")

        disputed = any(o.has_unresolved_dispute for o in ctx.ownerships)
        if disputed:
            blocking.append("IP asset has unresolved ownership disputes")

        if asset is not None and not asset.is_deleted and asset.status != AssetStatus.PUBLISHED:
            warnings.append(f"IP asset status is {asset.status.value}")
        for ownership in current:
            if not ownership.creator.is_active:
                warnings.append(f"Creator {ownership.creator.display_name} account is inactive")
        conflict_count = 0
        if ctx.probe is not None and ctx.probe.has_conflicts:
            conflict_count = len(ctx.probe.conflicts)
            warnings.append(f"Renewal period conflicts with {conflict_count} existing license(s)")
            warnings.extend(c.details for c in ctx.probe.conflicts)

        eligible = not blocking
        if eligible:
            action = (
                "License will be renewed automatically"
                if license.auto_renew
                else "Generate renewal offer for brand review"
            )
        else:
            action = f"Resolve blocking issues: {'; '.join(blocking[:2])}"

        start = ctx.relationship_start or license.created_at
        metadata = {
            "days_until_expiration": days_left,
            "current_value_cents": license.fee_cents,
            "renewal_count": ctx.renewal_count,
            "renewal_likelihood": renewal_likelihood(ctx.renewal_count),
            "relationship_length_days": max(days_between(start, ctx.now), 0),
            "auto_renew": license.auto_renew,
            "has_disputes": disputed,
            "conflict_count": conflict_count,
        }
        return EligibilityResult(
            eligible=eligible,
            reasons=[ELIGIBLE_REASON] if eligible else blocking,
            warnings=warnings,
            metadata=metadata,
            suggested_action=action,
        )


def lookback(now: datetime, days: int) -> datetime:
    return now - timedelta(days=days)
