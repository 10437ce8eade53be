"""
Renewal service.

Loads what renewal eligibility and pricing read (lineage, ownership,
brand standing, usage, comparable licenses) and runs the domain rules.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from assets.ports.asset_repository import AssetRepository
from assets.ports.usage_metrics_repository import UsageMetricsRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import days_between
from core.domain.value_objects import LicenseStatus
from licenses.domain.conflicts import DETECTION_STATUSES, ConflictDetector, ConflictQuery
from licenses.domain.license import License
from licenses.domain.policy import DEFAULT_POLICY, LicensingPolicy
from licenses.domain.renewal import (
    MARKET_LOOKBACK_DAYS,
    OPEN_RENEWAL_STATUSES,
    PERFORMANCE_LOOKBACK_DAYS,
    USAGE_LOOKBACK_DAYS,
    EligibilityContext,
    EligibilityResult,
    PricingInputs,
    RenewalEligibilityChecker,
    RenewalPricing,
    RenewalPricingCalculator,
    RenewalStrategy,
    lookback,
    renewal_period,
)
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)

MAX_LINEAGE_DEPTH = 100
MARKET_STATUSES = frozenset({LicenseStatus.ACTIVE, LicenseStatus.RENEWED})


class RenewalService:
    """Eligibility and pricing for license renewals."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
        usage_repository: UsageMetricsRepository,
        policy: LicensingPolicy = DEFAULT_POLICY,
        detector: Optional[ConflictDetector] = None,
    ):
        self.license_repository = license_repository
        self.asset_repository = asset_repository
        self.brand_repository = brand_repository
        self.usage_repository = usage_repository
        self.policy = policy
        self.detector = detector or ConflictDetector()
        self.checker = RenewalEligibilityChecker(policy)
        self.calculator = RenewalPricingCalculator(policy.minimum_fee_cents)

    async def lineage(self, license: License) -> Tuple[int, datetime]:
        """Number of prior renewals and the creation time of the first license."""
        count = 0
        first_created = license.created_at
        current = license
        while current.parent_license_id and count < MAX_LINEAGE_DEPTH:
            parent = await self.license_repository.find_by_id(current.parent_license_id)
            if parent is None:
                break
            count += 1
            first_created = parent.created_at
            current = parent
        return count, first_created

    async def check_eligibility(
        self, license: License, now: datetime, with_terms: bool = True
    ) -> EligibilityResult:
        """
        Evaluate renewal eligibility.

        Args:
            license: License to renew
            now: Reference time
            with_terms: Attach AUTOMATIC-strategy terms when eligible

        Returns:
            EligibilityResult
        """
        renewal_count, first_created = await self.lineage(license)
        ctx = EligibilityContext(
            license=license,
            now=now,
            open_renewals=await self.license_repository.find_children(
                license.id, OPEN_RENEWAL_STATUSES
            ),
            asset=await self.asset_repository.find_by_id(license.ip_asset_id),
            ownerships=await self.asset_repository.find_ownerships(license.ip_asset_id),
            brand=await self.brand_repository.find_by_id(license.brand_id),
            probe=await self.probe_conflicts(license),
            renewal_count=renewal_count,
            relationship_start=first_created,
        )
        result = self.checker.evaluate(ctx)
        if result.eligible and with_terms:
            pricing = await self.price(license, RenewalStrategy.AUTOMATIC, now, renewal_count=renewal_count)
            result.suggested_terms = pricing.to_terms(license)
        return result

    async def probe_conflicts(self, license: License):
        """Conflicts the next period would have with other grants on the asset."""
        start, end = renewal_period(license)
        query = ConflictQuery(
            ip_asset_id=license.ip_asset_id,
            start_date=start,
            end_date=end,
            license_type=license.license_type,
            scope=license.scope,
            brand_id=license.brand_id,
            rev_share_bps=license.rev_share_bps,
            exclude_license_id=license.id,
        )
        existing = await self.license_repository.find_overlapping(
            license.ip_asset_id, start, end, DETECTION_STATUSES, exclude_license_id=license.id
        )
        return self.detector.detect(query, existing)

    async def price(
        self,
        license: License,
        strategy: RenewalStrategy,
        now: datetime,
        negotiated_percent: Optional[float] = None,
        renewal_count: Optional[int] = None,
    ) -> RenewalPricing:
        """
        Price the renewal under a strategy.

        Raises:
            ValueError: NEGOTIATED strategy without a percentage
        """
        if renewal_count is None:
            renewal_count, _ = await self.lineage(license)
        usage = await self.usage_repository.summarize(
            license.ip_asset_id, lookback(now, USAGE_LOOKBACK_DAYS)
        )
        revenue_cents = 0
        if strategy == RenewalStrategy.PERFORMANCE_BASED:
            performance = await self.usage_repository.summarize(
                license.ip_asset_id, lookback(now, PERFORMANCE_LOOKBACK_DAYS)
            )
            revenue_cents = performance.total_revenue_cents
        market_fees = ()
        if strategy == RenewalStrategy.MARKET_RATE:
            comparables = await self.license_repository.find_market_comparables(
                license.ip_asset_id,
                MARKET_STATUSES,
                lookback(now, MARKET_LOOKBACK_DAYS),
                exclude_license_id=license.id,
            )
            market_fees = tuple(c.fee_cents for c in comparables)
        inputs = PricingInputs(
            license=license,
            strategy=strategy,
            days_until_expiration=days_between(now, license.end_date),
            renewal_count=renewal_count,
            usage=usage,
            revenue_cents=revenue_cents,
            market_fees_cents=market_fees,
            negotiated_percent=negotiated_percent,
        )
        return self.calculator.calculate(inputs)
