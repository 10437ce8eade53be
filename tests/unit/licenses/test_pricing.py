"""
Unit tests for FeeCalculator.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.domain.value_objects import AssetType, LicenseType
from licenses.domain.pricing import FeeCalculator, FeeInput, round_cents
from licenses.domain.scope import GeographicScope, LicenseScope, MediaScope, PlacementScope

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def fee_input(
    days=30,
    asset_type=AssetType.PHOTO,
    license_type=LicenseType.NON_EXCLUSIVE,
    territories=("GB",),
    spent=0,
    media=None,
    placement=None,
):
    scope = LicenseScope(
        media=media or MediaScope(digital=True),
        placement=placement or PlacementScope(social=True),
        geographic=GeographicScope(tuple(territories)) if territories is not None else None,
    )
    return FeeInput(
        asset_type=asset_type,
        license_type=license_type,
        start_date=START,
        end_date=START + timedelta(days=days),
        scope=scope,
        brand_total_spent_cents=spent,
    )


class TestFeeCalculator:
    """Tests for FeeCalculator.calculate."""

    def test_baseline_photo(self):
        """Test a one-month single-territory photo grant costs the base rate."""
        breakdown = FeeCalculator().calculate(fee_input())

        assert breakdown.base_rate_cents == 50000
        assert breakdown.subtotal_cents == 50000
        assert breakdown.total_fee_cents == 50000
        assert breakdown.platform_fee_cents == 5000
        assert breakdown.creator_net_cents == 45000
        assert breakdown.exclusivity_premium_cents == 0
        assert breakdown.minimum_fee_applied is False

    def test_video_base_rate(self):
        """Test video assets use their own base rate."""
        assert FeeCalculator().calculate(fee_input(asset_type=AssetType.VIDEO)).base_rate_cents == 100000

    def test_global_exclusive_quarter(self):
        """Test exclusivity, duration and global territory multiply together."""
        breakdown = FeeCalculator().calculate(
            fee_input(days=90, license_type=LicenseType.EXCLUSIVE, territories=None)
        )

        assert breakdown.exclusivity_multiplier == 3.0
        assert breakdown.duration_multiplier == 1.8
        assert breakdown.territory_multiplier == 2.0
        assert breakdown.total_fee_cents == 540000
        assert breakdown.exclusivity_premium_cents == 100000

    @pytest.mark.parametrize(
        "days,expected",
        [(30, 1.0), (31, 1.8), (90, 1.8), (180, 2.5), (360, 4.0), (720, 7.0), (1080, 9.5), (1440, 10.0)],
    )
    def test_duration_steps(self, days, expected):
        """Test the month-based duration steps."""
        assert FeeCalculator.duration_multiplier(START, START + timedelta(days=days)) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "territories,expected",
        [(("GB",), 1.0), (("GB", "FR"), 1.0), (("GB", "FR", "DE"), 1.5), (("GLOBAL",), 2.0), (None, 2.0)],
    )
    def test_territory_multiplier(self, territories, expected):
        """Test single, regional and global territory multipliers."""
        assert FeeCalculator().calculate(fee_input(territories=territories)).territory_multiplier == expected

    def test_breadth_bonus(self):
        """Test three media and three placements earn the breadth bonus."""
        multiplier = FeeCalculator.scope_multiplier(
            LicenseScope(
                media=MediaScope(digital=True, print=True, broadcast=True),
                placement=PlacementScope(social=True, website=True, email=True),
            )
        )
        assert multiplier == pytest.approx((1.4 * 0.6 + 1.0 * 0.4) * 1.2)

    @pytest.mark.parametrize("spent,discount", [(1000000, -5000), (500000, -2500), (250000, -1500), (249999, 0)])
    def test_volume_discount(self, spent, discount):
        """Test spend tiers discount the subtotal."""
        breakdown = FeeCalculator().calculate(fee_input(spent=spent))
        assert breakdown.market_adjustment_cents == discount
        assert breakdown.total_fee_cents == 50000 + discount

    def test_minimum_fee(self):
        """Test the minimum fee floor."""
        breakdown = FeeCalculator(minimum_fee_cents=60000).calculate(fee_input())

        assert breakdown.total_fee_cents == 60000
        assert breakdown.minimum_fee_applied is True
        assert breakdown.entries[-2].label == "Minimum fee enforced"

    def test_breakdown_lines(self):
        """Test the breakdown ends with the platform fee."""
        data = FeeCalculator().calculate(fee_input()).to_dict()
        assert data["breakdown"][0]["type"] == "base"
        assert data["breakdown"][-1] == {"label": "Platform fee (10%)", "amount_cents": -5000, "type": "fee"}


class TestRevShareAndValue:
    """Tests for revenue share suggestions and value estimates."""

    @pytest.mark.parametrize(
        "license_type,fee,expected",
        [
            (LicenseType.NON_EXCLUSIVE, 50000, 1000),
            (LicenseType.NON_EXCLUSIVE, 100000, 900),
            (LicenseType.EXCLUSIVE, 500000, 1300),
            (LicenseType.EXCLUSIVE_TERRITORY, 0, 1200),
        ],
    )
    def test_suggest_rev_share(self, license_type, fee, expected):
        """Test suggested revenue share by tier and fee level."""
        assert FeeCalculator.suggest_rev_share(license_type, fee) == expected

    def test_estimate_total_value(self):
        """Test projected revenue share is added to the fee."""
        estimate = FeeCalculator.estimate_total_value(100000, 1000, 500000)

        assert estimate.rev_share_cents == 50000
        assert estimate.total_cents == 150000
        assert estimate.platform_fee_cents == 15000
        assert estimate.creator_net_cents == 135000

    def test_estimate_without_projection(self):
        """Test no projection means no revenue share."""
        assert FeeCalculator.estimate_total_value(100000, 1000).rev_share_cents == 0

    def test_round_cents_half_up(self):
        """Test halves round away from zero."""
        assert round_cents(2.5) == 3
        assert round_cents(-2.5) == -3
