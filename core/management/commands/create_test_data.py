"""
Django management command to create test data for development.

Creates:
- A brand with its owner's API key
- An IP asset owned by one creator, with the creator's API key
- An admin API key
- Optionally, a few days of usage metrics for renewal pricing
"""

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from assets.infrastructure.models import Creator, DailyMetric, IpAsset, IpOwnership
from brands.infrastructure.models import ApiKey, Brand
from core.domain.value_objects import AssetStatus, AssetType, OwnershipType, Role


class Command(BaseCommand):
    """Command to create test data."""

    help = "Create test data (brand, asset, creator ownership, API keys)"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            "--company-name",
            type=str,
            default="Test Brand",
            help="Brand company name (default: Test Brand)",
        )
        parser.add_argument(
            "--asset-title",
            type=str,
            default="Test Asset",
            help="IP asset title (default: Test Asset)",
        )
        parser.add_argument(
            "--metrics-days",
            type=int,
            default=0,
            help="Days of usage metrics to generate (default: 0)",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        """Execute the command."""
        now = timezone.now()
        brand = Brand.objects.create(
            company_name=options["company_name"],
            owner_user_id="brand-owner",
            is_verified=True,
            verification_status="approved",
        )
        asset = IpAsset.objects.create(
            title=options["asset_title"],
            asset_type=AssetType.PHOTO.value,
            status=AssetStatus.PUBLISHED.value,
        )
        creator = Creator.objects.create(user_id="creator-1", display_name="Test Creator")
        IpOwnership.objects.create(
            ip_asset=asset,
            creator=creator,
            share_bps=10000,
            ownership_type=OwnershipType.PRIMARY.value,
            start_date=now - timedelta(days=365),
            contract_reference="TEST-CONTRACT-1",
        )
        for day in range(options["metrics_days"]):
            DailyMetric.objects.create(
                ip_asset=asset, date=(now - timedelta(days=day)).date(), views=1000, revenue_cents=5000
            )

        keys = [
            ApiKey.objects.create(user_id=brand.owner_user_id, role=Role.BRAND.value, brand=brand),
            ApiKey.objects.create(user_id=creator.user_id, role=Role.CREATOR.value),
            ApiKey.objects.create(user_id="admin", role=Role.ADMIN.value),
        ]

        self.stdout.write(self.style.SUCCESS(f"Brand: {brand.company_name} ({brand.id})"))
        self.stdout.write(self.style.SUCCESS(f"Asset: {asset.title} ({asset.id})"))
        for key in keys:
            self.stdout.write(f"  {key.role} API key for {key.user_id}: {key._raw_key}")
        self.stdout.write(self.style.WARNING("Save the API keys - they won't be shown again"))
