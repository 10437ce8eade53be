"""
IP asset, creator, ownership and daily metric models.
"""
import uuid

from django.db import models
from django.utils import timezone

from core.domain.value_objects import AssetStatus, AssetType, OwnershipType


def _choices(enum):
    return [(member.value, member.value.replace("_", " ").title()) for member in enum]


class IpAsset(models.Model):
    """
    A licensable piece of intellectual property.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=500)
    asset_type = models.CharField(max_length=20, choices=_choices(AssetType))
    status = models.CharField(max_length=20, choices=_choices(AssetStatus), default=AssetStatus.DRAFT.value)
    parent_asset = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="derivatives"
    )
    created_at = models.DateTimeField(default=timezone.now)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "ip_assets"
        ordering = ["-created_at"]

    def __str__(self):
        return self.title


class Creator(models.Model):
    """
    A creator account that can hold ownership shares.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=255, unique=True)
    display_name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "creators"
        ordering = ["display_name"]

    def __str__(self):
        return self.display_name


class IpOwnership(models.Model):
    """
    A creator's share of an asset, in basis points, over a period.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ip_asset = models.ForeignKey(IpAsset, on_delete=models.CASCADE, related_name="ownerships")
    creator = models.ForeignKey(Creator, on_delete=models.PROTECT, related_name="ownerships")
    share_bps = models.IntegerField(help_text="Ownership share in basis points")
    ownership_type = models.CharField(
        max_length=20, choices=_choices(OwnershipType), default=OwnershipType.PRIMARY.value
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(null=True, blank=True)
    disputed = models.BooleanField(default=False)
    resolved_at = models.DateTimeField(null=True, blank=True)
    contract_reference = models.CharField(max_length=255, null=True, blank=True)
    legal_doc_url = models.URLField(max_length=500, null=True, blank=True)

    class Meta:
        db_table = "ip_ownerships"
        indexes = [
            models.Index(fields=["ip_asset", "start_date"]),
        ]

    def __str__(self):
        return f"{self.creator_id} owns {self.share_bps}bps of {self.ip_asset_id}"


class DailyMetric(models.Model):
    """
    One day of usage figures for an asset.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ip_asset = models.ForeignKey(IpAsset, on_delete=models.CASCADE, related_name="daily_metrics")
    date = models.DateField()
    views = models.IntegerField(default=0)
    revenue_cents = models.BigIntegerField(default=0)

    class Meta:
        db_table = "daily_metrics"
        unique_together = [["ip_asset", "date"]]
        ordering = ["-date"]

    def __str__(self):
        return f"{self.ip_asset_id} {self.date}"
