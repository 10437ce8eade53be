"""
License, status history, amendment, extension, audit and idempotency models.
"""
import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from core.domain.value_objects import LicenseStatus, LicenseType, Role


def _choices(enum):
    return [(member.value, member.value.replace("_", " ").title()) for member in enum]


class License(models.Model):
    """
    A grant of usage rights on one IP asset to one brand.

    Scope and the typed metadata sub-records (signatures, approval history,
    renewal offers) are stored as JSON.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ip_asset = models.ForeignKey("assets.IpAsset", on_delete=models.PROTECT, related_name="licenses")
    brand = models.ForeignKey("brands.Brand", on_delete=models.PROTECT, related_name="licenses")
    project_id = models.UUIDField(null=True, blank=True)
    parent_license = models.ForeignKey(
        "self", on_delete=models.PROTECT, null=True, blank=True, related_name="renewals"
    )
    license_type = models.CharField(max_length=30, choices=_choices(LicenseType))
    status = models.CharField(
        max_length=30, choices=_choices(LicenseStatus), default=LicenseStatus.DRAFT.value
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    fee_cents = models.BigIntegerField(default=0)
    rev_share_bps = models.IntegerField(default=0, help_text="Revenue share in basis points")
    scope = models.JSONField(default=dict)
    auto_renew = models.BooleanField(default=False)
    payment_terms = models.CharField(max_length=255, null=True, blank=True)
    billing_frequency = models.CharField(max_length=50, null=True, blank=True)
    signed_at = models.DateTimeField(null=True, blank=True)
    amendment_count = models.IntegerField(default=0)
    metadata = models.JSONField(default=dict, blank=True)
    created_by = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "licenses"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["ip_asset", "status"]),
            models.Index(fields=["ip_asset", "start_date", "end_date"]),
            models.Index(fields=["brand", "status"]),
            models.Index(fields=["status", "end_date"]),
            models.Index(fields=["parent_license"]),
        ]

    def __str__(self):
        return f"{self.license_type} {self.ip_asset_id} -> {self.brand_id} ({self.status})"


class LicenseStatusHistory(models.Model):
    """
    Append-only trail of license status changes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name="status_history")
    from_status = models.CharField(max_length=30, choices=_choices(LicenseStatus))
    to_status = models.CharField(max_length=30, choices=_choices(LicenseStatus))
    transitioned_by = models.CharField(max_length=255)
    transitioned_at = models.DateTimeField(default=timezone.now)
    reason = models.TextField(null=True, blank=True)
    automated = models.BooleanField(default=False)

    class Meta:
        db_table = "license_status_history"
        ordering = ["-transitioned_at"]
        indexes = [
            models.Index(fields=["license", "transitioned_at"]),
        ]

    def __str__(self):
        return f"{self.license_id}: {self.from_status} -> {self.to_status}"


class LicenseAmendment(models.Model):
    """
    A proposed change set on a license.
    """

    STATUS_CHOICES = [
        ("PROPOSED", "Proposed"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name="amendments")
    amendment_number = models.IntegerField()
    proposed_by = models.CharField(max_length=255)
    proposed_by_role = models.CharField(max_length=20, choices=_choices(Role))
    amendment_type = models.CharField(max_length=30)
    justification = models.TextField()
    changes = models.JSONField(default=list, help_text="Before/after value per field")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="PROPOSED")
    approval_deadline = models.DateTimeField()
    proposed_at = models.DateTimeField(default=timezone.now)
    decided_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "license_amendments"
        ordering = ["-amendment_number"]
        unique_together = [["license", "amendment_number"]]
        indexes = [
            models.Index(fields=["status", "approval_deadline"]),
        ]

    def __str__(self):
        return f"Amendment #{self.amendment_number} on {self.license_id}"


class AmendmentApproval(models.Model):
    """
    One counter-party's decision on an amendment.
    """

    STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    amendment = models.ForeignKey(LicenseAmendment, on_delete=models.CASCADE, related_name="approvals")
    approver_id = models.CharField(max_length=255, db_index=True)
    approver_role = models.CharField(max_length=20, choices=_choices(Role))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="PENDING")
    comments = models.TextField(null=True, blank=True)
    decided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "amendment_approvals"
        unique_together = [["amendment", "approver_id"]]

    def __str__(self):
        return f"{self.approver_id} on {self.amendment_id}: {self.status}"


class LicenseExtension(models.Model):
    """
    A request to push a license's end date out.
    """

    STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name="extensions")
    requested_by = models.CharField(max_length=255)
    original_end_date = models.DateTimeField()
    new_end_date = models.DateTimeField()
    extension_days = models.IntegerField()
    additional_fee_cents = models.BigIntegerField(default=0)
    justification = models.TextField(blank=True, default="")
    approval_required = models.BooleanField(default=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="PENDING")
    requested_at = models.DateTimeField(default=timezone.now)
    respond_by = models.DateTimeField()
    approved_by = models.CharField(max_length=255, null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.CharField(max_length=255, null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "license_extensions"
        ordering = ["-requested_at"]
        indexes = [
            models.Index(fields=["license", "status"]),
            models.Index(fields=["status", "respond_by"]),
        ]

    def __str__(self):
        return f"+{self.extension_days}d on {self.license_id} ({self.status})"


class AuditLog(models.Model):
    """
    Immutable audit trail of all license-related changes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    brand = models.ForeignKey(
        "brands.Brand", on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs"
    )
    entity_type = models.CharField(max_length=50)
    entity_id = models.UUIDField()
    action = models.CharField(max_length=50)
    changes = models.JSONField(default=dict, encoder=DjangoJSONEncoder, help_text="Details of the change")
    actor = models.CharField(max_length=255, help_text="Who performed the action")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "audit_logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["brand", "created_at"]),
            models.Index(fields=["action"]),
        ]

    def __str__(self):
        return f"{self.action} - {self.entity_type} {self.entity_id}"


class IdempotencyKey(models.Model):
    """
    Stores idempotency keys to prevent duplicate operations.
    """

    STATUS_CHOICES = [
        ("processing", "Processing"),
        ("processed", "Processed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=255, unique=True, db_index=True)
    actor_id = models.CharField(max_length=255)
    operation = models.CharField(max_length=100)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="processing")
    response_data = models.JSONField(
        null=True, blank=True, encoder=DjangoJSONEncoder, help_text="Cached response for idempotent replay"
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    class Meta:
        db_table = "idempotency_keys"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["expires_at"]),
        ]

    def __str__(self):
        return self.key

    @property
    def is_expired(self) -> bool:
        """
        Check if idempotency key is expired.

        Returns:
            True if expired, False otherwise
        """
        return timezone.now() > self.expires_at
