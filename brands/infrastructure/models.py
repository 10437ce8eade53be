"""
Brand and API Key models.
"""

import hashlib
import secrets
import uuid

from django.db import models
from django.utils import timezone

from core.domain.value_objects import Role


class Brand(models.Model):
    """
    A company licensing IP assets.

    Owned by a single user account; verification and spend history feed
    license validation and renewal pricing.
    """

    VERIFICATION_CHOICES = [
        ("pending", "Pending"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company_name = models.CharField(max_length=255, help_text="Brand display name")
    owner_user_id = models.CharField(max_length=255, db_index=True)
    is_verified = models.BooleanField(default=False)
    verification_status = models.CharField(max_length=20, choices=VERIFICATION_CHOICES, default="pending")
    is_active = models.BooleanField(default=True)
    total_spent_cents = models.BigIntegerField(default=0, help_text="Historical spend on the platform")
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "brands"
        ordering = ["company_name"]

    def clean(self):
        """Validate brand fields."""
        from django.core.exceptions import ValidationError

        if not self.company_name or not self.company_name.strip():
            raise ValidationError("Company name is required")
        if self.total_spent_cents < 0:
            raise ValidationError("Total spend cannot be negative")

    def save(self, *args, **kwargs):
        """Save brand with validation."""
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.company_name


class ApiKey(models.Model):
    """
    API key identifying the user and role behind a request.

    Brand keys point at the brand they act for.
    """

    ROLE_CHOICES = [(role.value, role.value.title()) for role in (Role.BRAND, Role.CREATOR, Role.ADMIN)]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=255)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    brand = models.ForeignKey(Brand, on_delete=models.CASCADE, null=True, blank=True, related_name="api_keys")
    key_prefix = models.CharField(max_length=8, editable=False)
    key_hash = models.CharField(max_length=64, editable=False, db_index=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "api_keys"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user_id", "role"]),
        ]

    def __str__(self):
        return f"{self.user_id} ({self.role}) - {self.key_prefix}..."

    def clean(self):
        """Validate API key fields."""
        from django.core.exceptions import ValidationError

        if self.role == Role.BRAND.value and not self.brand_id:
            raise ValidationError("Brand keys must reference a brand")

    def save(self, *args, **kwargs):
        """Generate API key on first save."""
        if not self.key_hash:
            raw_key = secrets.token_urlsafe(32)
            self.key_prefix = raw_key[:8]
            self.key_hash = self.hash_key(raw_key)
            # Only available on the instance that created it
            self._raw_key = raw_key
        self.full_clean()
        super().save(*args, **kwargs)

    @staticmethod
    def hash_key(raw_key: str) -> str:
        return hashlib.sha256(raw_key.encode()).hexdigest()

    def verify_key(self, raw_key: str) -> bool:
        """
        Verify a raw API key against the stored hash.

        Args:
            raw_key: The raw API key to verify

        Returns:
            True if key matches, False otherwise
        """
        return secrets.compare_digest(self.key_hash, self.hash_key(raw_key))

    def is_valid(self) -> bool:
        """
        Check if the API key is still valid.

        Returns:
            True if key is valid, False if expired
        """
        return not (self.expires_at and self.expires_at < timezone.now())

    def mark_used(self):
        """Update last_used_at timestamp."""
        self.last_used_at = timezone.now()
        self.save(update_fields=["last_used_at"])
