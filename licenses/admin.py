"""
Django admin configuration for licenses app.
"""
import json

from django.contrib import admin
from django.utils.html import format_html

from licenses.infrastructure.models import (
    AmendmentApproval,
    AuditLog,
    IdempotencyKey,
    License,
    LicenseAmendment,
    LicenseExtension,
    LicenseStatusHistory,
)

STATUS_COLORS = {
    "ACTIVE": "green",
    "EXPIRING_SOON": "orange",
    "SUSPENDED": "orange",
    "DISPUTED": "red",
    "TERMINATED": "red",
    "REJECTED": "red",
    "EXPIRED": "gray",
    "CANCELED": "gray",
}


def _json_block(value):
    if not value:
        return "-"
    return format_html(
        '<pre style="background: #f5f5f5; padding: 10px; border-radius: 4px; overflow-x: auto;">{}</pre>',
        json.dumps(value, indent=2, default=str),
    )


class StatusHistoryInline(admin.TabularInline):
    model = LicenseStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ["from_status", "to_status", "transitioned_by", "transitioned_at", "reason", "automated"]


class AmendmentApprovalInline(admin.TabularInline):
    model = AmendmentApproval
    extra = 0
    readonly_fields = ["approver_id", "approver_role", "status", "comments", "decided_at"]


@admin.register(License)
class LicenseAdmin(admin.ModelAdmin):
    """Admin interface for License model."""

    list_display = ["id", "ip_asset", "brand", "license_type", "status_display", "start_date", "end_date"]
    list_filter = ["status", "license_type", "auto_renew"]
    search_fields = ["id", "brand__company_name", "ip_asset__title"]
    readonly_fields = ["id", "created_at", "updated_at", "scope_display", "metadata_display"]
    inlines = [StatusHistoryInline]
    fieldsets = (
        ("Grant", {"fields": ("id", "ip_asset", "brand", "project_id", "parent_license", "license_type", "status")}),
        ("Term", {"fields": ("start_date", "end_date", "auto_renew", "signed_at")}),
        ("Financials", {"fields": ("fee_cents", "rev_share_bps", "payment_terms", "billing_frequency")}),
        ("Scope", {"fields": ("scope_display",)}),
        ("Metadata", {"fields": ("metadata_display", "amendment_count"), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_by", "created_at", "updated_at", "deleted_at"), "classes": ("collapse",)}),
    )

    def status_display(self, obj):
        """Display status with color coding."""
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            STATUS_COLORS.get(obj.status, "black"),
            obj.status,
        )

    status_display.short_description = "Status"

    def scope_display(self, obj):
        return _json_block(obj.scope)

    scope_display.short_description = "Scope"

    def metadata_display(self, obj):
        return _json_block(obj.metadata)

    metadata_display.short_description = "Metadata"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("brand", "ip_asset")


@admin.register(LicenseAmendment)
class LicenseAmendmentAdmin(admin.ModelAdmin):
    list_display = ["license", "amendment_number", "amendment_type", "status", "approval_deadline"]
    list_filter = ["status", "amendment_type"]
    readonly_fields = ["id", "proposed_at", "decided_at"]
    inlines = [AmendmentApprovalInline]


@admin.register(LicenseExtension)
class LicenseExtensionAdmin(admin.ModelAdmin):
    list_display = ["license", "extension_days", "additional_fee_cents", "status", "respond_by"]
    list_filter = ["status", "approval_required"]
    readonly_fields = ["id", "requested_at"]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Admin interface for AuditLog model."""

    list_display = ["action", "brand", "entity_type", "entity_id", "actor", "created_at"]
    list_filter = ["action", "entity_type", "created_at"]
    search_fields = ["actor", "entity_id", "brand__company_name"]
    readonly_fields = ["id", "created_at", "changes_display"]

    def changes_display(self, obj):
        return _json_block(obj.changes)

    changes_display.short_description = "Changes"

    def has_add_permission(self, request):
        """Audit logs are read-only."""
        return False

    def has_change_permission(self, request, obj=None):
        """Audit logs are read-only."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Audit logs should not be deleted."""
        return False


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    """Admin interface for IdempotencyKey model."""

    list_display = ["key", "actor_id", "operation", "status", "expires_at"]
    list_filter = ["status", "operation"]
    search_fields = ["key", "actor_id"]
    readonly_fields = ["id", "created_at", "updated_at"]
