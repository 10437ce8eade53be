"""
Django admin configuration for brands app.
"""

from django.contrib import admin
from django.utils.html import format_html

from brands.infrastructure.models import ApiKey, Brand


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    """Admin interface for Brand model."""

    list_display = ["company_name", "owner_user_id", "verification_status", "is_active", "created_at"]
    list_filter = ["verification_status", "is_verified", "is_active"]
    search_fields = ["company_name", "owner_user_id"]
    readonly_fields = ["id", "created_at", "updated_at"]
    fieldsets = (
        ("Basic Information", {"fields": ("id", "company_name", "owner_user_id")}),
        ("Verification", {"fields": ("is_verified", "verification_status", "is_active")}),
        ("Spend", {"fields": ("total_spent_cents",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at", "deleted_at"), "classes": ("collapse",)}),
    )


@admin.register(ApiKey)
class ApiKeyAdmin(admin.ModelAdmin):
    """Admin interface for ApiKey model."""

    list_display = ["user_id", "role", "brand", "key_prefix_display", "is_valid_display", "last_used_at"]
    list_filter = ["role", "expires_at"]
    search_fields = ["key_prefix", "user_id", "brand__company_name"]
    readonly_fields = ["id", "key_prefix", "key_hash", "created_at", "last_used_at", "is_valid_display"]

    def key_prefix_display(self, obj):
        return f"{obj.key_prefix}..."

    key_prefix_display.short_description = "Key Prefix"

    def is_valid_display(self, obj):
        if obj.is_valid():
            return format_html('<span style="color: green;">Valid</span>')
        return format_html('<span style="color: red;">Expired</span>')

    is_valid_display.short_description = "Status"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("brand")

    def save_model(self, request, obj, form, change):
        """Save model and show the raw key once."""
        super().save_model(request, obj, form, change)
        if not change and hasattr(obj, "_raw_key"):
            self.message_user(
                request,
                f"API Key created! Raw key: {obj._raw_key} (Save this - it won't be shown again)",
                level="WARNING",
            )
