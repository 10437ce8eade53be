"""
Django admin configuration for assets app.
"""
from django.contrib import admin

from assets.infrastructure.models import Creator, DailyMetric, IpAsset, IpOwnership


class OwnershipInline(admin.TabularInline):
    model = IpOwnership
    extra = 0


@admin.register(IpAsset)
class IpAssetAdmin(admin.ModelAdmin):
    list_display = ["title", "asset_type", "status", "created_at"]
    list_filter = ["asset_type", "status"]
    search_fields = ["title"]
    inlines = [OwnershipInline]


@admin.register(Creator)
class CreatorAdmin(admin.ModelAdmin):
    list_display = ["display_name", "user_id", "is_active"]
    search_fields = ["display_name", "user_id"]


@admin.register(DailyMetric)
class DailyMetricAdmin(admin.ModelAdmin):
    list_display = ["ip_asset", "date", "views", "revenue_cents"]
    list_filter = ["date"]
