"""
Django implementation of UsageMetricsRepository port.
"""
import uuid
from datetime import datetime

from asgiref.sync import sync_to_async
from django.db.models import Count, Sum

from assets.domain.usage import UsageSummary
from assets.infrastructure.models import DailyMetric
from assets.ports.usage_metrics_repository import UsageMetricsRepository


class DjangoUsageMetricsRepository(UsageMetricsRepository):
    """Aggregates DailyMetric rows of an asset."""

    @sync_to_async
    def summarize(self, asset_id: uuid.UUID, since: datetime) -> UsageSummary:
        totals = DailyMetric.objects.filter(ip_asset_id=asset_id, date__gte=since.date()).aggregate(
            views=Sum("views"), revenue=Sum("revenue_cents"), days=Count("id")
        )
        return UsageSummary(
            total_views=totals["views"] or 0,
            total_revenue_cents=totals["revenue"] or 0,
            days_with_data=totals["days"] or 0,
        )
