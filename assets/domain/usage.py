"""
Usage metrics summary consumed by renewal pricing.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class UsageSummary:
    """Aggregated daily metrics for an asset over a lookback period."""

    total_views: int = 0
    total_revenue_cents: int = 0
    days_with_data: int = 0

    @property
    def has_data(self) -> bool:
        return self.days_with_data > 0
