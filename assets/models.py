"""Expose the infrastructure models so Django registers this app's models module."""

from assets.infrastructure.models import Creator, DailyMetric, IpAsset, IpOwnership  # noqa: F401
