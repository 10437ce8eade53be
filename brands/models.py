"""Expose the infrastructure models so Django registers this app's models module."""

from brands.infrastructure.models import ApiKey, Brand  # noqa: F401
