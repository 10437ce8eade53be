"""Expose the infrastructure models so Django registers this app's models module."""

from licenses.infrastructure.models import (  # noqa: F401
    AmendmentApproval,
    AuditLog,
    IdempotencyKey,
    License,
    LicenseAmendment,
    LicenseExtension,
    LicenseStatusHistory,
)
