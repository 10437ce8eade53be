"""
Wiring of the Django repository adapters into handlers.

Shared by the REST views, Celery tasks and management commands.
"""
from assets.infrastructure.repositories.django_asset_repository import DjangoAssetRepository
from assets.infrastructure.repositories.django_usage_metrics_repository import (
    DjangoUsageMetricsRepository,
)
from brands.infrastructure.repositories.django_brand_repository import DjangoBrandRepository
from licenses.application.handlers.sweep_handlers import (
    ExpirePendingRequestsHandler,
    ProcessAutomatedTransitionsHandler,
    ProcessAutoRenewalsHandler,
    SendLifecycleNoticesHandler,
)
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.policy import get_licensing_policy
from licenses.infrastructure.repositories.django_amendment_repository import DjangoAmendmentRepository
from licenses.infrastructure.repositories.django_audit_log_repository import DjangoAuditLogRepository
from licenses.infrastructure.repositories.django_extension_repository import DjangoExtensionRepository
from licenses.infrastructure.repositories.django_idempotency_repository import (
    DjangoIdempotencyRepository,
)
from licenses.infrastructure.repositories.django_license_repository import DjangoLicenseRepository
from licenses.infrastructure.repositories.django_status_history_repository import (
    DjangoStatusHistoryRepository,
)

license_repository = DjangoLicenseRepository()
history_repository = DjangoStatusHistoryRepository()
amendment_repository = DjangoAmendmentRepository()
extension_repository = DjangoExtensionRepository()
audit_repository = DjangoAuditLogRepository()
idempotency_repository = DjangoIdempotencyRepository()
brand_repository = DjangoBrandRepository()
asset_repository = DjangoAssetRepository()
usage_repository = DjangoUsageMetricsRepository()


def preview_service() -> ConflictPreviewService:
    return ConflictPreviewService(
        license_repository, ttl_seconds=get_licensing_policy().conflict_preview_ttl_seconds
    )


def automated_transitions_handler() -> ProcessAutomatedTransitionsHandler:
    return ProcessAutomatedTransitionsHandler(
        license_repository,
        history_repository,
        audit_repository,
        policy=get_licensing_policy(),
        preview_service=preview_service(),
    )


def auto_renewals_handler() -> ProcessAutoRenewalsHandler:
    return ProcessAutoRenewalsHandler(
        license_repository,
        asset_repository,
        brand_repository,
        usage_repository,
        audit_repository,
        policy=get_licensing_policy(),
        preview_service=preview_service(),
    )


def expire_pending_handler() -> ExpirePendingRequestsHandler:
    return ExpirePendingRequestsHandler(
        license_repository, amendment_repository, extension_repository, audit_repository
    )


def lifecycle_notices_handler() -> SendLifecycleNoticesHandler:
    return SendLifecycleNoticesHandler(
        license_repository, audit_repository, policy=get_licensing_policy()
    )
