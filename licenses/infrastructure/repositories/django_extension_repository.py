"""
Django implementation of ExtensionRepository port.
"""
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from asgiref.sync import sync_to_async

from licenses.domain.extension import Extension, ExtensionStatus
from licenses.infrastructure.models import LicenseExtension
from licenses.ports.extension_repository import ExtensionRepository

FIELDS = (
    "license_id",
    "requested_by",
    "original_end_date",
    "new_end_date",
    "extension_days",
    "additional_fee_cents",
    "justification",
    "approval_required",
    "requested_at",
    "respond_by",
    "approved_by",
    "approved_at",
    "rejected_by",
    "rejected_at",
    "rejection_reason",
)


class DjangoExtensionRepository(ExtensionRepository):
    """Django ORM implementation of ExtensionRepository."""

    def _to_domain(self, model: LicenseExtension) -> Extension:
        return Extension(
            id=model.id,
            status=ExtensionStatus(model.status),
            **{name: getattr(model, name) for name in FIELDS},
        )

    @sync_to_async
    def save(self, extension: Extension) -> Extension:
        """
        Save an extension request.

        Args:
            extension: Extension entity to save

        Returns:
            Saved extension
        """
        defaults = {name: getattr(extension, name) for name in FIELDS}
        defaults["status"] = extension.status.value
        model, _ = LicenseExtension.objects.update_or_create(id=extension.id, defaults=defaults)
        return self._to_domain(model)

    @sync_to_async
    def find_by_id(self, extension_id: uuid.UUID, for_update: bool = False) -> Optional[Extension]:
        queryset = LicenseExtension.objects.select_for_update() if for_update else LicenseExtension.objects
        try:
            return self._to_domain(queryset.get(id=extension_id))
        except LicenseExtension.DoesNotExist:
            return None

    @sync_to_async
    def find_by_licenses(
        self, license_ids: Iterable[uuid.UUID], pending_only: bool = False
    ) -> List[Extension]:
        queryset = LicenseExtension.objects.filter(license_id__in=list(license_ids))
        if pending_only:
            queryset = queryset.filter(status=ExtensionStatus.PENDING.value)
        return [self._to_domain(model) for model in queryset.order_by("-requested_at")]

    @sync_to_async
    def find_all(self) -> List[Extension]:
        return [self._to_domain(model) for model in LicenseExtension.objects.order_by("-requested_at")]

    @sync_to_async
    def find_overdue(self, now: datetime) -> List[Extension]:
        models = LicenseExtension.objects.filter(
            status=ExtensionStatus.PENDING.value, respond_by__lt=now
        )
        return [self._to_domain(model) for model in models]
