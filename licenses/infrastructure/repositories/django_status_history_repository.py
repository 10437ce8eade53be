"""
Django implementation of StatusHistoryRepository port.
"""
import uuid
from typing import List

from asgiref.sync import sync_to_async

from core.domain.value_objects import LicenseStatus
from licenses.domain.status_history import StatusHistoryEntry
from licenses.infrastructure.models import LicenseStatusHistory
from licenses.ports.status_history_repository import StatusHistoryRepository


class DjangoStatusHistoryRepository(StatusHistoryRepository):
    """Django ORM implementation of StatusHistoryRepository."""

    def _to_domain(self, model: LicenseStatusHistory) -> StatusHistoryEntry:
        return StatusHistoryEntry(
            id=model.id,
            license_id=model.license_id,
            from_status=LicenseStatus(model.from_status),
            to_status=LicenseStatus(model.to_status),
            transitioned_by=model.transitioned_by,
            transitioned_at=model.transitioned_at,
            reason=model.reason,
            automated=model.automated,
        )

    @sync_to_async
    def append(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        """
        Append a history entry.

        Args:
            entry: Entry to store

        Returns:
            Stored entry
        """
        model = LicenseStatusHistory.objects.create(
            id=entry.id,
            license_id=entry.license_id,
            from_status=entry.from_status.value,
            to_status=entry.to_status.value,
            transitioned_by=entry.transitioned_by,
            transitioned_at=entry.transitioned_at,
            reason=entry.reason,
            automated=entry.automated,
        )
        return self._to_domain(model)

    @sync_to_async
    def find_by_license(self, license_id: uuid.UUID) -> List[StatusHistoryEntry]:
        models = LicenseStatusHistory.objects.filter(license_id=license_id).order_by(
            "-transitioned_at"
        )
        return [self._to_domain(model) for model in models]
