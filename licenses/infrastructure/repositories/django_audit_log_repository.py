"""
Django implementation of AuditLogRepository port.
"""
from asgiref.sync import sync_to_async

from licenses.infrastructure.models import AuditLog
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository


class DjangoAuditLogRepository(AuditLogRepository):
    """Writes audit entries to the audit_logs table."""

    @sync_to_async
    def record(self, entry: AuditEntry) -> None:
        AuditLog.objects.create(
            brand_id=entry.brand_id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            action=entry.action,
            changes=entry.changes,
            actor=entry.actor,
            created_at=entry.created_at,
        )
