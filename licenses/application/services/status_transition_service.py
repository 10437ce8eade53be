"""
Status transition service.

Applies a validated status change: saves the license, appends the
history entry and writes the audit record. Callers run it inside their
transaction and publish the returned event after commit.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import LicenseStatus
from core.metrics import license_transitions_total
from licenses.domain.events import LicenseStatusChanged
from licenses.domain.license import License
from licenses.domain.state_machine import LicenseStateMachine
from licenses.domain.status_history import StatusHistoryEntry
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of one applied transition."""

    license: License
    entry: StatusHistoryEntry
    event: LicenseStatusChanged


class StatusTransitionService:
    """Moves licenses along the status graph."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        history_repository: StatusHistoryRepository,
        audit_repository: AuditLogRepository,
        state_machine: Optional[LicenseStateMachine] = None,
    ):
        self.license_repository = license_repository
        self.history_repository = history_repository
        self.audit_repository = audit_repository
        self.state_machine = state_machine or LicenseStateMachine()

    async def transition(
        self,
        license: License,
        target: LicenseStatus,
        actor_id: str,
        reason: Optional[str] = None,
        automated: bool = False,
    ) -> TransitionOutcome:
        """
        Validate and apply a transition.

        Args:
            license: License in its current (locked) state
            target: Requested status
            actor_id: User id, or "system" for sweeps
            reason: Free-text reason stored in the history
            automated: Whether a sweep drives the transition

        Returns:
            TransitionOutcome with the saved license and the event to publish

        Raises:
            StateTransitionError: Illegal edge or unmet requirement
        """
        children = None
        if target == LicenseStatus.RENEWED:
            children = await self.license_repository.find_children(license.id)
        self.state_machine.validate(license, target, children)

        updated = license.with_status(target)
        saved = await self.license_repository.save(updated)
        entry = await self.history_repository.append(
            StatusHistoryEntry.record(
                license_id=license.id,
                from_status=license.status,
                to_status=target,
                transitioned_by=actor_id,
                reason=reason,
                automated=automated,
                at=updated.updated_at,
            )
        )
        await self.audit_repository.record(
            AuditEntry(
                entity_type="license",
                entity_id=license.id,
                action="status_changed",
                actor=actor_id,
                brand_id=license.brand_id,
                changes={
                    "from": license.status.value,
                    "to": target.value,
                    "reason": reason,
                    "automated": automated,
                },
            )
        )
        license_transitions_total.labels(
            from_status=license.status.value,
            to_status=target.value,
            automated=str(automated).lower(),
        ).inc()
        logger.info(
            "License %s: %s -> %s",
            license.id,
            license.status.value,
            target.value,
            extra={"actor": actor_id, "automated": automated, "reason": reason},
        )
        event = LicenseStatusChanged(
            license_id=license.id,
            brand_id=license.brand_id,
            ip_asset_id=license.ip_asset_id,
            from_status=license.status,
            to_status=target,
            transitioned_by=actor_id,
            reason=reason,
            automated=automated,
        )
        return TransitionOutcome(license=saved, entry=entry, event=event)
