"""
License status transition graph.

Pure rules: which edges are legal and which per-target requirements
must hold. Applying a transition (history, events) is done by the
status transition service in the application layer.
"""
from typing import Dict, FrozenSet, Iterable, Optional

from core.domain.exceptions import StateTransitionError, TransitionRequirementError
from core.domain.value_objects import LicenseStatus
from licenses.domain.license import License

S = LicenseStatus

ALLOWED_TRANSITIONS: Dict[LicenseStatus, FrozenSet[LicenseStatus]] = {
    S.DRAFT: frozenset({S.PENDING_APPROVAL, S.CANCELED}),
    S.PENDING_APPROVAL: frozenset({S.PENDING_SIGNATURE, S.DRAFT, S.REJECTED, S.CANCELED}),
    S.PENDING_SIGNATURE: frozenset({S.ACTIVE, S.PENDING_APPROVAL, S.CANCELED}),
    S.ACTIVE: frozenset({S.EXPIRING_SOON, S.TERMINATED, S.DISPUTED, S.SUSPENDED}),
    S.EXPIRING_SOON: frozenset({S.EXPIRED, S.RENEWED, S.TERMINATED, S.ACTIVE, S.SUSPENDED}),
    S.EXPIRED: frozenset({S.RENEWED}),
    S.DISPUTED: frozenset({S.ACTIVE, S.TERMINATED, S.SUSPENDED}),
    S.SUSPENDED: frozenset({S.ACTIVE, S.TERMINATED}),
    S.RENEWED: frozenset(),
    S.TERMINATED: frozenset(),
    S.CANCELED: frozenset(),
    S.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, nxt in ALLOWED_TRANSITIONS.items() if not nxt)

# Sweep reasons recorded in the status history.
REASON_EXPIRING_SOON = "License approaching expiry date (30 days)"
REASON_END_REACHED = "License end date reached"
REASON_PAST_END = "License past end date"
REASON_DRAFT_ABANDONED = "Draft abandoned for more than 90 days"


def allowed_targets(status: LicenseStatus) -> FrozenSet[LicenseStatus]:
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def can_transition(current: LicenseStatus, target: LicenseStatus) -> bool:
    return target in allowed_targets(current)


class LicenseStateMachine:
    """Validates status transitions against the legal graph."""

    def validate(
        self,
        license: License,
        target: LicenseStatus,
        children: Optional[Iterable[License]] = None,
    ) -> None:
        """
        Check that ``license`` may move to ``target``.

        Args:
            license: License in its current state
            target: Requested status
            children: Licenses whose parent is ``license`` (needed for RENEWED)

        Raises:
            StateTransitionError: Same-state request or illegal edge
            TransitionRequirementError: Legal edge with an unmet requirement
        """
        current = license.status
        if current == target:
            raise StateTransitionError(f"License is already {current.value}")
        if license.is_deleted:
            raise StateTransitionError("Cannot transition a deleted license")
        if not can_transition(current, target):
            allowed = ", ".join(sorted(s.value for s in allowed_targets(current))) or "none"
            raise StateTransitionError(
                f"Invalid status transition from {current.value} to {target.value}. "
                f"Allowed: {allowed}"
            )
        self.check_requirements(license, target, children)

    def check_requirements(
        self,
        license: License,
        target: LicenseStatus,
        children: Optional[Iterable[License]] = None,
    ) -> None:
        """Per-target-state preconditions."""
        if target == S.RENEWED and not list(children or []):
            raise TransitionRequirementError("Cannot mark as renewed without a renewal license")
        if target == S.PENDING_APPROVAL and license.status == S.DRAFT:
            if not license.scope.media.selected() or not license.scope.placement.selected():
                raise TransitionRequirementError(
                    "A license needs at least one media type and placement before submission"
                )
        if target == S.ACTIVE and license.status == S.PENDING_SIGNATURE:
            if not license.metadata.signature_proof:
                raise TransitionRequirementError(
                    "Cannot activate a license before every party has signed"
                )
