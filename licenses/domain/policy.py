"""
Licensing policy constants.

Windows and thresholds that drive sweeps, renewals and workflows.
Overridable per deployment through the ``LICENSING`` settings dict.
"""
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional, Tuple


@dataclass(frozen=True)
class LicensingPolicy:
    """Tunable lifecycle thresholds, all in days unless noted."""

    expiring_soon_days: int = 30
    # Staged expiry notices; a stage set to 0 is not sent.
    expiry_notice_informational_days: int = 90
    expiry_notice_reminder_days: int = 60
    expiry_notice_urgent_days: int = 30
    # Days past the end date an EXPIRING_SOON license is held before it expires.
    expiry_grace_days: int = 0
    draft_abandon_days: int = 90
    renewal_window_days: int = 90
    renewal_grace_days: int = 30
    auto_renew_window_days: int = 60
    offer_lifetime_days: int = 30
    renewal_reminder_days: int = 7
    amendment_deadline_days: int = 14
    extension_min_days: int = 1
    extension_max_days: int = 365
    extension_auto_approve_days: int = 30
    extension_response_days: int = 14
    idempotency_stale_seconds: int = 300
    idempotency_ttl_hours: int = 24
    conflict_preview_ttl_seconds: int = 60
    minimum_fee_cents: int = 10000

    def __post_init__(self):
        """Validate policy."""
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"{f.name} cannot be negative")
        if self.extension_min_days > self.extension_max_days:
            raise ValueError("extension_min_days cannot exceed extension_max_days")

    @property
    def expiry_notice_stages(self) -> Tuple[Tuple[int, str], ...]:
        """(days before end, urgency) of each enabled notice stage, furthest first."""
        stages = (
            (self.expiry_notice_informational_days, "informational"),
            (self.expiry_notice_reminder_days, "reminder"),
            (self.expiry_notice_urgent_days, "urgent"),
        )
        return tuple(sorted((s for s in stages if s[0] > 0), reverse=True))

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "LicensingPolicy":
        """
        Build a policy from a (partial) mapping of overrides.

        Unknown keys are ignored.
        """
        if not values:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in values.items() if k in known})


DEFAULT_POLICY = LicensingPolicy()
