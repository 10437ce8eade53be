"""
Interval and scope conflict detection.

Pure functions over a proposed grant and the existing grants on the same
asset. Nothing here touches persistence; callers load the candidates.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.domain.value_objects import LicenseStatus, LicenseType
from licenses.domain.license import License
from licenses.domain.scope import LicenseScope

DETECTION_STATUSES = frozenset(
    {LicenseStatus.ACTIVE, LicenseStatus.PENDING_APPROVAL, LicenseStatus.DRAFT}
)
COMMITTED_STATUSES = frozenset({LicenseStatus.ACTIVE, LicenseStatus.PENDING_APPROVAL})
# Grants that hold the asset once past DRAFT; re-checked before a license commits further.
HELD_STATUSES = COMMITTED_STATUSES | frozenset(
    {LicenseStatus.PENDING_SIGNATURE, LicenseStatus.EXPIRING_SOON}
)

REV_SHARE_WARNING_BPS = 8000


class ConflictReason(Enum):
    """Why two grants cannot coexist."""

    EXCLUSIVE_OVERLAP = "EXCLUSIVE_OVERLAP"
    TERRITORY_OVERLAP = "TERRITORY_OVERLAP"
    COMPETITOR_BLOCKED = "COMPETITOR_BLOCKED"
    DATE_OVERLAP = "DATE_OVERLAP"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ConflictQuery:
    """The proposed grant being checked."""

    ip_asset_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    license_type: LicenseType
    scope: LicenseScope
    brand_id: Optional[uuid.UUID] = None
    rev_share_bps: int = 0
    exclude_license_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")


@dataclass(frozen=True)
class Conflict:
    """One reason a proposed grant collides with an existing one."""

    license_id: uuid.UUID
    reason: ConflictReason
    details: str
    conflicting_license: Dict[str, Any]
    overlap_start: datetime
    overlap_end: datetime
    territories: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.license_id}-{self.reason.value}"

    @property
    def is_against_draft(self) -> bool:
        return self.conflicting_license.get("status") == LicenseStatus.DRAFT.value

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "license_id": str(self.license_id),
            "reason": self.reason.value,
            "details": self.details,
            "conflicting_license": self.conflicting_license,
            "overlap_start": self.overlap_start.isoformat(),
            "overlap_end": self.overlap_end.isoformat(),
        }
        if self.territories:
            data["territories"] = list(self.territories)
        return data


@dataclass
class ConflictResult:
    """Deduplicated conflicts plus non-blocking warnings."""

    conflicts: List[Conflict] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_conflicts": self.has_conflicts,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "warnings": list(self.warnings),
        }


def dedupe_conflicts(conflicts: Iterable[Conflict]) -> List[Conflict]:
    """Keep the first conflict per (license, reason), preserving order."""
    seen = set()
    unique = []
    for conflict in conflicts:
        if conflict.key in seen:
            continue
        seen.add(conflict.key)
        unique.append(conflict)
    return unique


def _fmt(value: datetime) -> str:
    return value.date().isoformat()


class ConflictDetector:
    """
    Detects exclusivity, territory, competitor and scope collisions.

    Every check evaluates each candidate independently; ``detect`` merges
    the results and deduplicates by (license, reason).
    """

    def __init__(self, statuses: Iterable[LicenseStatus] = DETECTION_STATUSES):
        self.statuses = frozenset(statuses)

    def candidates(self, query: ConflictQuery, existing: Iterable[License]) -> List[License]:
        """Existing grants on the asset whose date range intersects the query."""
        return [
            lic
            for lic in existing
            if lic.ip_asset_id == query.ip_asset_id
            and not lic.is_deleted
            and lic.status in self.statuses
            and lic.id != query.exclude_license_id
            and lic.overlaps(query.start_date, query.end_date)
        ]

    def detect(self, query: ConflictQuery, existing: Iterable[License]) -> ConflictResult:
        """
        Run every check against the intersecting grants.

        Args:
            query: Proposed grant
            existing: Grants on the same asset (may include non-candidates)

        Returns:
            ConflictResult with deduplicated conflicts and warnings
        """
        candidates = self.candidates(query, existing)
        exclusivity = self.exclusivity_conflicts(query, candidates)
        scope_conflicts, scope_warnings = self.scope_conflicts(query, candidates)
        warnings = list(scope_warnings)
        exposure = self.rev_share_exposure_warning(query, candidates)
        if exposure:
            warnings.append(exposure)
        return ConflictResult(
            conflicts=dedupe_conflicts(exclusivity + scope_conflicts),
            warnings=warnings,
        )

    def exclusivity_conflicts(
        self, query: ConflictQuery, candidates: Sequence[License]
    ) -> List[Conflict]:
        """Exclusive, territory, category and competitor collisions."""
        found: List[Conflict] = []
        for existing in candidates:
            overlap_start = max(query.start_date, existing.start_date)
            overlap_end = min(query.end_date, existing.end_date)

            def conflict(reason, details, territories=()):
                return Conflict(
                    license_id=existing.id,
                    reason=reason,
                    details=details,
                    conflicting_license=existing.summary(),
                    overlap_start=overlap_start,
                    overlap_end=overlap_end,
                    territories=tuple(territories),
                )

            if LicenseType.EXCLUSIVE in (query.license_type, existing.license_type):
                holder = "Existing" if existing.license_type == LicenseType.EXCLUSIVE else "Proposed"
                found.append(
                    conflict(
                        ConflictReason.EXCLUSIVE_OVERLAP,
                        f"{holder} exclusive license overlaps license {existing.id} "
                        f"from {_fmt(overlap_start)} to {_fmt(overlap_end)}",
                    )
                )

            if LicenseType.EXCLUSIVE_TERRITORY in (query.license_type, existing.license_type):
                shared = query.scope.territories.overlap_with(existing.scope.territories)
                if shared:
                    found.append(
                        conflict(
                            ConflictReason.TERRITORY_OVERLAP,
                            f"Territory exclusivity conflict in: {', '.join(shared)}",
                            shared,
                        )
                    )

            mine = query.scope.exclusivity
            theirs = existing.scope.exclusivity
            if (
                mine is not None
                and theirs is not None
                and mine.category
                and theirs.category
                and mine.category.strip().lower() == theirs.category.strip().lower()
            ):
                found.append(
                    conflict(
                        ConflictReason.EXCLUSIVE_OVERLAP,
                        f"Category exclusivity conflict: {theirs.category} is already "
                        f"exclusively licensed by license {existing.id}",
                    )
                )

            if (
                theirs is not None
                and query.brand_id is not None
                and str(query.brand_id) in theirs.competitors
            ):
                found.append(
                    conflict(
                        ConflictReason.COMPETITOR_BLOCKED,
                        f"Brand is blocked as a competitor by license {existing.id}",
                    )
                )
        return dedupe_conflicts(found)

    def scope_conflicts(
        self, query: ConflictQuery, candidates: Sequence[License]
    ) -> Tuple[List[Conflict], List[str]]:
        """
        Media and placement collisions between non-exclusive grants.

        Partial overlaps are warnings; an identical usage scope is a conflict.
        """
        conflicts: List[Conflict] = []
        warnings: List[str] = []
        if query.license_type != LicenseType.NON_EXCLUSIVE:
            return conflicts, warnings
        for existing in candidates:
            if existing.license_type != LicenseType.NON_EXCLUSIVE:
                continue
            if query.scope.is_identical_usage(existing.scope):
                conflicts.append(
                    Conflict(
                        license_id=existing.id,
                        reason=ConflictReason.DATE_OVERLAP,
                        details=(
                            "Complete scope conflict: Identical usage scope already "
                            f"licensed by license {existing.id}"
                        ),
                        conflicting_license=existing.summary(),
                        overlap_start=max(query.start_date, existing.start_date),
                        overlap_end=min(query.end_date, existing.end_date),
                    )
                )
                continue
            media = query.scope.media.selected() & existing.scope.media.selected()
            placement = query.scope.placement.selected() & existing.scope.placement.selected()
            if media:
                warnings.append(
                    f"Media overlap with license {existing.id}: {', '.join(sorted(media))}"
                )
            if placement:
                warnings.append(
                    f"Placement overlap with license {existing.id}: {', '.join(sorted(placement))}"
                )
        return conflicts, warnings

    def rev_share_exposure_warning(
        self, query: ConflictQuery, candidates: Sequence[License]
    ) -> Optional[str]:
        """Advisory warning when overlapping revenue share commitments exceed 80%."""
        committed = sum(
            lic.rev_share_bps
            for lic in candidates
            if lic.status in COMMITTED_STATUSES and lic.rev_share_bps > 0
        )
        total = committed + query.rev_share_bps
        if total > REV_SHARE_WARNING_BPS:
            return (
                f"Aggregate revenue share across overlapping licenses is {total / 100:.2f}% "
                f"(above {REV_SHARE_WARNING_BPS / 100:.0f}%)"
            )
        return None


@dataclass(frozen=True)
class ConflictPreview:
    """What is already committed on an asset, for callers planning a new grant."""

    ip_asset_id: uuid.UUID
    active_licenses: int
    exclusive_licenses: int
    blocked_media_types: Tuple[str, ...]
    used_territories: Tuple[str, ...]
    suggested_start_date: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip_asset_id": str(self.ip_asset_id),
            "active_licenses": self.active_licenses,
            "exclusive_licenses": self.exclusive_licenses,
            "blocked_media_types": list(self.blocked_media_types),
            "used_territories": list(self.used_territories),
            "suggested_start_date": (
                self.suggested_start_date.isoformat() if self.suggested_start_date else None
            ),
        }


def build_conflict_preview(
    ip_asset_id: uuid.UUID, licenses: Iterable[License], now: datetime
) -> ConflictPreview:
    """Summarise the committed grants on an asset."""
    committed = [
        lic
        for lic in licenses
        if lic.ip_asset_id == ip_asset_id and not lic.is_deleted and lic.status in COMMITTED_STATUSES
    ]
    exclusive = [lic for lic in committed if lic.license_type == LicenseType.EXCLUSIVE]
    blocked = sorted({m for lic in exclusive for m in lic.scope.media.selected()})
    territories = sorted(
        {t for lic in committed if lic.scope.geographic for t in lic.scope.geographic.territories}
    )
    suggested = None
    if exclusive:
        latest_end = max(lic.end_date for lic in exclusive)
        if latest_end > now:
            suggested = latest_end
    return ConflictPreview(
        ip_asset_id=ip_asset_id,
        active_licenses=len(committed),
        exclusive_licenses=len(exclusive),
        blocked_media_types=tuple(blocked),
        used_territories=tuple(territories),
        suggested_start_date=suggested,
    )
