"""
License validation pipeline.

Six independent checks gate license creation:

1. date overlap
2. exclusivity
3. scope conflict
4. budget availability
5. ownership verification
6. approval requirements

Soft problems are returned as warnings; the pipeline never raises for
them. The data every check needs is loaded once through the injected
repositories, then each check runs as a pure function over it.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from assets.domain.asset import FULL_SHARE_BPS, IpAsset, Ownership
from assets.ports.asset_repository import AssetRepository
from brands.domain.brand import Brand
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.value_objects import LicenseType, OwnershipType, Role
from licenses.domain.conflicts import (
    COMMITTED_STATUSES,
    DETECTION_STATUSES,
    Conflict,
    ConflictDetector,
    ConflictQuery,
    ConflictReason,
    dedupe_conflicts,
)
from licenses.domain.license import License
from licenses.domain.metadata import ApprovalRequirementRecord
from licenses.domain.scope import LicenseScope
from licenses.ports.license_repository import LicenseRepository

UNVERIFIED_BRAND_LIMIT_CENTS = 1_000_000
HIGH_VALUE_GRANT_CENTS = 10_000_000
ADMIN_APPROVAL_FEE_CENTS = 1_000_000
LEGAL_DOCS_FEE_CENTS = 500_000
MAX_UNREVIEWED_DURATION_DAYS = 365

CHECK_DATE_OVERLAP = "date_overlap"
CHECK_EXCLUSIVITY = "exclusivity"
CHECK_SCOPE = "scope_conflict"
CHECK_BUDGET = "budget"
CHECK_OWNERSHIP = "ownership"
CHECK_APPROVAL = "approval_requirements"


def usd(cents: int) -> str:
    """Format cents as a dollar amount."""
    return f"${cents / 100:,.2f}"


@dataclass(frozen=True)
class LicenseInput:
    """Terms of a proposed license."""

    ip_asset_id: uuid.UUID
    brand_id: uuid.UUID
    license_type: LicenseType
    start_date: datetime
    end_date: datetime
    fee_cents: int
    rev_share_bps: int
    scope: LicenseScope
    exclude_license_id: Optional[uuid.UUID] = None

    @property
    def has_valid_dates(self) -> bool:
        return self.end_date > self.start_date

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    def conflict_query(self) -> ConflictQuery:
        return ConflictQuery(
            ip_asset_id=self.ip_asset_id,
            start_date=self.start_date,
            end_date=self.end_date,
            license_type=self.license_type,
            scope=self.scope,
            brand_id=self.brand_id,
            rev_share_bps=self.rev_share_bps,
            exclude_license_id=self.exclude_license_id,
        )

    @classmethod
    def from_license(cls, license: License) -> "LicenseInput":
        return cls(
            ip_asset_id=license.ip_asset_id,
            brand_id=license.brand_id,
            license_type=license.license_type,
            start_date=license.start_date,
            end_date=license.end_date,
            fee_cents=license.fee_cents,
            rev_share_bps=license.rev_share_bps,
            scope=license.scope,
            exclude_license_id=license.id,
        )


@dataclass(frozen=True)
class Approver:
    """A user whose approval a license needs."""

    user_id: str
    role: Role
    ownership_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class ApprovalRequirements:
    """Who must approve a license before it can be signed."""

    requires_admin: bool
    requires_creator: bool
    approvers: Tuple[Approver, ...] = ()
    reasons: Tuple[str, ...] = ()

    def to_record(self) -> ApprovalRequirementRecord:
        return ApprovalRequirementRecord(
            requires_admin=self.requires_admin,
            requires_creator=self.requires_creator,
            reasons=self.reasons,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requires_admin": self.requires_admin,
            "requires_creator": self.requires_creator,
            "approvers": [
                {"user_id": a.user_id, "role": a.role.value} for a in self.approvers
            ],
            "reasons": list(self.reasons),
        }


@dataclass
class CheckResult:
    """Outcome of one validation check."""

    name: str
    passed: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    conflicts: List[Conflict] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.passed = False
        self.errors.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "details": self.details,
        }


@dataclass
class ValidationResult:
    """Aggregate of every check that ran."""

    checks: List[CheckResult] = field(default_factory=list)
    approval: Optional[ApprovalRequirements] = None

    @property
    def valid(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def all_errors(self) -> List[str]:
        return [e for c in self.checks for e in c.errors]

    @property
    def all_warnings(self) -> List[str]:
        return [w for c in self.checks for w in c.warnings]

    @property
    def conflicts(self) -> List[Conflict]:
        merged = [
            conflict
            for c in self.checks
            if c.name in (CHECK_DATE_OVERLAP, CHECK_EXCLUSIVITY, CHECK_SCOPE)
            for conflict in c.conflicts
        ]
        return dedupe_conflicts(merged)

    def check(self, name: str) -> Optional[CheckResult]:
        for result in self.checks:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": self.all_errors,
            "warnings": self.all_warnings,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "checks": [c.to_dict() for c in self.checks],
            "approval": self.approval.to_dict() if self.approval else None,
        }


@dataclass
class ValidationContext:
    """Everything the checks read, loaded once per validation."""

    input: LicenseInput
    now: datetime
    existing: List[License] = field(default_factory=list)
    brand: Optional[Brand] = None
    committed_fees_cents: int = 0
    asset: Optional[IpAsset] = None
    ownerships: List[Ownership] = field(default_factory=list)

    @property
    def active_ownerships(self) -> List[Ownership]:
        """Ownership records in force at some point of the license period."""
        if not self.input.has_valid_dates:
            return [o for o in self.ownerships if o.is_current(self.now)]
        return [o for o in self.ownerships if o.covers(self.input.start_date, self.input.end_date)]


def _split_by_draft(conflicts: List[Conflict], result: CheckResult) -> None:
    """Conflicts with committed grants fail the check; drafts only warn."""
    for conflict in conflicts:
        if conflict.is_against_draft:
            result.warn(f"Pending draft license {conflict.license_id}: {conflict.details}")
        else:
            result.fail(conflict.details)
            result.conflicts.append(conflict)


def check_date_overlap(ctx: ValidationContext, detector: ConflictDetector) -> CheckResult:
    """End after start, past-dated starts, and intersecting committed grants."""
    result = CheckResult(CHECK_DATE_OVERLAP)
    data = ctx.input
    if not data.has_valid_dates:
        result.fail("End date must be after start date")
        return result
    if data.start_date < ctx.now:
        result.warn("Start date is in the past")

    candidates = [
        lic
        for lic in detector.candidates(data.conflict_query(), ctx.existing)
        if lic.status in COMMITTED_STATUSES
    ]
    for existing in candidates:
        period = f"{existing.start_date.date()} to {existing.end_date.date()}"
        if (
            data.license_type == LicenseType.NON_EXCLUSIVE
            and existing.license_type == LicenseType.NON_EXCLUSIVE
        ):
            result.warn(f"Overlaps non-exclusive license {existing.id} ({period})")
            continue
        details = (
            f"Date range overlaps {existing.license_type.value} license {existing.id} ({period})"
        )
        result.fail(details)
        result.conflicts.append(
            Conflict(
                license_id=existing.id,
                reason=ConflictReason.DATE_OVERLAP,
                details=details,
                conflicting_license=existing.summary(),
                overlap_start=max(data.start_date, existing.start_date),
                overlap_end=min(data.end_date, existing.end_date),
            )
        )
    result.details["overlapping_licenses"] = len(candidates)
    return result


def check_exclusivity(ctx: ValidationContext, detector: ConflictDetector) -> CheckResult:
    """Exclusive, territory, category and competitor collisions."""
    result = CheckResult(CHECK_EXCLUSIVITY)
    if not ctx.input.has_valid_dates:
        return result
    query = ctx.input.conflict_query()
    conflicts = detector.exclusivity_conflicts(query, detector.candidates(query, ctx.existing))
    _split_by_draft(conflicts, result)
    result.details["conflict_count"] = len(result.conflicts)
    return result


def check_scope(ctx: ValidationContext, detector: ConflictDetector) -> CheckResult:
    """Media/placement selection, usage overlaps, cutdowns and attribution."""
    result = CheckResult(CHECK_SCOPE)
    scope = ctx.input.scope
    if not scope.media.selected():
        result.fail("At least one media type must be selected")
    if not scope.placement.selected():
        result.fail("At least one placement must be selected")

    if scope.cutdowns is not None:
        max_duration = scope.cutdowns.max_duration_seconds
        if max_duration is not None and max_duration <= 0:
            result.fail("Maximum duration must be greater than 0 seconds")
        invalid = scope.cutdowns.invalid_aspect_ratios()
        if invalid:
            result.fail(f"Invalid aspect ratios: {', '.join(invalid)}")

    if not ctx.input.has_valid_dates:
        return result
    query = ctx.input.conflict_query()
    candidates = detector.candidates(query, ctx.existing)
    conflicts, warnings = detector.scope_conflicts(query, candidates)
    _split_by_draft(conflicts, result)
    for warning in warnings:
        result.warn(warning)
    exposure = detector.rev_share_exposure_warning(query, candidates)
    if exposure:
        result.warn(exposure)

    mine = scope.attribution
    if mine is not None and mine.required and mine.format:
        for existing in candidates:
            theirs = existing.scope.attribution
            if theirs is not None and theirs.required and theirs.format and theirs.format != mine.format:
                result.warn(
                    f"Attribution format differs from license {existing.id} "
                    f"('{theirs.format}' vs '{mine.format}')"
                )
    return result


def check_budget(ctx: ValidationContext) -> CheckResult:
    """Brand spend limits."""
    result = CheckResult(CHECK_BUDGET)
    fee = ctx.input.fee_cents
    if fee == 0:
        result.warn("License fee is $0 - budget validation skipped")
        return result
    brand = ctx.brand
    if brand is None or brand.is_deleted:
        result.fail("Brand not found")
        return result

    committed = ctx.committed_fees_cents
    result.details.update(
        {
            "committed_cents": committed,
            "requested_cents": fee,
            "brand_verified": brand.is_verified,
        }
    )
    if not brand.is_verified:
        result.details["limit_cents"] = UNVERIFIED_BRAND_LIMIT_CENTS
        if committed + fee > UNVERIFIED_BRAND_LIMIT_CENTS:
            result.fail(
                f"Budget limit exceeded: unverified brands are limited to "
                f"{usd(UNVERIFIED_BRAND_LIMIT_CENTS)} in committed licenses "
                f"(committed {usd(committed)}, requested {usd(fee)})"
            )
    elif fee > HIGH_VALUE_GRANT_CENTS:
        result.warn(
            f"License fee {usd(fee)} exceeds {usd(HIGH_VALUE_GRANT_CENTS)}; "
            "confirm the brand's budget approval"
        )
    return result


def check_ownership(ctx: ValidationContext) -> CheckResult:
    """Asset licensability and ownership integrity."""
    result = CheckResult(CHECK_OWNERSHIP)
    asset = ctx.asset
    if asset is None:
        result.fail("IP asset not found")
        return result
    if asset.is_deleted:
        result.fail("Cannot license a deleted IP asset")
        return result
    if not asset.status.is_licensable:
        result.fail(
            f"IP asset status {asset.status.value} is not licensable "
            "(must be PUBLISHED or APPROVED)"
        )

    ownerships = ctx.active_ownerships
    if not ownerships:
        result.fail("IP asset has no ownership records")
        return result

    total = sum(o.share_bps for o in ownerships)
    result.details["total_share_bps"] = total
    result.details["owners"] = [
        {"creator_id": str(o.creator.id), "share_bps": o.share_bps, "type": o.ownership_type.value}
        for o in ownerships
    ]
    if total != FULL_SHARE_BPS:
        result.fail(f"Ownership shares must total 100% (currently {total / 100:.2f}%)")
    if not any(o.ownership_type == OwnershipType.PRIMARY for o in ownerships):
        result.fail("IP asset must have at least one PRIMARY owner")

    for ownership in ownerships:
        name = ownership.creator.display_name
        if ownership.creator.is_deleted:
            result.fail(f"Owner {name} account has been deleted")
        elif not ownership.creator.is_active:
            result.warn(f"Owner {name} account is inactive")
        if ownership.has_unresolved_dispute:
            result.fail(f"Ownership by {name} is disputed and unresolved")
        if ctx.input.fee_cents >= LEGAL_DOCS_FEE_CENTS and not ownership.has_legal_documentation:
            result.warn(f"Ownership by {name} lacks legal documentation for a high-value license")

    if asset.parent_asset_id is not None:
        result.warn("Asset is a derivative work; confirm rights in the parent asset are cleared")
    return result


def compute_approval_requirements(ctx: ValidationContext) -> Tuple[ApprovalRequirements, List[str]]:
    """Approvers needed for the license, plus review warnings."""
    data = ctx.input
    reasons: List[str] = []
    warnings: List[str] = []
    requires_admin = False

    if data.fee_cents >= ADMIN_APPROVAL_FEE_CENTS:
        requires_admin = True
        reasons.append(f"License fee of {usd(data.fee_cents)} requires admin approval")
        warnings.append(f"High-value license ({usd(data.fee_cents)}) will be reviewed by an administrator")
    if data.license_type.is_exclusive:
        requires_admin = True
        reasons.append("Exclusive licenses require creator and admin approval")
        if data.scope.territories.is_global:
            warnings.append("Global exclusive license requires additional scrutiny")
    brand = ctx.brand
    if brand is not None and not brand.is_fully_verified:
        requires_admin = True
        reasons.append("Brand is not fully verified")
    if data.has_valid_dates and data.duration_days > MAX_UNREVIEWED_DURATION_DAYS:
        warnings.append("License duration exceeds one year")
    if data.fee_cents > 0 and data.rev_share_bps > 0:
        warnings.append("Hybrid pricing (flat fee plus revenue share) requires additional review")

    approvers = [
        Approver(user_id=o.creator.user_id, role=Role.CREATOR, ownership_id=o.id)
        for o in ctx.active_ownerships
    ]
    reasons.append("Creator approval is required from every owner")
    requirements = ApprovalRequirements(
        requires_admin=requires_admin,
        requires_creator=True,
        approvers=tuple(approvers),
        reasons=tuple(reasons),
    )
    return requirements, warnings


def check_approval(ctx: ValidationContext) -> Tuple[CheckResult, ApprovalRequirements]:
    """Never fails; reports who must approve."""
    result = CheckResult(CHECK_APPROVAL)
    requirements, warnings = compute_approval_requirements(ctx)
    for warning in warnings:
        result.warn(warning)
    result.details = requirements.to_dict()
    return result, requirements


class ValidationPipeline:
    """
    Runs the six license checks.

    In fail-fast mode the pipeline stops after the first failing check;
    in collect-all mode every check runs and results are aggregated.
    """

    def __init__(
        self,
        license_repository: LicenseRepository,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
        detector: Optional[ConflictDetector] = None,
    ):
        self.license_repository = license_repository
        self.asset_repository = asset_repository
        self.brand_repository = brand_repository
        self.detector = detector or ConflictDetector()

    async def load_context(self, data: LicenseInput, now: Optional[datetime] = None) -> ValidationContext:
        """Read every record the checks need."""
        ctx = ValidationContext(input=data, now=now or utc_now())
        if data.has_valid_dates:
            ctx.existing = await self.license_repository.find_overlapping(
                data.ip_asset_id,
                data.start_date,
                data.end_date,
                DETECTION_STATUSES,
                exclude_license_id=data.exclude_license_id,
            )
        ctx.brand = await self.brand_repository.find_by_id(data.brand_id)
        if ctx.brand is not None:
            ctx.committed_fees_cents = await self.license_repository.sum_fees(
                data.brand_id, COMMITTED_STATUSES
            )
        ctx.asset = await self.asset_repository.find_by_id(data.ip_asset_id)
        if ctx.asset is not None:
            ctx.ownerships = await self.asset_repository.find_ownerships(data.ip_asset_id)
        return ctx

    async def validate(
        self,
        data: LicenseInput,
        collect_all: bool = True,
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Validate a proposed license.

        Args:
            data: Proposed terms
            collect_all: Run every check instead of stopping at the first failure
            now: Reference time (defaults to the current time)

        Returns:
            ValidationResult
        """
        ctx = await self.load_context(data, now)
        return self.run(ctx, collect_all)

    def run(self, ctx: ValidationContext, collect_all: bool = True) -> ValidationResult:
        result = ValidationResult()
        steps: List[Callable[[], CheckResult]] = [
            lambda: check_date_overlap(ctx, self.detector),
            lambda: check_exclusivity(ctx, self.detector),
            lambda: check_scope(ctx, self.detector),
            lambda: check_budget(ctx),
            lambda: check_ownership(ctx),
        ]
        for step in steps:
            check = step()
            result.checks.append(check)
            if not check.passed and not collect_all:
                return result
        approval_check, requirements = check_approval(ctx)
        result.checks.append(approval_check)
        result.approval = requirements
        return result
