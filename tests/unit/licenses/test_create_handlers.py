"""
Unit tests for license creation, validation, fee quote and conflict handlers.
"""

import uuid
from datetime import timedelta

import pytest

from core.domain.exceptions import (
    AssetNotFoundError,
    ConflictError,
    LicensePermissionError,
    ValidationError,
)
from core.domain.value_objects import Actor, AssetType, LicenseStatus, LicenseType, Role
from licenses.application.commands.create_license import CreateLicenseCommand
from licenses.application.handlers.conflict_handlers import (
    CheckConflictsHandler,
    GetConflictPreviewHandler,
)
from licenses.application.handlers.create_license_handler import (
    CalculateFeeHandler,
    CreateLicenseHandler,
    ValidateLicenseHandler,
)
from licenses.application.queries.conflict_queries import (
    CalculateFeeQuery,
    CheckConflictsQuery,
    GetConflictPreviewQuery,
    ValidateLicenseQuery,
)
from licenses.application.services.conflict_preview_service import preview_cache_key
from licenses.domain.conflicts import ConflictReason
from licenses.domain.events import LicenseCreated
from licenses.domain.scope import LicenseScope
from tests.fakes import make_scope


@pytest.fixture
def create_handler(
    license_repository,
    asset_repository,
    brand_repository,
    audit_repository,
    policy,
    preview_service,
    event_bus,
    atomic,
):
    """Fixture for CreateLicenseHandler over in-memory repositories."""
    return CreateLicenseHandler(
        license_repository,
        asset_repository,
        brand_repository,
        audit_repository,
        policy=policy,
        preview_service=preview_service,
        event_bus=event_bus,
        atomic=atomic,
    )


@pytest.fixture
def create_command(brand_actor, sample_asset, sample_brand, now):
    def build(**overrides):
        fields = dict(
            actor=brand_actor,
            ip_asset_id=sample_asset.id,
            brand_id=sample_brand.id,
            license_type=LicenseType.NON_EXCLUSIVE,
            start_date=now + timedelta(days=1),
            end_date=now + timedelta(days=91),
            scope=make_scope(website=True),
            fee_cents=100000,
        )
        fields.update(overrides)
        return CreateLicenseCommand(**fields)

    return build


@pytest.mark.asyncio
class TestCreateLicenseHandler:
    """Tests for CreateLicenseHandler."""

    async def test_creates_draft(self, create_handler, create_command, license_repository, audit_repository, event_bus, asset_repository, sample_asset):
        """Test a valid request stores a DRAFT and publishes LicenseCreated."""
        result = await create_handler.handle(create_command())

        assert result.license.status == LicenseStatus.DRAFT.value
        assert result.license.fee_cents == 100000
        assert result.fee_breakdown is None
        assert result.approval["requires_admin"] is False
        assert result.license.id in license_repository.items
        assert audit_repository.actions() == ["created"]
        assert asset_repository.locked == [sample_asset.id]
        assert len(event_bus.of_type(LicenseCreated)) == 1

    async def test_snapshot_and_requirements_stored(self, create_handler, create_command, license_repository):
        """Test the conflict snapshot and approval requirements are kept in metadata."""
        result = await create_handler.handle(create_command(license_type=LicenseType.EXCLUSIVE))
        stored = license_repository.items[result.license.id]

        assert stored.metadata.approval_requirements.requires_admin is True
        assert stored.metadata.conflict_snapshot is not None

    async def test_fee_quoted_when_missing(self, create_handler, create_command):
        """Test the fee is calculated when none is given."""
        result = await create_handler.handle(create_command(fee_cents=None))

        assert result.fee_breakdown is not None
        assert result.license.fee_cents == result.fee_breakdown["total_fee_cents"]

    async def test_invalidates_preview(self, create_handler, create_command, cache, sample_asset):
        """Test the asset's cached preview is dropped."""
        await create_handler.handle(create_command())
        assert preview_cache_key(sample_asset.id) in cache.deleted

    async def test_creator_cannot_create(self, create_handler, create_command, creator_actor):
        """Test creators cannot request licenses."""
        with pytest.raises(LicensePermissionError):
            await create_handler.handle(create_command(actor=creator_actor))

    async def test_other_brand_owner_rejected(self, create_handler, create_command):
        """Test a brand user can only create for their own brand."""
        stranger = Actor(user_id="someone-else", role=Role.BRAND)
        with pytest.raises(LicensePermissionError):
            await create_handler.handle(create_command(actor=stranger))

    async def test_admin_may_create(self, create_handler, create_command, admin_actor):
        """Test admins create on behalf of any brand."""
        result = await create_handler.handle(create_command(actor=admin_actor))
        assert result.license.status == LicenseStatus.DRAFT.value

    async def test_unknown_asset(self, create_handler, create_command):
        """Test an unknown asset is rejected."""
        with pytest.raises(AssetNotFoundError):
            await create_handler.handle(create_command(ip_asset_id=uuid.uuid4()))

    async def test_exclusive_conflict(self, create_handler, create_command, make_license, license_repository):
        """Test an overlapping exclusive grant blocks creation."""
        make_license(license_type=LicenseType.EXCLUSIVE)

        with pytest.raises(ConflictError) as exc_info:
            await create_handler.handle(create_command())

        assert exc_info.value.code == "LICENSE_CONFLICT"
        assert len(license_repository.items) == 1

    async def test_validation_failure(self, create_handler, create_command):
        """Test a scope without media is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            await create_handler.handle(create_command(scope=LicenseScope()))

        assert "At least one media type must be selected" in exc_info.value.errors


@pytest.mark.asyncio
class TestValidateLicenseHandler:
    """Tests for ValidateLicenseHandler."""

    async def test_reports_without_saving(self, license_repository, asset_repository, brand_repository, sample_asset, sample_brand, now):
        """Test validation has no side effects."""
        handler = ValidateLicenseHandler(license_repository, asset_repository, brand_repository)
        result = await handler.handle(
            ValidateLicenseQuery(
                ip_asset_id=sample_asset.id,
                brand_id=sample_brand.id,
                license_type=LicenseType.NON_EXCLUSIVE,
                start_date=now + timedelta(days=1),
                end_date=now + timedelta(days=31),
                scope=make_scope(),
                fee_cents=50000,
            )
        )

        assert result.valid is True
        assert license_repository.items == {}


@pytest.mark.asyncio
class TestCalculateFeeHandler:
    """Tests for CalculateFeeHandler."""

    async def test_quote(self, asset_repository, brand_repository, policy, sample_asset, sample_brand, now):
        """Test a quote includes the breakdown and a suggested rev share."""
        handler = CalculateFeeHandler(asset_repository, brand_repository, policy=policy)
        quote = await handler.handle(
            CalculateFeeQuery(
                ip_asset_id=sample_asset.id,
                brand_id=sample_brand.id,
                license_type=LicenseType.NON_EXCLUSIVE,
                start_date=now,
                end_date=now + timedelta(days=30),
                scope=make_scope(),
            )
        )

        assert quote.breakdown["total_fee_cents"] >= policy.minimum_fee_cents
        assert quote.suggested_rev_share_bps >= 0
        assert quote.total_value["fee_cents"] == quote.breakdown["total_fee_cents"]

    async def test_explicit_asset_type_skips_lookup(self, asset_repository, brand_repository, sample_brand, now):
        """Test an explicit asset type does not require the asset to exist."""
        handler = CalculateFeeHandler(asset_repository, brand_repository)
        quote = await handler.handle(
            CalculateFeeQuery(
                ip_asset_id=uuid.uuid4(),
                brand_id=sample_brand.id,
                license_type=LicenseType.EXCLUSIVE,
                start_date=now,
                end_date=now + timedelta(days=30),
                scope=make_scope(),
                asset_type=AssetType.VIDEO,
            )
        )
        assert quote.breakdown["total_fee_cents"] > 0

    async def test_unknown_asset(self, asset_repository, brand_repository, sample_brand, now):
        """Test quoting an unknown asset without a type fails."""
        handler = CalculateFeeHandler(asset_repository, brand_repository)
        with pytest.raises(AssetNotFoundError):
            await handler.handle(
                CalculateFeeQuery(
                    ip_asset_id=uuid.uuid4(),
                    brand_id=sample_brand.id,
                    license_type=LicenseType.EXCLUSIVE,
                    start_date=now,
                    end_date=now + timedelta(days=30),
                    scope=make_scope(),
                )
            )


@pytest.mark.asyncio
class TestConflictHandlers:
    """Tests for CheckConflictsHandler and GetConflictPreviewHandler."""

    def _query(self, sample_asset, now, **overrides):
        fields = dict(
            ip_asset_id=sample_asset.id,
            start_date=now,
            end_date=now + timedelta(days=30),
            license_type=LicenseType.EXCLUSIVE,
            scope=make_scope(),
        )
        fields.update(overrides)
        return CheckConflictsQuery(**fields)

    async def test_detects_conflicts(self, license_repository, make_license, sample_asset, now):
        """Test an overlapping grant is reported."""
        existing = make_license()
        result = await CheckConflictsHandler(license_repository).handle(self._query(sample_asset, now))

        assert result.has_conflicts
        assert {c.license_id for c in result.conflicts} == {existing.id}
        assert ConflictReason.EXCLUSIVE_OVERLAP in {c.reason for c in result.conflicts}

    async def test_exclude_license(self, license_repository, make_license, sample_asset, now):
        """Test the excluded license is ignored."""
        existing = make_license()
        result = await CheckConflictsHandler(license_repository).handle(
            self._query(sample_asset, now, exclude_license_id=existing.id)
        )
        assert not result.has_conflicts

    async def test_invalid_range(self, license_repository, sample_asset, now):
        """Test inverted dates are a validation error."""
        with pytest.raises(ValidationError):
            await CheckConflictsHandler(license_repository).handle(
                self._query(sample_asset, now, end_date=now - timedelta(days=1))
            )

    async def test_preview_cached(self, license_repository, preview_service, cache, make_license, sample_asset):
        """Test the preview is cached until invalidated."""
        make_license(license_type=LicenseType.EXCLUSIVE)
        handler = GetConflictPreviewHandler(license_repository, preview_service)

        first = await handler.handle(GetConflictPreviewQuery(ip_asset_id=sample_asset.id))
        make_license(status=LicenseStatus.ACTIVE)
        second = await handler.handle(GetConflictPreviewQuery(ip_asset_id=sample_asset.id))

        assert first == second
        assert first["exclusive_licenses"] == 1
        assert first["blocked_media_types"] == ["digital"]

        await preview_service.invalidate(sample_asset.id)
        third = await handler.handle(GetConflictPreviewQuery(ip_asset_id=sample_asset.id))
        assert third["active_licenses"] == 2
        assert preview_cache_key(sample_asset.id) in cache.store
