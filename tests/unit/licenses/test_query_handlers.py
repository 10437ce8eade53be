"""
Unit tests for the read-side handlers.
"""

import uuid
from datetime import timedelta

import pytest

from core.domain.clock import utc_now
from core.domain.exceptions import (
    BrandNotFoundError,
    LicenseNotFoundError,
    LicensePermissionError,
    ValidationError,
)
from core.domain.value_objects import Actor, LicenseStatus, Role
from licenses.application.handlers.query_handlers import (
    GetAmendmentHistoryHandler,
    GetAmendmentsHandler,
    GetExtensionAnalyticsHandler,
    GetExtensionsHandler,
    GetLicenseHandler,
    GetPendingAmendmentsHandler,
    GetPendingExtensionsHandler,
    GetStatusDistributionHandler,
    GetStatusHistoryHandler,
    ListLicensesHandler,
)
from licenses.application.queries.license_queries import (
    GetLicenseQuery,
    GetStatusDistributionQuery,
    GetStatusHistoryQuery,
    ListLicensesQuery,
)
from licenses.application.queries.workflow_queries import (
    GetAmendmentsQuery,
    GetExtensionAnalyticsQuery,
    GetExtensionsQuery,
    GetPendingAmendmentsQuery,
    GetPendingExtensionsQuery,
)
from licenses.domain.amendment import Amendment, AmendmentType, FieldChange
from licenses.domain.extension import Extension
from licenses.domain.status_history import StatusHistoryEntry
from tests.fakes import backdate


def _amendment(license, number=1, changes=None):
    return Amendment.propose(
        license_id=license.id,
        amendment_number=number,
        proposed_by="brand-owner-1",
        proposed_by_role=Role.BRAND,
        amendment_type=AmendmentType.FINANCIAL,
        justification="Budget review",
        changes=changes or [FieldChange("fee_cents", 100000, 90000)],
        approvers=[("creator-1", Role.CREATOR)],
        approval_deadline=utc_now() + timedelta(days=14),
    )


def _extension(license, days=60, fee=33333, approval_required=True):
    return Extension.request(
        license_id=license.id,
        requested_by="brand-owner-1",
        original_end_date=license.end_date,
        extension_days=days,
        additional_fee_cents=fee,
        justification="Campaign runs longer",
        approval_required=approval_required,
        respond_within_days=3,
    )


@pytest.fixture
def query_handler(license_repository, brand_repository, asset_repository):
    def build(handler_class):
        return handler_class(license_repository, brand_repository, asset_repository)

    return build


@pytest.mark.asyncio
class TestGetLicenseHandler:
    """Tests for GetLicenseHandler."""

    async def test_parties_can_read(self, query_handler, make_license, brand_actor, creator_actor, admin_actor):
        """Test the brand owner, the asset owner and admins see a license."""
        license = make_license()
        handler = query_handler(GetLicenseHandler)

        for actor in (brand_actor, creator_actor, admin_actor):
            result = await handler.handle(GetLicenseQuery(license.id, actor))
            assert result.id == license.id

    async def test_outsider_denied(self, query_handler, make_license):
        """Test unrelated users are refused."""
        license = make_license()
        with pytest.raises(LicensePermissionError):
            await query_handler(GetLicenseHandler).handle(
                GetLicenseQuery(license.id, Actor(user_id="creator-9", role=Role.CREATOR))
            )

    async def test_deleted_is_not_found(self, query_handler, make_license, license_repository, brand_actor, now):
        """Test soft-deleted licenses are invisible."""
        license = make_license()
        license_repository.items[license.id] = backdate(license, deleted_at=now)
        with pytest.raises(LicenseNotFoundError):
            await query_handler(GetLicenseHandler).handle(GetLicenseQuery(license.id, brand_actor))


@pytest.mark.asyncio
class TestListLicensesHandler:
    """Tests for ListLicensesHandler."""

    async def test_brand_requires_brand_id(self, query_handler, brand_actor):
        """Test brand users must name their brand."""
        with pytest.raises(ValidationError):
            await query_handler(ListLicensesHandler).handle(ListLicensesQuery(brand_actor))

    async def test_brand_lists_own(self, query_handler, make_license, brand_actor, sample_brand):
        """Test a brand owner lists their brand's licenses filtered by status."""
        active = make_license()
        make_license(status=LicenseStatus.DRAFT)

        result = await query_handler(ListLicensesHandler).handle(
            ListLicensesQuery(brand_actor, brand_id=sample_brand.id, status=LicenseStatus.ACTIVE)
        )
        assert [dto.id for dto in result] == [active.id]

    async def test_brand_other_brand(self, query_handler, sample_brand):
        """Test a brand user cannot list another owner's brand."""
        stranger = Actor(user_id="brand-owner-2", role=Role.BRAND)
        with pytest.raises(LicensePermissionError):
            await query_handler(ListLicensesHandler).handle(
                ListLicensesQuery(stranger, brand_id=sample_brand.id)
            )

    async def test_unknown_brand(self, query_handler, brand_actor):
        """Test filtering on an unknown brand is reported."""
        with pytest.raises(BrandNotFoundError):
            await query_handler(ListLicensesHandler).handle(
                ListLicensesQuery(brand_actor, brand_id=uuid.uuid4())
            )

    async def test_creator_sees_owned_assets(self, query_handler, make_license, creator_actor):
        """Test creators see licenses on the assets they own only."""
        own = make_license()
        make_license(ip_asset_id=uuid.uuid4())

        result = await query_handler(ListLicensesHandler).handle(ListLicensesQuery(creator_actor))
        assert [dto.id for dto in result] == [own.id]

    async def test_creator_foreign_asset(self, query_handler, creator_actor):
        """Test creators cannot filter on assets they do not own."""
        with pytest.raises(LicensePermissionError):
            await query_handler(ListLicensesHandler).handle(
                ListLicensesQuery(creator_actor, ip_asset_id=uuid.uuid4())
            )

    async def test_admin_sees_all(self, query_handler, make_license, admin_actor):
        """Test admins list without filters."""
        make_license()
        make_license(brand_id=uuid.uuid4())
        result = await query_handler(ListLicensesHandler).handle(ListLicensesQuery(admin_actor))
        assert len(result) == 2


@pytest.mark.asyncio
class TestStatusQueries:
    """Tests for status history and distribution handlers."""

    async def test_history(self, license_repository, history_repository, brand_repository, asset_repository, make_license, brand_actor):
        """Test history is returned newest first."""
        license = make_license()
        first = StatusHistoryEntry.record(
            license.id, LicenseStatus.DRAFT, LicenseStatus.PENDING_APPROVAL, "brand-owner-1"
        )
        second = StatusHistoryEntry.record(
            license.id, LicenseStatus.PENDING_APPROVAL, LicenseStatus.PENDING_SIGNATURE, "creator-1"
        )
        await history_repository.append(backdate(first, transitioned_at=utc_now() - timedelta(hours=2)))
        await history_repository.append(second)

        handler = GetStatusHistoryHandler(license_repository, history_repository, brand_repository, asset_repository)
        result = await handler.handle(GetStatusHistoryQuery(license.id, brand_actor))

        assert [dto.to_status for dto in result] == ["PENDING_SIGNATURE", "PENDING_APPROVAL"]

    async def test_distribution_for_brand(self, query_handler, make_license, brand_actor, sample_brand):
        """Test counts per status for a brand."""
        make_license()
        make_license()
        make_license(status=LicenseStatus.DRAFT)

        result = await query_handler(GetStatusDistributionHandler).handle(
            GetStatusDistributionQuery(brand_actor, brand_id=sample_brand.id)
        )
        assert result["ACTIVE"] == 2
        assert result["DRAFT"] == 1

    async def test_platform_distribution_admin_only(self, query_handler, brand_actor, admin_actor):
        """Test the platform-wide distribution is restricted to admins."""
        handler = query_handler(GetStatusDistributionHandler)
        with pytest.raises(LicensePermissionError):
            await handler.handle(GetStatusDistributionQuery(brand_actor))
        assert isinstance(await handler.handle(GetStatusDistributionQuery(admin_actor)), dict)


@pytest.mark.asyncio
class TestAmendmentQueries:
    """Tests for amendment read handlers."""

    @pytest.fixture
    def build(self, license_repository, amendment_repository, brand_repository, asset_repository):
        def factory(handler_class):
            return handler_class(license_repository, amendment_repository, brand_repository, asset_repository)

        return factory

    async def test_list_highest_first(self, build, make_license, amendment_repository, brand_actor):
        """Test amendments are listed highest number first."""
        license = make_license()
        await amendment_repository.save(_amendment(license, 1))
        await amendment_repository.save(_amendment(license, 2))

        result = await build(GetAmendmentsHandler).handle(GetAmendmentsQuery(license.id, brand_actor))
        assert [dto.amendment_number for dto in result] == [2, 1]

    async def test_history_applied_changes_only(self, build, make_license, amendment_repository, creator_actor):
        """Test only approved amendments appear in the field trail."""
        license = make_license()
        approved = _amendment(
            license,
            1,
            [FieldChange("fee_cents", 100000, 90000), FieldChange("payment_terms", None, "NET30")],
        )
        approved = approved.with_approval(approved.approvals[0].decide(True))
        await amendment_repository.save(approved)
        await amendment_repository.save(_amendment(license, 2))

        result = await build(GetAmendmentHistoryHandler).handle(GetAmendmentsQuery(license.id, creator_actor))

        assert [(item.amendment_number, item.field) for item in result] == [
            (1, "fee_cents"),
            (1, "payment_terms"),
        ]
        assert result[1].after == "NET30"

    async def test_pending_for_approver(self, build, make_license, amendment_repository, creator_actor, brand_actor):
        """Test pending amendments are listed for their approvers."""
        license = make_license()
        amendment = await amendment_repository.save(_amendment(license))

        handler = build(GetPendingAmendmentsHandler)
        assert [dto.id for dto in await handler.handle(GetPendingAmendmentsQuery(creator_actor))] == [amendment.id]
        assert await handler.handle(GetPendingAmendmentsQuery(brand_actor)) == []


@pytest.mark.asyncio
class TestExtensionQueries:
    """Tests for extension read handlers."""

    @pytest.fixture
    def build(self, license_repository, extension_repository, brand_repository, asset_repository):
        def factory(handler_class):
            return handler_class(license_repository, extension_repository, brand_repository, asset_repository)

        return factory

    async def test_list_for_license(self, build, make_license, extension_repository, brand_actor):
        """Test extensions of a license are listed."""
        license = make_license()
        extension = await extension_repository.save(_extension(license))

        result = await build(GetExtensionsHandler).handle(GetExtensionsQuery(license.id, brand_actor))
        assert [dto.id for dto in result] == [extension.id]

    async def test_pending_for_creator(self, build, make_license, extension_repository, creator_actor):
        """Test creators see pending requests needing approval on their assets."""
        license = make_license()
        needs_decision = await extension_repository.save(_extension(license))
        await extension_repository.save(_extension(license, days=10, approval_required=False))
        other = make_license(ip_asset_id=uuid.uuid4())
        await extension_repository.save(_extension(other))

        result = await build(GetPendingExtensionsHandler).handle(GetPendingExtensionsQuery(creator_actor))
        assert [dto.id for dto in result] == [needs_decision.id]

    async def test_pending_for_brand_is_empty(self, build, make_license, extension_repository, brand_actor, admin_actor):
        """Test brands have nothing to decide while admins see everything pending."""
        license = make_license()
        await extension_repository.save(_extension(license))
        handler = build(GetPendingExtensionsHandler)

        assert await handler.handle(GetPendingExtensionsQuery(brand_actor)) == []
        assert len(await handler.handle(GetPendingExtensionsQuery(admin_actor))) == 1

    async def test_analytics(self, build, make_license, extension_repository, brand_actor, sample_brand):
        """Test analytics count statuses and approved fees."""
        license = make_license()
        await extension_repository.save(_extension(license, days=60, fee=30000).approve("creator-1"))
        await extension_repository.save(_extension(license, days=20, fee=10000).reject("creator-1"))
        await extension_repository.save(_extension(license, days=10, fee=5000))

        result = await build(GetExtensionAnalyticsHandler).handle(
            GetExtensionAnalyticsQuery(brand_actor, brand_id=sample_brand.id)
        )

        assert (result.total, result.approved, result.rejected, result.pending) == (3, 1, 1, 1)
        assert result.average_extension_days == 30.0
        assert result.total_additional_fees_cents == 30000

    async def test_analytics_empty(self, build, admin_actor):
        """Test platform analytics with no requests."""
        result = await build(GetExtensionAnalyticsHandler).handle(GetExtensionAnalyticsQuery(admin_actor))
        assert result.total == 0
        assert result.average_extension_days == 0.0

    async def test_platform_analytics_admin_only(self, build, creator_actor):
        """Test non-admins cannot see platform-wide analytics."""
        with pytest.raises(LicensePermissionError):
            await build(GetExtensionAnalyticsHandler).handle(GetExtensionAnalyticsQuery(creator_actor))
