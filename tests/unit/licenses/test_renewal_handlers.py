"""
Unit tests for renewal eligibility, offer and acceptance handlers.
"""

import uuid
from dataclasses import replace
from datetime import timedelta

import pytest

from core.domain.clock import utc_now
from core.domain.exceptions import (
    ConflictError,
    LicensePermissionError,
    OfferExpiredError,
    OfferNotPendingError,
    RenewalOfferNotFoundError,
    ValidationError,
)
from core.domain.value_objects import Actor, LicenseStatus, LicenseType, Role
from licenses.application.commands.renewals import (
    AcceptRenewalOfferCommand,
    GenerateRenewalOfferCommand,
)
from licenses.application.handlers.renewal_handlers import (
    AcceptRenewalOfferHandler,
    CheckRenewalEligibilityHandler,
    GenerateRenewalOfferHandler,
)
from licenses.application.queries.workflow_queries import CheckRenewalEligibilityQuery
from licenses.domain.events import LicenseCreated, RenewalOfferAccepted, RenewalOfferGenerated
from licenses.domain.metadata import OfferStatus
from licenses.domain.renewal import ELIGIBLE_REASON, RenewalStrategy


@pytest.fixture
def renewal_handler(
    license_repository,
    asset_repository,
    brand_repository,
    usage_repository,
    audit_repository,
    policy,
    preview_service,
    event_bus,
    atomic,
):
    def build(handler_class):
        return handler_class(
            license_repository,
            asset_repository,
            brand_repository,
            usage_repository,
            audit_repository,
            policy=policy,
            preview_service=preview_service,
            event_bus=event_bus,
            atomic=atomic,
        )

    return build


@pytest.fixture
def expiring_license(make_license, now):
    """A year-long license ending in 20 days."""
    end = now + timedelta(days=20, hours=1)
    return make_license(start_date=end - timedelta(days=365), end_date=end)


@pytest.mark.asyncio
class TestCheckRenewalEligibilityHandler:
    """Tests for CheckRenewalEligibilityHandler."""

    async def test_eligible_with_terms(self, renewal_handler, expiring_license, brand_actor):
        """Test eligible licenses come with AUTOMATIC terms."""
        result = await renewal_handler(CheckRenewalEligibilityHandler).handle(
            CheckRenewalEligibilityQuery(expiring_license.id, brand_actor)
        )

        assert result.eligible is True
        assert result.reasons == [ELIGIBLE_REASON]
        assert result.suggested_terms.fee_cents == 105000
        assert result.suggested_terms.start_date == expiring_license.end_date + timedelta(days=1)

    async def test_too_early(self, renewal_handler, make_license, creator_actor):
        """Test a license far from expiry is not eligible."""
        result = await renewal_handler(CheckRenewalEligibilityHandler).handle(
            CheckRenewalEligibilityQuery(make_license().id, creator_actor)
        )

        assert result.eligible is False
        assert result.suggested_terms is None

    async def test_party_required(self, renewal_handler, expiring_license):
        """Test outsiders cannot inspect renewal eligibility."""
        stranger = Actor(user_id="brand-owner-2", role=Role.BRAND)
        with pytest.raises(LicensePermissionError):
            await renewal_handler(CheckRenewalEligibilityHandler).handle(
                CheckRenewalEligibilityQuery(expiring_license.id, stranger)
            )


@pytest.mark.asyncio
class TestGenerateRenewalOfferHandler:
    """Tests for GenerateRenewalOfferHandler."""

    async def test_generates_pending_offer(self, renewal_handler, expiring_license, brand_actor, license_repository, event_bus, audit_repository):
        """Test an offer is stored on the license."""
        result = await renewal_handler(GenerateRenewalOfferHandler).handle(
            GenerateRenewalOfferCommand(expiring_license.id, brand_actor)
        )

        assert result.offer["status"] == "PENDING"
        assert result.offer["terms"]["fee_cents"] == 105000
        assert result.pricing["final_fee_cents"] == 105000
        stored = license_repository.items[expiring_license.id]
        assert stored.metadata.find_offer(result.offer_id).status == OfferStatus.PENDING
        assert audit_repository.actions() == ["renewal_offer_generated"]
        assert event_bus.of_type(RenewalOfferGenerated)[0].offer_id == result.offer_id

    async def test_new_offer_expires_previous(self, renewal_handler, expiring_license, brand_actor, license_repository):
        """Test only the latest offer stays pending."""
        handler = renewal_handler(GenerateRenewalOfferHandler)
        first = await handler.handle(GenerateRenewalOfferCommand(expiring_license.id, brand_actor))
        second = await handler.handle(
            GenerateRenewalOfferCommand(expiring_license.id, brand_actor, strategy=RenewalStrategy.FLAT)
        )

        metadata = license_repository.items[expiring_license.id].metadata
        assert metadata.find_offer(first.offer_id).status == OfferStatus.EXPIRED
        assert metadata.find_offer(second.offer_id).status == OfferStatus.PENDING
        assert second.offer["terms"]["fee_cents"] == 100000

    async def test_negotiated_requires_percent(self, renewal_handler, expiring_license, brand_actor):
        """Test NEGOTIATED without a percentage is a validation error."""
        with pytest.raises(ValidationError):
            await renewal_handler(GenerateRenewalOfferHandler).handle(
                GenerateRenewalOfferCommand(
                    expiring_license.id, brand_actor, strategy=RenewalStrategy.NEGOTIATED
                )
            )

    async def test_ineligible(self, renewal_handler, make_license, brand_actor):
        """Test ineligible licenses get no offer."""
        with pytest.raises(ValidationError) as exc_info:
            await renewal_handler(GenerateRenewalOfferHandler).handle(
                GenerateRenewalOfferCommand(make_license().id, brand_actor)
            )
        assert exc_info.value.errors[0].startswith("Too early to renew")


@pytest.mark.asyncio
class TestAcceptRenewalOfferHandler:
    """Tests for AcceptRenewalOfferHandler."""

    async def _offer(self, renewal_handler, license, actor):
        result = await renewal_handler(GenerateRenewalOfferHandler).handle(
            GenerateRenewalOfferCommand(license.id, actor)
        )
        return result.offer_id

    async def test_accept_creates_renewal(self, renewal_handler, expiring_license, brand_actor, license_repository, event_bus):
        """Test accepting creates the successor license awaiting approval."""
        offer_id = await self._offer(renewal_handler, expiring_license, brand_actor)

        renewal = await renewal_handler(AcceptRenewalOfferHandler).handle(
            AcceptRenewalOfferCommand(expiring_license.id, offer_id, brand_actor)
        )

        assert renewal.status == "PENDING_APPROVAL"
        assert renewal.parent_license_id == expiring_license.id
        assert renewal.fee_cents == 105000
        assert renewal.start_date == expiring_license.end_date + timedelta(days=1)
        assert renewal.metadata["renewal_origin"]["offer_id"] == offer_id
        original = license_repository.items[expiring_license.id]
        accepted = original.metadata.find_offer(offer_id)
        assert accepted.status == OfferStatus.ACCEPTED
        assert accepted.renewal_license_id == str(renewal.id)
        assert event_bus.of_type(LicenseCreated)[0].parent_license_id == expiring_license.id
        assert len(event_bus.of_type(RenewalOfferAccepted)) == 1

    async def test_accept_twice(self, renewal_handler, expiring_license, brand_actor):
        """Test an accepted offer cannot be accepted again."""
        offer_id = await self._offer(renewal_handler, expiring_license, brand_actor)
        handler = renewal_handler(AcceptRenewalOfferHandler)
        await handler.handle(AcceptRenewalOfferCommand(expiring_license.id, offer_id, brand_actor))

        with pytest.raises(OfferNotPendingError):
            await handler.handle(AcceptRenewalOfferCommand(expiring_license.id, offer_id, brand_actor))

    async def test_unknown_offer(self, renewal_handler, expiring_license, brand_actor):
        """Test an offer id not on the license is reported."""
        with pytest.raises(RenewalOfferNotFoundError):
            await renewal_handler(AcceptRenewalOfferHandler).handle(
                AcceptRenewalOfferCommand(expiring_license.id, str(uuid.uuid4()), brand_actor)
            )

    async def test_creator_cannot_accept(self, renewal_handler, expiring_license, brand_actor, creator_actor):
        """Test only the brand owner accepts."""
        offer_id = await self._offer(renewal_handler, expiring_license, brand_actor)
        with pytest.raises(LicensePermissionError):
            await renewal_handler(AcceptRenewalOfferHandler).handle(
                AcceptRenewalOfferCommand(expiring_license.id, offer_id, creator_actor)
            )

    async def test_expired_offer(self, renewal_handler, expiring_license, brand_actor, license_repository):
        """Test an offer past its expiry is marked EXPIRED and refused."""
        offer_id = await self._offer(renewal_handler, expiring_license, brand_actor)
        license = license_repository.items[expiring_license.id]
        offer = license.metadata.find_offer(offer_id)
        license_repository.items[license.id] = license.with_metadata(
            license.metadata.with_offer(replace(offer, expires_at=utc_now() - timedelta(minutes=1)))
        )

        with pytest.raises(OfferExpiredError):
            await renewal_handler(AcceptRenewalOfferHandler).handle(
                AcceptRenewalOfferCommand(expiring_license.id, offer_id, brand_actor)
            )
        stored = license_repository.items[expiring_license.id]
        assert stored.metadata.find_offer(offer_id).status == OfferStatus.EXPIRED

    async def test_renewal_period_conflict(self, renewal_handler, expiring_license, brand_actor, make_license, now):
        """Test an exclusive grant in the renewal period blocks acceptance."""
        offer_id = await self._offer(renewal_handler, expiring_license, brand_actor)
        make_license(
            status=LicenseStatus.ACTIVE,
            license_type=LicenseType.EXCLUSIVE,
            start_date=expiring_license.end_date + timedelta(days=30),
            end_date=expiring_license.end_date + timedelta(days=120),
            brand_id=uuid.uuid4(),
        )
        with pytest.raises(ConflictError):
            await renewal_handler(AcceptRenewalOfferHandler).handle(
                AcceptRenewalOfferCommand(expiring_license.id, offer_id, brand_actor)
            )
