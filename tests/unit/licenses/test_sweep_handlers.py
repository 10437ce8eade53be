"""
Unit tests for the periodic sweep handlers.
"""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import patch

import pytest

from core.domain.clock import utc_now
from core.domain.exceptions import ValidationError
from core.domain.value_objects import LicenseStatus, Role
from licenses.application.dto.license_dto import SweepResultDTO
from licenses.application.handlers.sweep_handlers import (
    ExpirePendingRequestsHandler,
    ProcessAutomatedTransitionsHandler,
    ProcessAutoRenewalsHandler,
    SendLifecycleNoticesHandler,
)
from licenses.domain.amendment import Amendment, AmendmentStatus, AmendmentType, FieldChange
from licenses.domain.events import (
    AmendmentDecided,
    ExtensionDecided,
    LicenseExpiryNotice,
    LicenseGracePeriodStarted,
    LicenseStatusChanged,
    RenewalOfferReminder,
)
from licenses.domain.extension import Extension, ExtensionStatus
from licenses.domain.metadata import OfferStatus, RenewalOfferRecord, RenewalTerms
from licenses.domain.policy import LicensingPolicy
from licenses.domain.state_machine import (
    REASON_DRAFT_ABANDONED,
    REASON_END_REACHED,
    REASON_EXPIRING_SOON,
    REASON_PAST_END,
)
from tests.fakes import backdate

S = LicenseStatus


@pytest.fixture
def transitions_handler(license_repository, history_repository, audit_repository, policy, preview_service, event_bus, atomic):
    return ProcessAutomatedTransitionsHandler(
        license_repository,
        history_repository,
        audit_repository,
        policy=policy,
        preview_service=preview_service,
        event_bus=event_bus,
        atomic=atomic,
    )


@pytest.mark.asyncio
class TestProcessAutomatedTransitionsHandler:
    """Tests for ProcessAutomatedTransitionsHandler."""

    async def test_expiring_soon(self, transitions_handler, make_license, history_repository, now):
        """Test licenses inside the 30-day window are flagged."""
        license = make_license(end_date=now + timedelta(days=10))
        make_license(end_date=now + timedelta(days=90))

        result = await transitions_handler.handle()

        assert result.processed == 1
        assert result.details == {"EXPIRING_SOON": 1}
        entry = history_repository.entries[0]
        assert entry.license_id == license.id
        assert entry.reason == REASON_EXPIRING_SOON
        assert entry.automated is True
        assert entry.transitioned_by == "system"

    async def test_expiring_soon_to_expired(self, transitions_handler, make_license, license_repository, now):
        """Test EXPIRING_SOON licenses past their end date expire."""
        license = make_license(
            status=S.EXPIRING_SOON, start_date=now - timedelta(days=100), end_date=now - timedelta(hours=1)
        )

        await transitions_handler.handle()

        assert license_repository.items[license.id].status == S.EXPIRED

    async def test_active_past_end_takes_both_hops(self, transitions_handler, make_license, license_repository, history_repository, event_bus, now):
        """Test an ACTIVE license past its end date expires through EXPIRING_SOON."""
        license = make_license(start_date=now - timedelta(days=100), end_date=now - timedelta(days=1))

        result = await transitions_handler.handle()

        assert license_repository.items[license.id].status == S.EXPIRED
        assert [(e.to_status, e.reason) for e in history_repository.entries] == [
            (S.EXPIRING_SOON, REASON_PAST_END),
            (S.EXPIRED, REASON_END_REACHED),
        ]
        assert len(event_bus.of_type(LicenseStatusChanged)) == 2
        assert result.details == {"EXPIRED": 1}

    async def test_abandoned_draft(self, transitions_handler, make_license, license_repository, now):
        """Test drafts older than 90 days are canceled."""
        old = make_license(status=S.DRAFT)
        license_repository.items[old.id] = backdate(old, created_at=now - timedelta(days=91))
        fresh = make_license(status=S.DRAFT)

        await transitions_handler.handle()

        assert license_repository.items[old.id].status == S.CANCELED
        assert license_repository.items[fresh.id].status == S.DRAFT

    async def test_history_reason_for_draft(self, transitions_handler, make_license, license_repository, history_repository, now):
        """Test abandoned drafts record the abandonment reason."""
        old = make_license(status=S.DRAFT)
        license_repository.items[old.id] = backdate(old, created_at=now - timedelta(days=120))

        await transitions_handler.handle()
        assert history_repository.entries[0].reason == REASON_DRAFT_ABANDONED

    async def test_failure_is_isolated(self, transitions_handler, make_license, license_repository, now):
        """Test one failing license does not stop the pass."""
        broken = make_license(end_date=now + timedelta(days=5))
        license_repository.items[broken.id] = backdate(broken, deleted_at=now)
        healthy = make_license(end_date=now + timedelta(days=6))
        original_find = license_repository.find_by_status

        async def find_including_deleted(statuses, **filters):
            found = await original_find(statuses, **filters)
            if S.ACTIVE in set(statuses):
                found.append(license_repository.items[broken.id])
            return found

        license_repository.find_by_status = find_including_deleted
        result = await transitions_handler.handle()

        assert result.processed == 1
        assert result.errors[0]["id"] == str(broken.id)
        assert license_repository.items[healthy.id].status == S.EXPIRING_SOON

    async def test_nothing_due(self, transitions_handler, make_license):
        """Test a pass with nothing due reports nothing."""
        make_license()
        result = await transitions_handler.handle()
        assert result == SweepResultDTO()


@pytest.mark.asyncio
class TestExpiryGracePeriod:
    """Tests for the grace period after a license's end date."""

    @pytest.fixture
    def handler(self, license_repository, history_repository, audit_repository, preview_service, event_bus, atomic):
        return ProcessAutomatedTransitionsHandler(
            license_repository,
            history_repository,
            audit_repository,
            policy=LicensingPolicy(expiry_grace_days=7),
            preview_service=preview_service,
            event_bus=event_bus,
            atomic=atomic,
        )

    async def test_active_held_in_grace(self, handler, make_license, license_repository, event_bus, now):
        """Test an ACTIVE license just past its end date stops at EXPIRING_SOON."""
        license = make_license(start_date=now - timedelta(days=100), end_date=now - timedelta(days=2))

        result = await handler.handle()

        stored = license_repository.items[license.id]
        assert stored.status == S.EXPIRING_SOON
        assert stored.metadata.grace_period_ends_at == license.end_date + timedelta(days=7)
        assert result.details == {"EXPIRING_SOON": 1}
        started = event_bus.of_type(LicenseGracePeriodStarted)
        assert [e.grace_period_ends_at for e in started] == [license.end_date + timedelta(days=7)]

    async def test_grace_announced_once(self, handler, make_license, event_bus, now):
        """Test later passes inside the grace period stay quiet."""
        make_license(
            status=S.EXPIRING_SOON, start_date=now - timedelta(days=100), end_date=now - timedelta(days=1)
        )

        first = await handler.handle()
        second = await handler.handle()

        assert first.details == {"grace_period": 1}
        assert second == SweepResultDTO()
        assert len(event_bus.of_type(LicenseGracePeriodStarted)) == 1

    async def test_expires_after_grace(self, handler, make_license, license_repository, now):
        """Test the license expires once the grace period has passed."""
        license = make_license(
            status=S.EXPIRING_SOON, start_date=now - timedelta(days=100), end_date=now - timedelta(days=8)
        )

        await handler.handle()

        assert license_repository.items[license.id].status == S.EXPIRED


@pytest.mark.asyncio
class TestProcessAutoRenewalsHandler:
    """Tests for ProcessAutoRenewalsHandler."""

    @pytest.fixture
    def handler(self, license_repository, asset_repository, brand_repository, usage_repository, audit_repository, policy, preview_service, event_bus, atomic):
        return ProcessAutoRenewalsHandler(
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

    def _auto_renew(self, make_license, now, days_left=20, **kwargs):
        end = now + timedelta(days=days_left, hours=1)
        return make_license(start_date=end - timedelta(days=365), end_date=end, auto_renew=True, **kwargs)

    async def test_renews_eligible(self, handler, make_license, license_repository, now):
        """Test an eligible auto-renew license gets a renewal awaiting approval."""
        license = self._auto_renew(make_license, now)

        result = await handler.handle()

        assert result.processed == 1
        assert result.details == {"renewed": 1}
        children = await license_repository.find_children(license.id)
        assert len(children) == 1
        assert children[0].status == S.PENDING_APPROVAL
        assert children[0].created_by == "system"
        offer = license_repository.items[license.id].metadata.renewal_offers[0]
        assert offer.status == OfferStatus.ACCEPTED

    async def test_skips_open_renewal(self, handler, make_license, now):
        """Test licenses with a renewal in progress are skipped."""
        license = self._auto_renew(make_license, now)
        make_license(status=S.DRAFT, parent_license_id=license.id)

        result = await handler.handle()

        assert result.processed == 0
        assert result.details == {"skipped": 1}

    async def test_ignores_manual_and_distant(self, handler, make_license, now):
        """Test only auto-renew licenses inside the window are candidates."""
        end = now + timedelta(days=20)
        make_license(start_date=end - timedelta(days=365), end_date=end)
        self._auto_renew(make_license, now, days_left=120)

        result = await handler.handle()
        assert result.processed == 0
        assert result.details == {}

    async def test_failed_acceptance_withdraws_offer(self, handler, make_license, license_repository, now):
        """Test an offer whose acceptance fails does not stay pending."""
        license = self._auto_renew(make_license, now)

        with patch.object(handler.accept, "handle", side_effect=ValidationError("Renewal rejected")):
            result = await handler.handle()

        assert result.processed == 0
        assert result.errors[0]["id"] == str(license.id)
        offers = license_repository.items[license.id].metadata.renewal_offers
        assert [o.status for o in offers] == [OfferStatus.EXPIRED]
        assert offers[0].decided_by == "system"
        assert await license_repository.find_children(license.id) == []


@pytest.mark.asyncio
class TestExpirePendingRequestsHandler:
    """Tests for ExpirePendingRequestsHandler."""

    @pytest.fixture
    def handler(self, license_repository, amendment_repository, extension_repository, audit_repository, event_bus, atomic):
        return ExpirePendingRequestsHandler(
            license_repository,
            amendment_repository,
            extension_repository,
            audit_repository,
            event_bus=event_bus,
            atomic=atomic,
        )

    async def test_expires_overdue_amendment(self, handler, make_license, amendment_repository, event_bus):
        """Test overdue amendments are rejected as expired."""
        license = make_license()
        amendment = Amendment.propose(
            license_id=license.id,
            amendment_number=1,
            proposed_by="brand-owner-1",
            proposed_by_role=Role.BRAND,
            amendment_type=AmendmentType.FINANCIAL,
            justification="Budget",
            changes=[FieldChange("fee_cents", 100000, 90000)],
            approvers=[("creator-1", Role.CREATOR)],
            approval_deadline=utc_now() - timedelta(hours=1),
        )
        await amendment_repository.save(amendment)

        result = await handler.handle()

        assert result.details == {"amendments": 1}
        assert amendment_repository.items[amendment.id].status == AmendmentStatus.REJECTED
        assert event_bus.of_type(AmendmentDecided)[0].rejection_reason == "expired"

    async def test_expires_overdue_extension(self, handler, make_license, extension_repository, event_bus):
        """Test overdue extension requests are rejected as expired."""
        license = make_license()
        extension = Extension.request(
            license_id=license.id,
            requested_by="brand-owner-1",
            original_end_date=license.end_date,
            extension_days=60,
            additional_fee_cents=33333,
            justification="",
            approval_required=True,
            respond_within_days=0,
        )
        extension = backdate(extension, respond_by=utc_now() - timedelta(minutes=1))
        await extension_repository.save(extension)

        result = await handler.handle()

        stored = extension_repository.items[extension.id]
        assert result.details == {"extensions": 1}
        assert stored.status == ExtensionStatus.REJECTED
        assert stored.rejected_by == "system"
        assert len(event_bus.of_type(ExtensionDecided)) == 1

    async def test_expires_offers(self, handler, make_license, license_repository, audit_repository, now):
        """Test pending renewal offers past expiry are expired."""
        license = make_license()
        terms = RenewalTerms(
            duration_days=180,
            fee_cents=100000,
            rev_share_bps=0,
            start_date=license.end_date + timedelta(days=1),
            end_date=license.end_date + timedelta(days=181),
            original_fee_cents=100000,
            strategy="FLAT",
            confidence=80,
        )
        offer = RenewalOfferRecord(
            id="offer-1",
            status=OfferStatus.PENDING,
            terms=terms,
            created_at=now - timedelta(days=31),
            expires_at=now - timedelta(days=1),
            created_by="brand-owner-1",
        )
        license_repository.items[license.id] = license.with_metadata(license.metadata.with_offer(offer))

        result = await handler.handle()

        assert result.details == {"offers": 1}
        assert license_repository.items[license.id].metadata.find_offer("offer-1").status == OfferStatus.EXPIRED
        assert audit_repository.actions() == ["renewal_offers_expired"]

    async def test_nothing_overdue(self, handler, make_license):
        """Test an idle pass."""
        make_license()
        result = await handler.handle()
        assert result.processed == 0


def _offer(license, now, expires_in, offer_id="offer-1"):
    terms = RenewalTerms(
        duration_days=180,
        fee_cents=100000,
        rev_share_bps=0,
        start_date=license.end_date,
        end_date=license.end_date + timedelta(days=180),
        original_fee_cents=100000,
        strategy="FLAT",
        confidence=80,
    )
    return RenewalOfferRecord(
        id=offer_id,
        status=OfferStatus.PENDING,
        terms=terms,
        created_at=now - timedelta(days=20),
        expires_at=now + expires_in,
        created_by="brand-owner-1",
    )


@pytest.mark.asyncio
class TestSendLifecycleNoticesHandler:
    """Tests for SendLifecycleNoticesHandler."""

    @pytest.fixture
    def handler(self, license_repository, audit_repository, policy, event_bus, atomic):
        return SendLifecycleNoticesHandler(
            license_repository, audit_repository, policy=policy, event_bus=event_bus, atomic=atomic
        )

    async def test_stages_sent_once_each(self, handler, make_license, license_repository, event_bus, now):
        """Test each stage goes out once as the end date approaches."""
        license = make_license(start_date=now - timedelta(days=200), end_date=now + timedelta(days=85))

        first = await handler.handle()
        again = await handler.handle()

        assert first.details == {"expiry_notices": 1}
        assert again.processed == 0
        notice = event_bus.of_type(LicenseExpiryNotice)[0]
        assert (notice.days_before, notice.urgency) == (90, "informational")
        assert notice.end_date == license.end_date

        # Thirty days on, the same end date sits 55 days out.
        stored = license_repository.items[license.id]
        shifted = now + timedelta(days=55)
        notices = tuple(replace(n, end_date=shifted) for n in stored.metadata.expiry_notices)
        license_repository.items[license.id] = replace(
            stored,
            start_date=stored.start_date - timedelta(days=30),
            end_date=shifted,
            metadata=replace(stored.metadata, expiry_notices=notices),
        )
        await handler.handle()

        assert [e.days_before for e in event_bus.of_type(LicenseExpiryNotice)] == [90, 60]
        sent = license_repository.items[license.id].metadata.expiry_notices
        assert [(n.days_before, n.urgency) for n in sent] == [(90, "informational"), (60, "reminder")]

    async def test_late_license_gets_most_urgent_stage(self, handler, make_license, event_bus, audit_repository, now):
        """Test a license first seen inside the 30-day window gets only the urgent notice."""
        make_license(status=S.EXPIRING_SOON, end_date=now + timedelta(days=20))

        result = await handler.handle()

        assert result.details == {"expiry_notices": 1}
        assert [(e.days_before, e.urgency) for e in event_bus.of_type(LicenseExpiryNotice)] == [(30, "urgent")]
        assert audit_repository.actions() == ["expiry_notice_sent"]

    async def test_new_end_date_restarts_stages(self, handler, make_license, license_repository, event_bus, now):
        """Test an extended license is noticed again for its new end date."""
        license = make_license(end_date=now + timedelta(days=25))
        await handler.handle()

        stored = license_repository.items[license.id]
        license_repository.items[license.id] = replace(stored, end_date=now + timedelta(days=28))
        await handler.handle()

        assert [e.end_date for e in event_bus.of_type(LicenseExpiryNotice)] == [
            license.end_date,
            now + timedelta(days=28),
        ]

    async def test_ignores_distant_and_inactive(self, handler, make_license, event_bus, now):
        """Test licenses outside the stages or not in force get nothing."""
        make_license(end_date=now + timedelta(days=150))
        make_license(status=S.SUSPENDED, end_date=now + timedelta(days=20))

        result = await handler.handle()

        assert result == SweepResultDTO()
        assert event_bus.of_type(LicenseExpiryNotice) == []

    async def test_renewal_reminder(self, handler, make_license, license_repository, event_bus, now):
        """Test a pending offer near its expiry is reminded once."""
        license = make_license(end_date=now + timedelta(days=150))
        soon = _offer(license, now, timedelta(days=3))
        later = _offer(license, now, timedelta(days=20), offer_id="offer-2")
        license_repository.items[license.id] = license.with_metadata(
            license.metadata.with_offer(soon).with_offer(later)
        )

        first = await handler.handle()
        again = await handler.handle()

        assert first.details == {"renewal_reminders": 1}
        assert again.processed == 0
        reminder = event_bus.of_type(RenewalOfferReminder)[0]
        assert (reminder.offer_id, reminder.expires_at) == ("offer-1", soon.expires_at)
        stored = license_repository.items[license.id].metadata
        assert stored.find_offer("offer-1").reminder_sent_at is not None
        assert stored.find_offer("offer-2").reminder_sent_at is None

    async def test_no_reminder_for_decided_offer(self, handler, make_license, license_repository, event_bus, now):
        """Test accepted offers are not reminded."""
        license = make_license(end_date=now + timedelta(days=150))
        accepted = _offer(license, now, timedelta(days=3)).decide(OfferStatus.ACCEPTED, now, "brand-owner-1")
        license_repository.items[license.id] = license.with_metadata(license.metadata.with_offer(accepted))

        result = await handler.handle()

        assert result.processed == 0
        assert event_bus.of_type(RenewalOfferReminder) == []
