"""
Sweep handlers.

Periodic, stateless batch passes. Each item runs in its own transaction;
a failure on one item is recorded in the result and the pass continues.
"""
import logging
import time
from dataclasses import replace
from datetime import timedelta
from typing import List, Optional, Tuple

from assets.ports.asset_repository import AssetRepository
from assets.ports.usage_metrics_repository import UsageMetricsRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.value_objects import SYSTEM_ACTOR_ID, Actor, LicenseStatus
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import (
    amendments_total,
    extensions_total,
    renewal_offers_total,
    sweep_duration_seconds,
    sweep_items_total,
)
from licenses.application.commands.renewals import AcceptRenewalOfferCommand, GenerateRenewalOfferCommand
from licenses.application.dto.license_dto import SweepResultDTO
from licenses.application.handlers.amendment_handlers import decided_event as amendment_decided
from licenses.application.handlers.extension_handlers import EXPIRED_REASON
from licenses.application.handlers.extension_handlers import decided_event as extension_decided
from licenses.application.handlers.renewal_handlers import (
    AcceptRenewalOfferHandler,
    GenerateRenewalOfferHandler,
)
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.lookup import load_amendment, load_extension, load_license
from licenses.application.services.policy import get_licensing_policy
from licenses.application.services.renewal_service import RenewalService
from licenses.application.services.status_transition_service import StatusTransitionService
from licenses.domain.events import LicenseExpiryNotice, LicenseGracePeriodStarted, RenewalOfferReminder
from licenses.domain.license import License
from licenses.domain.metadata import ExpiryNoticeRecord, OfferStatus
from licenses.domain.policy import LicensingPolicy
from licenses.domain.renewal import OPEN_RENEWAL_STATUSES, RENEWABLE_STATUSES, RenewalStrategy
from licenses.domain.state_machine import (
    REASON_DRAFT_ABANDONED,
    REASON_END_REACHED,
    REASON_EXPIRING_SOON,
    REASON_PAST_END,
)
from licenses.ports.amendment_repository import AmendmentRepository
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.extension_repository import ExtensionRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository

logger = logging.getLogger(__name__)

S = LicenseStatus


class ProcessAutomatedTransitionsHandler:
    """
    Time-driven status changes.

    - ACTIVE within the expiring-soon window moves to EXPIRING_SOON.
    - EXPIRING_SOON past its end date moves to EXPIRED.
    - ACTIVE past its end date moves through EXPIRING_SOON to EXPIRED in
      one transaction, leaving both hops in the history.
    - DRAFT older than the abandonment window is CANCELED.

    With a grace period configured, a license past its end date is held
    in EXPIRING_SOON until the grace period ends, and the start of the
    grace period is announced once per end date.
    """

    SWEEP = "automated_transitions"

    def __init__(
        self,
        license_repository: LicenseRepository,
        history_repository: StatusHistoryRepository,
        audit_repository: AuditLogRepository,
        policy: Optional[LicensingPolicy] = None,
        preview_service: Optional[ConflictPreviewService] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.transitions = StatusTransitionService(
            license_repository, history_repository, audit_repository
        )
        self.policy = policy or get_licensing_policy()
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic

    def grace_ends_at(self, license: License):
        if not self.policy.expiry_grace_days:
            return None
        return license.end_date + timedelta(days=self.policy.expiry_grace_days)

    def in_grace(self, license: License, now) -> bool:
        ends = self.grace_ends_at(license)
        return license.end_date < now and ends is not None and now <= ends

    def steps_for(self, license: License, now) -> List[tuple]:
        """(target, reason) hops due for a license at ``now``."""
        if license.status == S.ACTIVE:
            if license.end_date < now:
                if self.in_grace(license, now):
                    return [(S.EXPIRING_SOON, REASON_PAST_END)]
                return [(S.EXPIRING_SOON, REASON_PAST_END), (S.EXPIRED, REASON_END_REACHED)]
            if license.end_date <= now + timedelta(days=self.policy.expiring_soon_days):
                return [(S.EXPIRING_SOON, REASON_EXPIRING_SOON)]
        elif license.status == S.EXPIRING_SOON:
            if license.end_date < now and not self.in_grace(license, now):
                return [(S.EXPIRED, REASON_END_REACHED)]
        elif license.status == S.DRAFT:
            if license.created_at < now - timedelta(days=self.policy.draft_abandon_days):
                return [(S.CANCELED, REASON_DRAFT_ABANDONED)]
        return []

    async def candidates(self, now) -> List[License]:
        window_end = now + timedelta(days=self.policy.expiring_soon_days)
        found = await self.license_repository.find_by_status(
            [S.ACTIVE, S.EXPIRING_SOON], end_date_to=window_end
        )
        found += await self.license_repository.find_by_status(
            [S.DRAFT], created_before=now - timedelta(days=self.policy.draft_abandon_days)
        )
        return list({license.id: license for license in found}.values())

    async def process(self, license_id, now) -> Optional[License]:
        """Apply the due hops to one license; None when nothing was due any more."""
        events = []
        async with self.atomic():
            license = await load_license(self.license_repository, license_id, for_update=True)
            steps = self.steps_for(license, now)
            for target, reason in steps:
                outcome = await self.transitions.transition(
                    license, target, SYSTEM_ACTOR_ID, reason=reason, automated=True
                )
                license = outcome.license
                events.append(outcome.event)
            grace_ends_at = self.grace_ends_at(license)
            if (
                license.status == S.EXPIRING_SOON
                and self.in_grace(license, now)
                and license.metadata.grace_period_ends_at != grace_ends_at
            ):
                license = await self.license_repository.save(
                    license.with_metadata(replace(license.metadata, grace_period_ends_at=grace_ends_at))
                )
                events.append(LicenseGracePeriodStarted(license.id, license.brand_id, grace_ends_at))
        if not events:
            return None
        if steps:
            await self.preview_service.invalidate(license.ip_asset_id)
        await self.event_bus.publish_all(events)
        return license

    async def handle(self) -> SweepResultDTO:
        """
        Run one pass.

        Returns:
            SweepResultDTO with per-target counts and per-license errors
        """
        result = SweepResultDTO()
        started = time.monotonic()
        now = utc_now()
        for candidate in await self.candidates(now):
            try:
                license = await self.process(candidate.id, now)
            except Exception as e:
                logger.error("Automated transition failed for license %s: %s", candidate.id, e, exc_info=True)
                result.add_error(candidate.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            if license is None:
                continue
            result.processed += 1
            sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc()
            if license.status == candidate.status:
                result.count("grace_period")
                logger.info(
                    "License %s held in grace period until %s",
                    license.id,
                    license.metadata.grace_period_ends_at,
                )
                continue
            result.count(license.status.value)
            logger.info(
                "License %s moved from %s to %s", license.id, candidate.status.value, license.status.value
            )
        sweep_duration_seconds.labels(sweep=self.SWEEP).observe(time.monotonic() - started)
        logger.info("Automated transitions: %d processed, %d error(s)", result.processed, len(result.errors))
        return result


class ProcessAutoRenewalsHandler:
    """Generate and accept renewal offers for auto-renew licenses near their end date."""

    SWEEP = "auto_renewals"

    def __init__(
        self,
        license_repository: LicenseRepository,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
        usage_repository: UsageMetricsRepository,
        audit_repository: AuditLogRepository,
        policy: Optional[LicensingPolicy] = None,
        preview_service: Optional[ConflictPreviewService] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.policy = policy or get_licensing_policy()
        self.renewals = RenewalService(
            license_repository, asset_repository, brand_repository, usage_repository, policy=self.policy
        )
        args = (license_repository, asset_repository, brand_repository, usage_repository, audit_repository)
        options = dict(policy=self.policy, preview_service=preview_service, event_bus=event_bus, atomic=atomic)
        self.generate = GenerateRenewalOfferHandler(*args, **options)
        self.accept = AcceptRenewalOfferHandler(*args, **options)
        self.atomic = atomic

    async def withdraw_offer(self, license_id, offer_id: str) -> None:
        """Expire an offer generated by this sweep whose acceptance failed."""
        async with self.atomic():
            license = await load_license(self.license_repository, license_id, for_update=True)
            offer = license.metadata.find_offer(offer_id)
            if offer is None or offer.status != OfferStatus.PENDING:
                return
            await self.license_repository.save(
                license.with_metadata(
                    license.metadata.with_offer(offer.decide(OfferStatus.EXPIRED, utc_now(), SYSTEM_ACTOR_ID))
                )
            )
        renewal_offers_total.labels(outcome="expired").inc()
        logger.info("Auto-renewal offer %s on license %s withdrawn", offer_id, license_id)

    async def handle(self) -> SweepResultDTO:
        """
        Run one pass.

        Licenses that already have an open renewal, or are not eligible, are
        skipped and counted under ``skipped``.
        """
        result = SweepResultDTO()
        started = time.monotonic()
        now = utc_now()
        actor = Actor.system()
        candidates = await self.license_repository.find_by_status(
            [S.ACTIVE, S.EXPIRING_SOON],
            end_date_from=now,
            end_date_to=now + timedelta(days=self.policy.auto_renew_window_days),
            auto_renew=True,
        )
        for license in candidates:
            try:
                if await self.license_repository.find_children(license.id, OPEN_RENEWAL_STATUSES):
                    result.count("skipped")
                    continue
                eligibility = await self.renewals.check_eligibility(license, now, with_terms=False)
                if not eligibility.eligible:
                    logger.info(
                        "Auto-renewal skipped for license %s: %s", license.id, "; ".join(eligibility.reasons)
                    )
                    result.count("skipped")
                    continue
                offer = await self.generate.handle(
                    GenerateRenewalOfferCommand(
                        license_id=license.id, actor=actor, strategy=RenewalStrategy.AUTOMATIC
                    )
                )
                try:
                    renewal = await self.accept.handle(
                        AcceptRenewalOfferCommand(license_id=license.id, offer_id=offer.offer_id, actor=actor)
                    )
                except Exception:
                    # No PENDING offer outlives a failed acceptance.
                    await self.withdraw_offer(license.id, offer.offer_id)
                    raise
            except Exception as e:
                logger.error("Auto-renewal failed for license %s: %s", license.id, e, exc_info=True)
                result.add_error(license.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            result.processed += 1
            result.count("renewed")
            sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc()
            logger.info("License %s auto-renewed as %s", license.id, renewal.id)
        sweep_duration_seconds.labels(sweep=self.SWEEP).observe(time.monotonic() - started)
        logger.info("Auto-renewals: %d processed, %d error(s)", result.processed, len(result.errors))
        return result


class ExpirePendingRequestsHandler:
    """Expire overdue amendments, extension requests and renewal offers."""

    SWEEP = "expire_pending"

    def __init__(
        self,
        license_repository: LicenseRepository,
        amendment_repository: AmendmentRepository,
        extension_repository: ExtensionRepository,
        audit_repository: AuditLogRepository,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.amendment_repository = amendment_repository
        self.extension_repository = extension_repository
        self.audit_repository = audit_repository
        self.event_bus = event_bus
        self.atomic = atomic

    async def expire_amendment(self, amendment_id, now):
        found = await load_amendment(self.amendment_repository, amendment_id)
        async with self.atomic():
            await load_license(self.license_repository, found.license_id, for_update=True)
            amendment = await load_amendment(self.amendment_repository, amendment_id, for_update=True)
            if not amendment.is_overdue(now):
                return None
            amendment = await self.amendment_repository.save(amendment.expire(now))
            await self.audit(amendment.id, "amendment", "expired", {"license_id": str(amendment.license_id)})
        amendments_total.labels(outcome="expired").inc()
        await self.event_bus.publish(amendment_decided(amendment))
        return amendment

    async def expire_extension(self, extension_id, now):
        async with self.atomic():
            extension = await load_extension(self.extension_repository, extension_id, for_update=True)
            if not extension.is_overdue(now):
                return None
            extension = await self.extension_repository.save(
                extension.reject(SYSTEM_ACTOR_ID, EXPIRED_REASON)
            )
            await self.audit(extension.id, "extension", "expired", {"license_id": str(extension.license_id)})
        extensions_total.labels(outcome="expired").inc()
        await self.event_bus.publish(extension_decided(extension))
        return extension

    async def expire_offers(self, license_id, now) -> int:
        async with self.atomic():
            license = await load_license(self.license_repository, license_id, for_update=True)
            metadata = license.metadata
            expired = [
                o for o in metadata.renewal_offers if o.status == OfferStatus.PENDING and o.is_expired(now)
            ]
            for offer in expired:
                metadata = metadata.with_offer(offer.decide(OfferStatus.EXPIRED, now))
            if expired:
                await self.license_repository.save(license.with_metadata(metadata))
                await self.audit(
                    license.id, "license", "renewal_offers_expired", {"offer_ids": [o.id for o in expired]}
                )
        if expired:
            renewal_offers_total.labels(outcome="expired").inc(len(expired))
        return len(expired)

    async def audit(self, entity_id, entity_type: str, action: str, changes) -> None:
        await self.audit_repository.record(
            AuditEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                actor=SYSTEM_ACTOR_ID,
                changes=changes,
            )
        )

    async def handle(self) -> SweepResultDTO:
        """
        Run one pass.

        Returns:
            SweepResultDTO counting ``amendments``, ``extensions`` and ``offers``
        """
        result = SweepResultDTO()
        started = time.monotonic()
        now = utc_now()

        for amendment in await self.amendment_repository.find_overdue(now):
            try:
                expired = await self.expire_amendment(amendment.id, now)
            except Exception as e:
                logger.error("Expiring amendment %s failed: %s", amendment.id, e, exc_info=True)
                result.add_error(amendment.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            if expired is not None:
                result.processed += 1
                result.count("amendments")
                sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc()
                logger.info("Amendment %s expired", amendment.id)

        for extension in await self.extension_repository.find_overdue(now):
            try:
                expired = await self.expire_extension(extension.id, now)
            except Exception as e:
                logger.error("Expiring extension %s failed: %s", extension.id, e, exc_info=True)
                result.add_error(extension.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            if expired is not None:
                result.processed += 1
                result.count("extensions")
                sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc()
                logger.info("Extension request %s expired", extension.id)

        for license in await self.license_repository.find_by_status(RENEWABLE_STATUSES):
            if not any(
                o.status == OfferStatus.PENDING and o.is_expired(now) for o in license.metadata.renewal_offers
            ):
                continue
            try:
                count = await self.expire_offers(license.id, now)
            except Exception as e:
                logger.error("Expiring renewal offers on license %s failed: %s", license.id, e, exc_info=True)
                result.add_error(license.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            if count:
                result.processed += count
                result.details["offers"] = result.details.get("offers", 0) + count
                sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc(count)
                logger.info("%d renewal offer(s) expired on license %s", count, license.id)

        sweep_duration_seconds.labels(sweep=self.SWEEP).observe(time.monotonic() - started)
        logger.info("Expire pending requests: %d processed, %d error(s)", result.processed, len(result.errors))
        return result


class SendLifecycleNoticesHandler:
    """
    Staged expiry notices and renewal offer reminders.

    Each expiry stage goes out once per end date; a license first seen
    inside several stages gets only the most urgent one. Each pending
    renewal offer is reminded once as its expiry approaches.
    """

    SWEEP = "lifecycle_notices"
    NOTICE_STATUSES = (S.ACTIVE, S.EXPIRING_SOON)

    def __init__(
        self,
        license_repository: LicenseRepository,
        audit_repository: AuditLogRepository,
        policy: Optional[LicensingPolicy] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.audit_repository = audit_repository
        self.policy = policy or get_licensing_policy()
        self.event_bus = event_bus
        self.atomic = atomic

    def due_stage(self, license: License, now) -> Optional[Tuple[int, str]]:
        """The most urgent stage reached and not yet sent for the current end date."""
        if license.status not in self.NOTICE_STATUSES or license.end_date < now:
            return None
        reached = [
            (days, urgency)
            for days, urgency in self.policy.expiry_notice_stages
            if license.end_date <= now + timedelta(days=days)
        ]
        if not reached:
            return None
        days, urgency = reached[-1]
        if license.metadata.notice_sent(days, license.end_date):
            return None
        return days, urgency

    async def send_expiry_notice(self, license_id, now) -> Optional[LicenseExpiryNotice]:
        async with self.atomic():
            license = await load_license(self.license_repository, license_id, for_update=True)
            stage = self.due_stage(license, now)
            if stage is None:
                return None
            days, urgency = stage
            record = ExpiryNoticeRecord(
                days_before=days, urgency=urgency, end_date=license.end_date, sent_at=now
            )
            license = await self.license_repository.save(
                license.with_metadata(
                    replace(license.metadata, expiry_notices=license.metadata.expiry_notices + (record,))
                )
            )
            await self.audit(license, "expiry_notice_sent", record.to_dict())
        return LicenseExpiryNotice(
            license_id=license.id,
            brand_id=license.brand_id,
            ip_asset_id=license.ip_asset_id,
            days_before=days,
            urgency=urgency,
            end_date=license.end_date,
        )

    async def send_offer_reminders(self, license_id, now) -> List[RenewalOfferReminder]:
        async with self.atomic():
            license = await load_license(self.license_repository, license_id, for_update=True)
            due = [
                o
                for o in license.metadata.renewal_offers
                if o.needs_reminder(now, self.policy.renewal_reminder_days)
            ]
            if not due:
                return []
            metadata = license.metadata
            for offer in due:
                metadata = metadata.with_offer(replace(offer, reminder_sent_at=now))
            license = await self.license_repository.save(license.with_metadata(metadata))
            await self.audit(license, "renewal_offer_reminded", {"offer_ids": [o.id for o in due]})
        return [
            RenewalOfferReminder(
                license_id=license.id, brand_id=license.brand_id, offer_id=o.id, expires_at=o.expires_at
            )
            for o in due
        ]

    async def audit(self, license: License, action: str, changes) -> None:
        await self.audit_repository.record(
            AuditEntry(
                entity_type="license",
                entity_id=license.id,
                action=action,
                actor=SYSTEM_ACTOR_ID,
                brand_id=license.brand_id,
                changes=changes,
            )
        )

    async def handle(self) -> SweepResultDTO:
        """
        Run one pass.

        Returns:
            SweepResultDTO counting ``expiry_notices`` and ``renewal_reminders``
        """
        result = SweepResultDTO()
        started = time.monotonic()
        now = utc_now()

        horizon = max((days for days, _ in self.policy.expiry_notice_stages), default=0)
        candidates = []
        if horizon:
            candidates = await self.license_repository.find_by_status(
                self.NOTICE_STATUSES, end_date_from=now, end_date_to=now + timedelta(days=horizon)
            )
        for license in candidates:
            if self.due_stage(license, now) is None:
                continue
            try:
                event = await self.send_expiry_notice(license.id, now)
            except Exception as e:
                logger.error("Expiry notice failed for license %s: %s", license.id, e, exc_info=True)
                result.add_error(license.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            if event is None:
                continue
            result.processed += 1
            result.count("expiry_notices")
            sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc()
            logger.info("%d-day expiry notice (%s) for license %s", event.days_before, event.urgency, license.id)
            await self.event_bus.publish(event)

        for license in await self.license_repository.find_by_status(RENEWABLE_STATUSES):
            if not any(
                o.needs_reminder(now, self.policy.renewal_reminder_days)
                for o in license.metadata.renewal_offers
            ):
                continue
            try:
                reminders = await self.send_offer_reminders(license.id, now)
            except Exception as e:
                logger.error("Renewal reminders failed for license %s: %s", license.id, e, exc_info=True)
                result.add_error(license.id, e)
                sweep_items_total.labels(sweep=self.SWEEP, result="error").inc()
                continue
            if reminders:
                result.processed += len(reminders)
                result.details["renewal_reminders"] = result.details.get("renewal_reminders", 0) + len(reminders)
                sweep_items_total.labels(sweep=self.SWEEP, result="processed").inc(len(reminders))
                logger.info("%d renewal offer reminder(s) for license %s", len(reminders), license.id)
                await self.event_bus.publish_all(reminders)

        sweep_duration_seconds.labels(sweep=self.SWEEP).observe(time.monotonic() - started)
        logger.info("Lifecycle notices: %d processed, %d error(s)", result.processed, len(result.errors))
        return result
