"""
Event handlers for domain events.

These handlers run after the originating transaction has committed.
Failures are logged by the event bus and never reach the publisher.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings

from core.domain.events import DomainEvent, EventHandler
from core.domain.value_objects import LicenseStatus
from licenses.domain.events import (
    AmendmentDecided,
    AmendmentProposed,
    ExtensionDecided,
    ExtensionRequested,
    LicenseApprovalRecorded,
    LicenseCreated,
    LicenseExpiryNotice,
    LicenseGracePeriodStarted,
    LicenseSigned,
    LicenseStatusChanged,
    RenewalOfferAccepted,
    RenewalOfferGenerated,
    RenewalOfferReminder,
)

logger = logging.getLogger(__name__)

BRAND = "brand"
CREATORS = "creators"
BOTH = (BRAND, CREATORS)

STATUS_NOTICES = {
    LicenseStatus.PENDING_APPROVAL: ("license_approval_requested", (CREATORS,)),
    LicenseStatus.ACTIVE: ("license_activated", BOTH),
    LicenseStatus.EXPIRING_SOON: ("license_expiring_soon", BOTH),
    LicenseStatus.EXPIRED: ("license_expired", (BRAND,)),
    LicenseStatus.TERMINATED: ("license_terminated", BOTH),
    LicenseStatus.SUSPENDED: ("license_suspended", BOTH),
    LicenseStatus.DISPUTED: ("license_disputed", BOTH),
    LicenseStatus.RENEWED: ("license_renewed", BOTH),
}


def notice_for(event: DomainEvent) -> Optional[Tuple[str, Tuple[str, ...], List[str]]]:
    """
    Notice name, audience and explicit recipients for an event.

    Returns:
        None when the event is not notified
    """
    if isinstance(event, LicenseStatusChanged):
        mapped = STATUS_NOTICES.get(LicenseStatus(event.to_status))
        if mapped is None:
            return None
        return mapped[0], mapped[1], []
    if isinstance(event, LicenseSigned):
        notice = "license_fully_executed" if event.fully_executed else "license_signed"
        return notice, BOTH, []
    if isinstance(event, AmendmentProposed):
        return "amendment_proposed", (), list(event.approver_ids)
    if isinstance(event, AmendmentDecided):
        return "amendment_decided", (), [event.proposed_by]
    if isinstance(event, ExtensionRequested):
        return "extension_requested", (CREATORS,), []
    if isinstance(event, ExtensionDecided):
        return "extension_decided", (), [event.requested_by]
    if isinstance(event, RenewalOfferGenerated):
        return "renewal_offer_available", (BRAND,), []
    if isinstance(event, RenewalOfferAccepted):
        return "renewal_offer_accepted", (CREATORS,), []
    if isinstance(event, LicenseExpiryNotice):
        return f"license_expiry_{event.days_before}_day_notice", BOTH, []
    if isinstance(event, LicenseGracePeriodStarted):
        return "license_grace_period_started", (BRAND,), []
    if isinstance(event, RenewalOfferReminder):
        return "renewal_offer_reminder", (BRAND,), []
    return None


class EventLogHandler(EventHandler):
    """
    Writes every published event to the structured log.

    Audit records are persisted by the handlers inside their transaction;
    this is the searchable event stream.
    """

    async def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event for logging.

        Args:
            event: Domain event to log
        """
        logger.info(
            "Domain event: %s - %s",
            event.event_type,
            event.aggregate_id,
            extra={
                "event_id": str(event.event_id),
                "event_type": event.event_type,
                "aggregate_id": event.aggregate_id,
                "occurred_at": event.occurred_at.isoformat(),
            },
        )


class NotificationEventHandler(EventHandler):
    """
    Turns license events into notices and queues their delivery.

    Delivery runs in a Celery task; nothing is queued when no notification
    endpoint is configured.
    """

    def build_notice(self, event: DomainEvent) -> Optional[Dict[str, Any]]:
        mapped = notice_for(event)
        if mapped is None:
            return None
        notice, audience, recipients = mapped
        return {
            "notice": notice,
            "audience": list(audience),
            "recipients": recipients,
            "license_id": event.payload().get("license_id", event.aggregate_id),
            "event": event.to_dict(),
        }

    async def handle(self, event: DomainEvent) -> None:
        notice = self.build_notice(event)
        if notice is None:
            return
        if not settings.NOTIFICATION_WEBHOOK_URL:
            logger.debug("Notifications disabled, skipping %s", notice["notice"])
            return

        from core.tasks import deliver_notification_task

        deliver_notification_task.delay(notice)
        logger.info("Queued %s notice for license %s", notice["notice"], notice["license_id"])


NOTIFIED_EVENTS = (
    LicenseStatusChanged,
    LicenseSigned,
    AmendmentProposed,
    AmendmentDecided,
    ExtensionRequested,
    ExtensionDecided,
    RenewalOfferGenerated,
    RenewalOfferAccepted,
    RenewalOfferReminder,
    LicenseExpiryNotice,
    LicenseGracePeriodStarted,
)

LOGGED_EVENTS = NOTIFIED_EVENTS + (LicenseCreated, LicenseApprovalRecorded)


def register_event_handlers(bus=None):
    """Register all event handlers with the event bus."""
    from core.infrastructure.events import event_bus

    bus = bus or event_bus
    log_handler = EventLogHandler()
    notification_handler = NotificationEventHandler()

    for event_type in LOGGED_EVENTS:
        bus.subscribe(event_type, log_handler)
    for event_type in NOTIFIED_EVENTS:
        bus.subscribe(event_type, notification_handler)

    logger.info("Event handlers registered")
