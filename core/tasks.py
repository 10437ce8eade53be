"""
Celery tasks for background processing.

Notification delivery and the periodic license lifecycle sweeps.
"""
import logging

from asgiref.sync import async_to_sync
from django.conf import settings

from core.infrastructure.notifications import NotificationDeliveryError, NotificationDeliveryService
from core.metrics import notifications_total
from IPLicensingService.celery import app

logger = logging.getLogger(__name__)


@app.task(bind=True, max_retries=None)
def deliver_notification_task(self, notice: dict):
    """
    Celery task for notice delivery.

    Retries with exponential backoff; a notice that still fails after the
    configured retries is logged and dropped.

    Args:
        notice: Notice built by NotificationEventHandler
    """
    name = notice.get("notice", "unknown")
    try:
        delivered = NotificationDeliveryService().deliver(notice)
    except NotificationDeliveryError as exc:
        if self.request.retries >= settings.NOTIFICATION_MAX_RETRIES:
            notifications_total.labels(notice=name, result="failed").inc()
            logger.error("Notification %s dropped after %d retries: %s", name, self.request.retries, exc)
            return False
        notifications_total.labels(notice=name, result="retried").inc()
        logger.warning("Notification %s failed, retrying: %s", name, exc)
        raise self.retry(exc=exc, countdown=2**self.request.retries)

    notifications_total.labels(notice=name, result="delivered" if delivered else "skipped").inc()
    return delivered


def _run_sweep(build_handler) -> dict:
    result = async_to_sync(build_handler().handle)()
    return result.to_dict()


@app.task
def process_license_transitions_task():
    """Automated status transitions (expiring soon, expired, abandoned drafts)."""
    from licenses.infrastructure.container import automated_transitions_handler

    return _run_sweep(automated_transitions_handler)


@app.task
def process_auto_renewals_task():
    """Offer and accept renewals for auto-renewing licenses near their end."""
    from licenses.infrastructure.container import auto_renewals_handler

    return _run_sweep(auto_renewals_handler)


@app.task
def expire_pending_requests_task():
    """Expire overdue amendments, extension requests and renewal offers."""
    from licenses.infrastructure.container import expire_pending_handler

    return _run_sweep(expire_pending_handler)


@app.task
def send_lifecycle_notices_task():
    """Staged expiry notices and renewal offer reminders."""
    from licenses.infrastructure.container import lifecycle_notices_handler

    return _run_sweep(lifecycle_notices_handler)
