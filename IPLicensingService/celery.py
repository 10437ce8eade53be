"""
Celery configuration for background tasks.

Used for notification delivery and the periodic lifecycle sweeps.
"""
import os

from celery import Celery
from celery.schedules import crontab

# Set default Django settings module
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "IPLicensingService.settings.base")

app = Celery("IPLicensingService")

# Load configuration from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()

app.conf.beat_schedule = {
    "process-license-transitions": {
        "task": "core.tasks.process_license_transitions_task",
        "schedule": crontab(minute=0),
    },
    "process-auto-renewals": {
        "task": "core.tasks.process_auto_renewals_task",
        "schedule": crontab(minute=15),
    },
    "expire-pending-requests": {
        "task": "core.tasks.expire_pending_requests_task",
        "schedule": crontab(minute=30),
    },
    "send-lifecycle-notices": {
        "task": "core.tasks.send_lifecycle_notices_task",
        "schedule": crontab(minute=45, hour=8),
    },
}
