"""
Test settings for IPLicensingService.
"""

from .base import *  # noqa: F403, F401

DEBUG = False

# In-memory SQLite; the apps ship no migrations so tables are created directly
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Use in-memory cache for tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Password hashers for faster tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

NOTIFICATION_WEBHOOK_URL = ""
OTEL_EXPORTER_OTLP_ENDPOINT = ""

# Disable logging during tests
LOGGING_CONFIG = None
