"""
App configuration for IP Licensing Service.
"""

import logging
import os
import sys

from django.apps import AppConfig

logger = logging.getLogger(__name__)

SKIPPED_COMMANDS = ("migrate", "makemigrations", "collectstatic", "shell", "check", "createsuperuser")


class IPLicensingServiceConfig(AppConfig):
    """App configuration for IPLicensingService."""

    name = "IPLicensingService"
    verbose_name = "IP Licensing Service"

    def ready(self):
        """Wire observability and event handlers once apps are loaded."""
        if len(sys.argv) > 1 and sys.argv[1] in SKIPPED_COMMANDS:
            return

        # RUN_MAIN is "false" in the autoreloader's parent process
        if os.environ.get("RUN_MAIN") == "false":
            return

        if getattr(self, "_initialized", False):
            return

        from core.infrastructure.event_handlers import register_event_handlers
        from core.instrumentation import setup_opentelemetry

        setup_opentelemetry()
        register_event_handlers()
        self._initialized = True
        logger.info("Observability and event handlers ready")
