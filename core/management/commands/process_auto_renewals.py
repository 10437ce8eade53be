"""
Django management command generating and accepting auto-renewals.
"""

from asgiref.sync import async_to_sync

from core.management.commands._sweep import SweepCommand
from licenses.infrastructure.container import auto_renewals_handler


class Command(SweepCommand):
    """Command to renew auto-renewing licenses close to their end date."""

    help = "Generate and accept renewal offers for auto-renewing licenses"

    def handle(self, *args, **options):
        """Execute the command."""
        self.report("Auto-renewals", async_to_sync(auto_renewals_handler().handle)())
