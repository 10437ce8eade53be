"""
Django management command sending staged expiry notices and renewal reminders.
"""

from asgiref.sync import async_to_sync

from core.management.commands._sweep import SweepCommand
from licenses.infrastructure.container import lifecycle_notices_handler


class Command(SweepCommand):
    """Command to send due expiry notices and renewal offer reminders."""

    help = "Send staged expiry notices and renewal offer reminders"

    def handle(self, *args, **options):
        """Execute the command."""
        self.report("Lifecycle notices", async_to_sync(lifecycle_notices_handler().handle)())
