"""
Django management command expiring overdue workflow requests.
"""

from asgiref.sync import async_to_sync

from core.management.commands._sweep import SweepCommand
from licenses.infrastructure.container import expire_pending_handler


class Command(SweepCommand):
    """Command to expire overdue amendments, extensions and renewal offers."""

    help = "Expire amendments, extension requests and renewal offers past their deadline"

    def handle(self, *args, **options):
        """Execute the command."""
        self.report("Expired requests", async_to_sync(expire_pending_handler().handle)())
