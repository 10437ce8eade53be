"""
Django management command running the automated status transitions.

Moves licenses into EXPIRING_SOON and EXPIRED and cancels abandoned
drafts. Scheduled hourly through Celery beat; safe to run by hand.
"""

from asgiref.sync import async_to_sync

from core.domain.clock import utc_now
from core.management.commands._sweep import SweepCommand
from licenses.infrastructure.container import automated_transitions_handler


class Command(SweepCommand):
    """Command to apply due automated status transitions."""

    help = "Apply due automated license status transitions"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the transitions that are due without applying them",
        )

    def handle(self, *args, **options):
        """Execute the command."""
        handler = automated_transitions_handler()
        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("DRY RUN - No changes will be made"))
            now = utc_now()
            for license in async_to_sync(handler.candidates)(now):
                targets = " -> ".join(target.value for target, _ in handler.steps_for(license, now))
                if targets:
                    self.stdout.write(f"  - License {license.id}: {license.status.value} -> {targets}")
            return

        self.report("Automated transitions", async_to_sync(handler.handle)())
