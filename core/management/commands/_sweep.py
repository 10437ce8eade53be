"""
Shared output for the sweep management commands.
"""
from django.core.management.base import BaseCommand

from licenses.application.dto.license_dto import SweepResultDTO


class SweepCommand(BaseCommand):
    """Base for commands that run one sweep and report its result."""

    def report(self, label: str, result: SweepResultDTO) -> None:
        self.stdout.write(f"{label}: {result.processed} item(s) processed")
        for key, count in sorted(result.details.items()):
            self.stdout.write(f"  - {key}: {count}")
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  ! {error['id']}: {error['error']}"))
        if result.errors:
            self.stdout.write(self.style.WARNING(f"{len(result.errors)} item(s) failed"))
        else:
            self.stdout.write(self.style.SUCCESS("Done"))
