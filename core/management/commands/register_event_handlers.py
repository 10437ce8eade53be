"""
Django management command to register event handlers.

Handlers are registered on startup by the project AppConfig; this command
re-runs the registration and reports it.
"""
from django.core.management.base import BaseCommand

from core.infrastructure.event_handlers import register_event_handlers


class Command(BaseCommand):
    """Command to register event handlers."""

    help = "Register event handlers with the event bus"

    def handle(self, *args, **options):
        """Execute the command."""
        register_event_handlers()
        self.stdout.write(self.style.SUCCESS("Event handlers registered successfully"))
