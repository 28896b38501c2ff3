# catalog/management/commands/check_catalog.py
"""
Management command to validate a catalog configuration.

Usage:
    # Validate the catalog selected by settings (BEBOP_CONFIG_PATH)
    python manage.py check_catalog

    # Validate a specific file before deploying it
    python manage.py check_catalog --path bebop.yml

    # Print the introspection document as JSON
    python manage.py check_catalog --json
"""

import json

from django.core.management.base import BaseCommand, CommandError

from catalog.loader import load_catalog_from_settings
from events.errors import ConfigurationError


class Command(BaseCommand):
    """Validate the event catalog and print a summary."""

    help = "Validate the event catalog configuration"

    def add_arguments(self, parser):
        parser.add_argument(
            "--path",
            type=str,
            help="Catalog YAML file to validate (default: configured source)",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the catalog introspection document as JSON",
        )

    def handle(self, *args, **options):
        try:
            catalog = load_catalog_from_settings(options.get("path"))
        except ConfigurationError as e:
            raise CommandError(f"Invalid catalog: {e}")

        if options.get("json"):
            self.stdout.write(json.dumps(catalog.describe(), indent=2))
            return

        if catalog.is_free_form:
            self.stdout.write(
                self.style.WARNING("No event types configured: any event name is accepted.")
            )

        for event_type in catalog.event_types:
            trace = "trace" if event_type.trace_enabled else "no trace"
            self.stdout.write(f"{event_type.type} ({event_type.label}, {trace})")
            for parameter in event_type.parameters:
                self.stdout.write(f"  {parameter.name}: {parameter.kind}")

        if catalog.claim_names:
            self.stdout.write(f"Claims: {', '.join(sorted(catalog.claim_names))}")

        self.stdout.write(self.style.SUCCESS(f"\nCatalog OK: {catalog!r}"))
