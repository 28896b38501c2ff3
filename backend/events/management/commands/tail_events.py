# events/management/commands/tail_events.py
"""
Management command to follow newly stored events.

Usage:
    # Follow new events (Ctrl+C to stop)
    python manage.py tail_events

    # Poll every 5 seconds, 50 events per poll
    python manage.py tail_events --interval 5 --batch-size 50

    # One JSON object per line
    python manage.py tail_events --json
"""

import json
import threading

from django.core.management.base import BaseCommand, CommandError

from events.feed import ChangeFeed
from events.serializers import EventSerializer
from events.service import EventService


class Command(BaseCommand):
    """Print events from the change feed as they arrive."""

    help = "Follow new events as they are stored"

    def add_arguments(self, parser):
        parser.add_argument(
            "--interval",
            type=float,
            default=None,
            help="Seconds between polls when idle (default: BEBOP_FEED_POLL_INTERVAL)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=None,
            help="Maximum events per poll (default: BEBOP_FEED_BATCH_SIZE)",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print each event as a JSON line",
        )

    def handle(self, *args, **options):
        service = EventService.from_settings()
        try:
            feed = ChangeFeed(
                service.store,
                batch_size=options.get("batch_size"),
                poll_interval=options.get("interval"),
            )
        except ValueError as e:
            raise CommandError(str(e))

        self.stop = threading.Event()
        self.stdout.write(
            f"Following events (interval: {feed.poll_interval}s, Ctrl+C to stop)"
        )

        try:
            for event in feed.iter_events(self.stop, on_error=self._report_error):
                if options.get("json"):
                    data = EventSerializer(event).data
                    self.stdout.write(json.dumps(data, default=str))
                else:
                    self.stdout.write(self.format_event(event, service.current_catalog))
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING("\nStopped."))

    def format_event(self, event, catalog):
        """One header line with the event label, then one line per parameter."""
        header = (
            f"{event.created_at:%Y-%m-%d %H:%M:%S} "
            f"{self.style.SUCCESS(catalog.event_label(event.event_name))} "
            f"({event.id})"
        )
        lines = [header]
        for param in event.params.all():
            lines.append(f"  {catalog.parameter_label(param.param_name)}: {param.param_value}")
        for claim in event.claims.all():
            lines.append(f"  [{claim.claim_name}] {claim.claim_value}")
        return "\n".join(lines)

    def _report_error(self, error):
        self.stderr.write(self.style.ERROR(f"Poll failed: {error}"))
