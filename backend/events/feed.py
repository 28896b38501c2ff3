# events/feed.py
"""
Change feed: near-real-time delivery of newly stored events.

The store is append-only, so "everything after the watermark" is always
well defined. The feed polls for events after its watermark, advances the
watermark to each event before handing it out, and waits a fixed interval
when a poll comes back empty.

Two ways to consume it:

    # In the current thread (e.g. a management command)
    stop = threading.Event()
    for event in feed.iter_events(stop):
        ...

    # In a worker thread
    subscription = feed.subscribe(on_event, on_error)
    ...
    subscription.cancel()

Delivery is at-most-once per feed. A transaction that commits with a
creation time at or before an already advanced watermark is not seen.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Union

from django.conf import settings
from django.db import connection
from django.utils import timezone

from events.errors import PersistenceError
from events.models import Event
from events.store import EventStore, Watermark


logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 100
DEFAULT_POLL_INTERVAL = 1.0

EventCallback = Callable[[Event], None]
ErrorCallback = Callable[[Exception], None]


class ChangeFeed:
    """Watermark-driven polling loop over the event store."""

    def __init__(
        self,
        store: EventStore,
        batch_size: Optional[int] = None,
        poll_interval: Optional[float] = None,
        start: Optional[Union[Watermark, datetime]] = None,
    ):
        if batch_size is None:
            batch_size = getattr(settings, "BEBOP_FEED_BATCH_SIZE", DEFAULT_BATCH_SIZE)
        if poll_interval is None:
            poll_interval = getattr(settings, "BEBOP_FEED_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if poll_interval < 0:
            raise ValueError(f"poll_interval must not be negative, got {poll_interval}")

        if start is None:
            start = timezone.now()
        if isinstance(start, datetime):
            start = Watermark(start)

        self.store = store
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.watermark = start

    def poll(self) -> List[Event]:
        """One store call; does not move the watermark."""
        return self.store.events_created_after(self.watermark, self.batch_size)

    def iter_events(
        self,
        stop: Optional[threading.Event] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Iterator[Event]:
        """
        Yield new events in creation order until `stop` is set.

        Poll failures are logged, passed to `on_error`, and retried after
        the poll interval.
        """
        if stop is None:
            stop = threading.Event()

        while not stop.is_set():
            try:
                events = self.poll()
            except PersistenceError as e:
                logger.exception(f"Change feed poll failed, retrying in {self.poll_interval}s")
                if on_error is not None:
                    on_error(e)
                stop.wait(self.poll_interval)
                continue

            for event in events:
                self.watermark = Watermark.of(event)
                yield event
                if stop.is_set():
                    return

            if not events:
                stop.wait(self.poll_interval)

    def subscribe(
        self,
        on_event: EventCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> "Subscription":
        """Run the loop in a worker thread; cancel() the result to stop it."""
        subscription = Subscription(self, on_event, on_error)
        subscription.start()
        return subscription


class Subscription:
    """
    A change feed running in a daemon thread.

    The subscription ends when cancel() is called or when on_event raises;
    in the latter case the exception is passed to on_error first.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        on_event: EventCallback,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.feed = feed
        self.on_event = on_event
        self.on_error = on_error
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="bebop-change-feed", daemon=True)

    def start(self) -> None:
        self._thread.start()

    @property
    def active(self) -> bool:
        return self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop the loop; it exits within one poll interval."""
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        try:
            for event in self.feed.iter_events(self._stop, on_error=self._report):
                try:
                    self.on_event(event)
                except Exception as e:
                    logger.exception(f"Subscriber failed on event {event.id}; ending subscription")
                    self._report(e)
                    self._stop.set()
                    break
        finally:
            # Each thread has its own connection; release it with the thread
            connection.close()

    def _report(self, error: Exception) -> None:
        if self.on_error is not None:
            self.on_error(error)
