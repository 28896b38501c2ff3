# events/store.py
"""
Event Store: persistence of events and their child records.

The store writes one Event row plus its parameters, traces and claims in a
single transaction, and reads events back with all children eagerly
loaded. It knows nothing about the catalog: callers (events.ingestion)
validate before writing.

Any DatabaseError, on write or read, surfaces as PersistenceError. A write
that fails leaves nothing behind.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import Q

from events.errors import PersistenceError, ValidationError
from events.models import Event, EventClaim, EventParameter, EventTrace
from events.serialization import is_number, to_float, to_param_text


logger = logging.getLogger(__name__)


ASC = "asc"
DESC = "desc"
ORDERS = (ASC, DESC)

ORDERINGS = {
    ASC: ("created_at", "sequence"),
    DESC: ("-created_at", "-sequence"),
}

CHILD_RELATIONS = ("params", "traces", "claims")


@dataclass(frozen=True)
class Watermark:
    """
    Position in the event stream.

    An event is after the watermark when it was created later, or at the
    same instant with a higher sequence. `sequence=None` means "nothing
    at created_at has been seen yet".
    """

    created_at: datetime
    sequence: Optional[int] = None

    @classmethod
    def of(cls, event: Event) -> "Watermark":
        return cls(event.created_at, event.sequence)

    def condition(self) -> Q:
        after = Q(created_at__gt=self.created_at)
        if self.sequence is not None:
            after |= Q(created_at=self.created_at, sequence__gt=self.sequence)
        return after


class EventStore:
    """Transactional writes and eager-loading reads over the event tables."""

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert_event(
        self,
        event_name: str,
        parameters: Optional[Mapping[str, Any]] = None,
        traces: Optional[Iterable[Any]] = None,
        claims: Optional[Mapping[str, str]] = None,
    ) -> uuid.UUID:
        """
        Persist one event with all of its children.

        Args:
            event_name: Event name (already validated)
            parameters: {name: str | int | float}
            traces: Opaque JSON-serializable trace payloads
            claims: {claim_name: str}

        Returns:
            The new event id

        Raises:
            ValidationError: If a parameter value has no text form
            PersistenceError: If storage fails; no rows are left behind
        """
        parameter_rows = self._parameter_rows(event_name, parameters or {})
        trace_rows = list(traces or [])
        claim_rows = [(name, str(value)) for name, value in (claims or {}).items()]

        try:
            with transaction.atomic():
                event = Event(event_name=event_name)
                event.save()
                self._write_parameters(event, parameter_rows)
                self._write_traces(event, trace_rows)
                self._write_claims(event, claim_rows)
        except DatabaseError as e:
            logger.error(f"Failed to store event '{event_name}': {e}", extra={"event_name": event_name})
            raise PersistenceError(
                f"Failed to store event '{event_name}': {e}",
                details={'event_name': event_name},
            ) from e

        return event.id

    @staticmethod
    def _parameter_rows(event_name: str, parameters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        rows = []
        errors = []
        for name, value in parameters.items():
            try:
                row = {'param_name': name, 'param_value': to_param_text(value)}
            except ValueError as e:
                errors.append(f"Parameter '{name}': {e}")
                continue
            if is_number(value):
                row['param_kind'] = EventParameter.ParameterKind.NUMERIC
                row['numeric_value'] = to_float(value)
            rows.append(row)
        if errors:
            raise ValidationError(event_name, errors)
        return rows

    def _write_parameters(self, event: Event, rows: List[Dict[str, Any]]) -> None:
        EventParameter.objects.bulk_create([
            EventParameter(event=event, **row)
            for row in rows
        ])

    def _write_traces(self, event: Event, traces: List[Any]) -> None:
        EventTrace.objects.bulk_create([
            EventTrace(event=event, trace_data=trace)
            for trace in traces
        ])

    def _write_claims(self, event: Event, rows: List[Tuple[str, str]]) -> None:
        EventClaim.objects.bulk_create([
            EventClaim(event=event, claim_name=name, claim_value=value)
            for name, value in rows
        ])

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def _events():
        return Event.objects.prefetch_related(*CHILD_RELATIONS)

    def query(
        self,
        condition: Q,
        order: str = ASC,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[Event], int]:
        """
        Return one page of matching events plus the total match count.

        The total ignores limit/offset. `condition` is a compiled predicate
        (events.compiler).
        """
        matching = Event.objects.filter(condition)
        page = self._events().filter(condition).order_by(*ORDERINGS[order])
        if limit is None:
            page = page[offset:]
        else:
            page = page[offset:offset + limit]

        try:
            total = matching.count()
            events = list(page) if limit != 0 else []
        except DatabaseError as e:
            logger.error(f"Event query failed: {e}")
            raise PersistenceError(f"Event query failed: {e}") from e
        return events, total

    def count(self, condition: Optional[Q] = None) -> int:
        events = Event.objects.all()
        if condition is not None:
            events = events.filter(condition)
        try:
            return events.count()
        except DatabaseError as e:
            raise PersistenceError(f"Event count failed: {e}") from e

    def events_created_after(self, watermark: Union[Watermark, datetime], limit: int) -> List[Event]:
        """Events strictly after `watermark`, oldest first, at most `limit`."""
        if isinstance(watermark, datetime):
            watermark = Watermark(watermark)
        events = self._events().filter(watermark.condition()).order_by(*ORDERINGS[ASC])[:limit]
        try:
            return list(events)
        except DatabaseError as e:
            raise PersistenceError(f"Change feed poll failed: {e}") from e

    def get(self, event_id: Union[uuid.UUID, str]) -> Optional[Event]:
        try:
            return self._events().filter(id=event_id).first()
        except DatabaseError as e:
            raise PersistenceError(f"Event lookup failed: {e}") from e
        except (ValueError, DjangoValidationError):
            return None
