# events/ingestion.py
"""
Event ingestion.

All events enter the store through IngestionPipeline.ingest(), which:
1. Validates the payload against the current catalog snapshot
2. Drops traces for event types that have tracing disabled
3. Keeps only recognized claims
4. Writes the event and its children atomically (events.store)

Validation collects every problem before raising, so the caller gets one
ValidationError listing all of them. Nothing is written when validation
fails.

Validation rules:
- The event name is a non-empty string. When event types are configured
  it must be one of them.
- Parameters are a mapping of string names to strings or finite numbers.
  A declared numeric parameter must be a number and a declared string
  parameter must be a string. Undeclared parameters are stored as given.
- Traces are a list of JSON-serializable values.
- Claims are a mapping; values are stored as strings, None values are
  skipped.
"""

import json
import logging
import math
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from catalog.registry import Catalog, CatalogHolder, NUMERIC, STRING
from events.errors import ValidationError
from events.serialization import is_number
from events.store import EventStore


logger = logging.getLogger(__name__)


def validate_parameters(catalog: Catalog, event_name: str, parameters: Any, errors: List[str]) -> Dict[str, Any]:
    if parameters is None:
        return {}
    if not isinstance(parameters, Mapping):
        errors.append(f"Parameters must be a mapping, got {type(parameters).__name__}")
        return {}

    event_type = catalog.get_event_type(event_name)
    cleaned = {}
    for name, value in parameters.items():
        if not isinstance(name, str) or not name:
            errors.append(f"Parameter names must be non-empty strings, got {name!r}")
            continue

        if not (isinstance(value, str) or is_number(value)):
            errors.append(
                f"Parameter '{name}': expected a string or number, got {type(value).__name__}"
            )
            continue
        if is_number(value) and not math.isfinite(value):
            errors.append(f"Parameter '{name}': non-finite number {value!r}")
            continue

        definition = event_type.get_parameter(name) if event_type else None
        if definition is not None:
            if definition.kind == NUMERIC and not is_number(value):
                errors.append(f"Parameter '{name}': expected numeric, got {type(value).__name__}")
                continue
            if definition.kind == STRING and not isinstance(value, str):
                errors.append(f"Parameter '{name}': expected string, got {type(value).__name__}")
                continue

        cleaned[name] = value
    return cleaned


def validate_traces(traces: Any, errors: List[str]) -> List[Any]:
    if traces is None:
        return []
    if not isinstance(traces, (list, tuple)):
        errors.append(f"Trace must be a list, got {type(traces).__name__}")
        return []

    cleaned = []
    for index, trace in enumerate(traces):
        try:
            json.dumps(trace, allow_nan=False)
        except (TypeError, ValueError) as e:
            errors.append(f"Trace [{index}] is not JSON serializable: {e}")
            continue
        cleaned.append(trace)
    return cleaned


def filter_claims(catalog: Catalog, claims: Any, errors: List[str]) -> Dict[str, str]:
    if claims is None:
        return {}
    if not isinstance(claims, Mapping):
        errors.append(f"Claims must be a mapping, got {type(claims).__name__}")
        return {}
    return {
        name: str(value)
        for name, value in claims.items()
        if value is not None and catalog.is_claim(name)
    }


class IngestionPipeline:
    """Validates events against the catalog and writes them through the store."""

    def __init__(self, catalog: Union[Catalog, CatalogHolder], store: Optional[EventStore] = None):
        if isinstance(catalog, Catalog):
            catalog = CatalogHolder(catalog)
        self.catalog_holder = catalog
        self.store = store or EventStore()

    @property
    def catalog(self) -> Catalog:
        return self.catalog_holder.current

    def ingest(
        self,
        event_name: Any,
        parameters: Optional[Mapping[str, Any]] = None,
        trace: Optional[List[Any]] = None,
        claims: Optional[Mapping[str, Any]] = None,
    ) -> uuid.UUID:
        """
        Validate and store one event.

        Returns:
            The new event id

        Raises:
            ValidationError: If the payload does not match the catalog
            PersistenceError: If the store fails (nothing is written)
        """
        # One snapshot for the whole call, even if a reload happens meanwhile
        catalog = self.catalog
        errors: List[str] = []

        if not isinstance(event_name, str) or not event_name:
            raise ValidationError(event_name, ["Event name must be a non-empty string"])

        if not catalog.is_free_form and not catalog.has_event_type(event_name):
            errors.append(
                f"Unknown event type '{event_name}'. "
                f"Expected one of: {sorted(t.type for t in catalog.event_types)}"
            )

        cleaned_parameters = validate_parameters(catalog, event_name, parameters, errors)
        cleaned_traces = validate_traces(trace, errors)
        cleaned_claims = filter_claims(catalog, claims, errors)

        if errors:
            raise ValidationError(event_name, errors)

        event_type = catalog.get_event_type(event_name)
        if event_type is not None and not event_type.trace_enabled and cleaned_traces:
            logger.debug(f"Dropping {len(cleaned_traces)} trace(s) for '{event_name}': tracing disabled")
            cleaned_traces = []

        event_id = self.store.insert_event(
            event_name,
            parameters=cleaned_parameters,
            traces=cleaned_traces,
            claims=cleaned_claims,
        )
        logger.info(
            f"Stored event {event_id} ({event_name}): "
            f"{len(cleaned_parameters)} params, {len(cleaned_traces)} traces, {len(cleaned_claims)} claims",
            extra={"event_id": str(event_id), "event_name": event_name},
        )
        return event_id
