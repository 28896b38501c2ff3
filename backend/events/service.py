# events/service.py
"""
EventService: the external interface of the event store.

Transports (HTTP collector, GraphQL, CLI) call into this facade. It wires
the catalog, the ingestion pipeline, the query executor and the change
feed together; store and catalog are passed in, so tests and alternative
deployments can supply their own.

Usage:
    from events.service import EventService

    service = EventService.from_settings()
    event_id = service.ingest("purchase", {"amount": 42}, [], {"tenant": "acme"})
    result = service.query({"params": {"purchase": {"amount": {"gte": 40}}}})
    result.to_dict()   # {"events": [...], "total": 1}
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from django.apps import apps

from catalog.registry import Catalog, CatalogHolder
from events.errors import ValidationError
from events.feed import ChangeFeed, ErrorCallback, EventCallback, Subscription
from events.filters import parse_filter
from events.ingestion import IngestionPipeline
from events.query import QueryExecutor, QueryResult
from events.serializers import CollectPayloadSerializer
from events.store import ASC, EventStore


logger = logging.getLogger(__name__)


class EventService:
    def __init__(
        self,
        catalog: Union[Catalog, CatalogHolder, None] = None,
        store: Optional[EventStore] = None,
        feed_batch_size: Optional[int] = None,
        feed_poll_interval: Optional[float] = None,
    ):
        if catalog is None or isinstance(catalog, Catalog):
            catalog = CatalogHolder(catalog)
        self.catalog_holder = catalog
        self.store = store or EventStore()
        self.pipeline = IngestionPipeline(self.catalog_holder, self.store)
        self.executor = QueryExecutor(self.store)
        self.feed_batch_size = feed_batch_size
        self.feed_poll_interval = feed_poll_interval

    @classmethod
    def from_settings(cls) -> "EventService":
        """Service bound to the catalog loaded by the catalog app at startup."""
        holder = apps.get_app_config("catalog").holder
        return cls(catalog=holder)

    @property
    def current_catalog(self) -> Catalog:
        return self.catalog_holder.current

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def ingest(
        self,
        event_name: str,
        parameters: Optional[Mapping[str, Any]] = None,
        trace: Optional[List[Any]] = None,
        claims: Optional[Mapping[str, Any]] = None,
    ) -> uuid.UUID:
        return self.pipeline.ingest(event_name, parameters, trace, claims)

    def ingest_payload(
        self,
        payload: Mapping[str, Any],
        claims: Optional[Mapping[str, Any]] = None,
    ) -> uuid.UUID:
        """
        Ingest a collector body: {"$event": ..., "$params": {...}, "$trace": [...]}.

        Raises:
            ValidationError: If the body or its contents are invalid
            PersistenceError: If the store fails
        """
        serializer = CollectPayloadSerializer(data=payload)
        if not serializer.is_valid():
            errors = [
                f"{field}: {' '.join(str(message) for message in messages)}"
                for field, messages in serializer.errors.items()
            ]
            event_name = payload.get("$event") if isinstance(payload, Mapping) else None
            raise ValidationError(event_name, errors)

        data = serializer.validated_data
        return self.ingest(
            data["event_name"],
            data.get("parameters"),
            data.get("traces"),
            claims,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def query(
        self,
        filter_expression: Optional[Mapping[str, Any]] = None,
        order: str = ASC,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> QueryResult:
        """
        Run a filter expression and return one page plus the total.

        `limit=None` returns every match from `offset` on; `limit=0`
        returns no events but still counts them.

        Raises:
            QueryError: If the filter or paging window is malformed
            PersistenceError: If the store fails
        """
        catalog = self.current_catalog
        predicate = parse_filter(filter_expression, catalog)
        return self.executor.execute(predicate, order=order, limit=limit, offset=offset)

    def subscribe(
        self,
        on_event: EventCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        return self.change_feed().subscribe(on_event, on_error)

    def change_feed(self) -> ChangeFeed:
        return ChangeFeed(
            self.store,
            batch_size=self.feed_batch_size,
            poll_interval=self.feed_poll_interval,
        )

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def catalog(self) -> Dict[str, Any]:
        return self.current_catalog.describe()

    def reload_catalog(self, config: Optional[Mapping[str, Any]]) -> Catalog:
        """
        Replace the catalog snapshot. A ConfigurationError leaves the
        previous snapshot in place.
        """
        catalog = self.catalog_holder.reload(config)
        logger.info(f"Catalog reloaded: {catalog!r}")
        return catalog
