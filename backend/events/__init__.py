"""
Events app - dynamic event store and query engine for Bebop.

This app provides:
- Event, EventParameter, EventTrace, EventClaim: append-only records
- EventStore: atomic writes and eager-loading reads
- IngestionPipeline: validation against the catalog before writing
- Filter parser and predicate compiler: filter expressions -> Django Q
- QueryExecutor: ordering, pagination and total counts
- ChangeFeed: watermark-driven polling subscription
- EventService: the facade that transports call

The catalog (see the catalog app) is THE CONTRACT for event names and
parameter kinds. Events are validated against it at ingestion time.

Usage:
    from events.service import EventService

    service = EventService.from_settings()
    service.ingest(
        "purchase",
        parameters={"amount": 42, "sku": "A-1"},
        trace=[{"step": "checkout"}],
        claims={"tenant": "acme"},
    )

    result = service.query(
        {"params": {"purchase": {"amount": {"gte": 40}}}},
        order="desc",
        limit=20,
    )

Handling validation errors:
    try:
        service.ingest(...)
    except ValidationError as e:
        # e.event_name - the event that failed
        # e.errors - list of validation error messages
        logger.error(f"Invalid event payload: {e}")
"""
