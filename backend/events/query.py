# events/query.py
"""
Query Executor.

Applies a predicate tree with ordering and a limit/offset window, and
returns the page together with the total number of matches (computed
without the window, so clients can paginate).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from events.compiler import compile_predicate
from events.errors import QueryError
from events.models import Event
from events.predicates import Predicate
from events.serializers import EventSerializer
from events.store import ASC, ORDERS, EventStore


logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    events: List[Event]
    total: int

    def to_dict(self) -> Dict[str, Any]:
        serializer = EventSerializer(self.events, many=True)
        return {
            'events': serializer.data,
            'total': self.total,
        }


def validate_window(order: Any, limit: Any, offset: Any) -> None:
    """
    Raises:
        QueryError: If order, limit or offset is out of range
    """
    if order not in ORDERS:
        raise QueryError(f"order must be one of {list(ORDERS)}, got {order!r}", "order")
    if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 0):
        raise QueryError(f"limit must be a non-negative integer, got {limit!r}", "limit")
    if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        raise QueryError(f"offset must be a non-negative integer, got {offset!r}", "offset")


class QueryExecutor:
    def __init__(self, store: EventStore):
        self.store = store

    def execute(
        self,
        predicate: Predicate,
        order: str = ASC,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> QueryResult:
        validate_window(order, limit, offset)
        events, total = self.store.query(compile_predicate(predicate), order, limit, offset)
        logger.debug(f"Query returned {len(events)} of {total} events (order={order}, limit={limit}, offset={offset})")
        return QueryResult(events=events, total=total)
