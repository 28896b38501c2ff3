# events/errors.py
"""
Error taxonomy for the event store.

- ConfigurationError: malformed catalog input. Fatal at load time and
  surfaced to the operator; never recovered at runtime.
- ValidationError: bad ingest payload. Surfaced to the caller per request;
  store state is untouched.
- PersistenceError: storage failure. For writes the event is guaranteed
  absent (never partially written).
- QueryError: malformed filter expression. Raised before any store access.

The core never retries ingestion; retry policy belongs to the caller.
"""

from typing import Any, Dict, List, Optional


class BebopError(Exception):
    """
    Base class for all event store errors.

    All errors carry:
    - message: Human readable description
    - details: Additional context for debugging
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary for logging/diagnostics."""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self),
            'details': self.details,
        }


class ConfigurationError(BebopError):
    """The catalog configuration is malformed."""
    pass


class ValidationError(BebopError):
    """
    Raised when an ingest payload fails validation.

    Carries the event name and the full list of problems found, so the
    caller can report all of them at once.
    """

    def __init__(self, event_name: Any, errors: List[str]):
        self.event_name = event_name
        self.errors = errors
        error_list = "\n  - ".join(errors)
        super().__init__(
            f"Invalid payload for event '{event_name}':\n  - {error_list}",
            details={'event_name': event_name, 'errors': errors},
        )


class PersistenceError(BebopError):
    """
    The underlying storage failed.

    Wraps the original database error as __cause__.
    """
    pass


class QueryError(BebopError):
    """The filter expression or paging window is malformed."""

    def __init__(self, message: str, path: str = "", details: Optional[Dict[str, Any]] = None):
        self.path = path
        details = dict(details or {})
        if path:
            details['path'] = path
            message = f"{path}: {message}"
        super().__init__(message, details)
