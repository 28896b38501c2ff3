# tests/conftest.py
"""
Pytest fixtures for Bebop tests.

The default catalog mirrors a small analytics setup:
- purchase: amount (numeric), sku (string), traced
- login: method (string), traces disabled
- signup: no parameters
- recognized claims: tenant, sub
"""

import copy

import pytest

from catalog.registry import load
from events.ingestion import IngestionPipeline
from events.service import EventService
from events.store import EventStore


CATALOG_CONFIG = {
    "event_types": [
        {
            "type": "purchase",
            "label": "Purchase",
            "trace": True,
            "params": [
                {"amount": "numeric"},
                {"name": "sku", "kind": "string", "label": "SKU"},
            ],
        },
        {
            "type": "login",
            "label": "Login",
            "trace": False,
            "params": [
                {"method": "string"},
            ],
        },
        {
            "type": "signup",
        },
    ],
    "auth": {
        "jwt": {
            "claims": ["tenant", "sub"],
        },
    },
}


# =============================================================================
# Catalog Fixtures
# =============================================================================

@pytest.fixture
def catalog_config():
    """A fresh copy of the default catalog configuration."""
    return copy.deepcopy(CATALOG_CONFIG)


@pytest.fixture
def catalog(catalog_config):
    return load(catalog_config)


@pytest.fixture
def free_form_catalog():
    """No event types configured: any event name is accepted."""
    return load({"claims": ["tenant"]})


# =============================================================================
# Store & Service Fixtures
# =============================================================================

@pytest.fixture
def store():
    return EventStore()


@pytest.fixture
def pipeline(catalog, store):
    return IngestionPipeline(catalog, store)


@pytest.fixture
def service(catalog, store):
    return EventService(catalog=catalog, store=store, feed_batch_size=10, feed_poll_interval=0.01)


@pytest.fixture
def purchases(db, service):
    """Three purchases for two tenants plus a login and a signup."""
    return {
        "small": service.ingest("purchase", {"amount": 10, "sku": "A-1"}, [], {"tenant": "acme"}),
        "medium": service.ingest("purchase", {"amount": 50, "sku": "B-2"}, [{"step": "cart"}], {"tenant": "acme"}),
        "large": service.ingest("purchase", {"amount": 120.5, "sku": "A-1"}, [], {"tenant": "globex"}),
        "login": service.ingest("login", {"method": "password"}, [], {"tenant": "acme", "sub": "u-1"}),
        "signup": service.ingest("signup", {}, [], {}),
    }
