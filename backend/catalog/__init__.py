# catalog/__init__.py
"""
Catalog app - the typed event vocabulary for Bebop.

This app provides:
- Catalog: immutable snapshot of event types, parameters and claim names
- load(config): build a Catalog from a configuration mapping
- CatalogHolder: copy-on-write owner of the current snapshot
- check_catalog: management command to validate a catalog file

Usage:
    from catalog.registry import load

    catalog = load({
        "event_types": [
            {"type": "purchase", "trace": False, "params": [{"amount": "numeric"}]},
        ],
        "claims": ["tenant"],
    })
    catalog.parameter_kind("purchase", "amount")  # "numeric"
"""
