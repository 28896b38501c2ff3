# tests/test_catalog.py
"""
Tests for the schema registry.

Tests cover:
- Loading event types, parameters and claims
- Configuration errors
- Flattened parameters and introspection
- YAML loading and snapshot reload
"""

import pytest

from catalog.loader import load_catalog_from_settings, load_config_file
from catalog.registry import NUMERIC, STRING, Catalog, CatalogHolder, load
from events.errors import ConfigurationError


# =============================================================================
# Loading
# =============================================================================

class TestLoad:
    def test_event_types_and_parameters(self, catalog):
        assert [et.type for et in catalog.event_types] == ["purchase", "login", "signup"]

        purchase = catalog.get_event_type("purchase")
        assert purchase.label == "Purchase"
        assert purchase.trace_enabled is True
        assert [p.name for p in purchase.parameters] == ["amount", "sku"]
        assert purchase.get_parameter("amount").is_numeric
        assert purchase.get_parameter("sku").label == "SKU"

    def test_parameter_kind_lookup(self, catalog):
        assert catalog.parameter_kind("purchase", "amount") == NUMERIC
        assert catalog.parameter_kind("purchase", "sku") == STRING
        assert catalog.parameter_kind("purchase", "method") is None
        assert catalog.parameter_kind("unknown", "amount") is None

    def test_zero_parameter_event_type(self, catalog):
        signup = catalog.get_event_type("signup")
        assert signup.parameters == ()
        assert signup.label == "signup"
        assert signup.trace_enabled is False

    def test_claims_under_auth_jwt(self, catalog):
        assert catalog.claim_names == frozenset({"tenant", "sub"})
        assert catalog.is_claim("tenant")
        assert not catalog.is_claim("email")

    def test_top_level_claims_and_camel_case_keys(self):
        catalog = load({
            "eventTypes": [{"type": "view", "params": [{"path": "string"}]}],
            "claims": ["org"],
        })
        assert catalog.has_event_type("view")
        assert catalog.claim_names == frozenset({"org"})

    def test_empty_config_is_free_form(self):
        for config in (None, {}, {"event_types": None}):
            catalog = load(config)
            assert catalog.is_free_form
            assert catalog.claim_names == frozenset()

    def test_load_is_pure(self, catalog_config):
        assert load(catalog_config).describe() == load(catalog_config).describe()


class TestConfigurationErrors:
    @pytest.mark.parametrize("config, message", [
        ({"event_types": {"type": "x"}}, "must be a list"),
        ({"event_types": [{"label": "no type"}]}, "'type' must be a non-empty string"),
        ({"event_types": [{"type": "a"}, {"type": "a"}]}, "duplicate event type"),
        ({"event_types": [{"type": "a", "params": {"x": "string"}}]}, "'params' of 'a' must be a list"),
        ({"event_types": [{"type": "a", "params": ["x"]}]}, "must be a mapping"),
        ({"event_types": [{"type": "a", "params": [{"x": "string", "y": "string"}]}]}, "expected"),
        ({"event_types": [{"type": "a", "params": [{"x": "date"}]}]}, "has kind 'date'"),
        ({"event_types": [{"type": "a", "params": [{"x": "string"}, {"x": "numeric"}]}]}, "duplicate parameter"),
        ({"event_types": [{"type": "a", "trace": "yes"}]}, "must be a boolean"),
        ({"claims": "tenant"}, "must be a list"),
        ({"claims": ["tenant", 3]}, "claim name must be a non-empty string"),
        (["not", "a", "mapping"], "must be a mapping"),
    ])
    def test_malformed_config(self, config, message):
        with pytest.raises(ConfigurationError, match=message):
            load(config)


# =============================================================================
# Flattened parameters and introspection
# =============================================================================

class TestFlatParameters:
    def test_first_kind_wins_and_owners_are_listed(self):
        catalog = load({
            "event_types": [
                {"type": "a", "params": [{"value": "numeric"}, {"ref": "string"}]},
                {"type": "b", "params": [{"value": "string"}]},
            ],
        })
        flat = {fp.name: fp for fp in catalog.flat_parameters}
        assert flat["value"].kind == NUMERIC
        assert flat["value"].event_types == ("a", "b")
        assert flat["ref"].event_types == ("a",)
        assert catalog.flat_parameter_kind("value") == NUMERIC
        assert catalog.flat_parameter_kind("missing") is None

    def test_describe(self, catalog):
        description = catalog.describe()

        assert description["claimNames"] == ["sub", "tenant"]
        purchase = description["eventTypes"][0]
        assert purchase == {
            "type": "purchase",
            "label": "Purchase",
            "trace": True,
            "params": [
                {"name": "amount", "kind": "numeric", "label": "amount"},
                {"name": "sku", "kind": "string", "label": "SKU"},
            ],
        }
        parameters = {p["name"]: p for p in description["parameters"]}
        assert parameters["method"]["eventTypes"] == ["login"]
        assert parameters["amount"]["kind"] == "numeric"

    def test_labels_fall_back_to_names(self, catalog):
        assert catalog.event_label("purchase") == "Purchase"
        assert catalog.event_label("other") == "other"
        assert catalog.parameter_label("sku") == "SKU"
        assert catalog.parameter_label("other") == "other"


# =============================================================================
# Sources and reload
# =============================================================================

class TestLoader:
    def test_load_yaml_file(self, tmp_path):
        path = tmp_path / "bebop.yml"
        path.write_text(
            "event_types:\n"
            "  - type: purchase\n"
            "    trace: true\n"
            "    params:\n"
            "      - amount: numeric\n"
            "claims: [tenant]\n"
        )
        config = load_config_file(path)
        assert config["claims"] == ["tenant"]

        catalog = load_catalog_from_settings(path)
        assert catalog.parameter_kind("purchase", "amount") == NUMERIC

    def test_empty_file_is_empty_config(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config_file(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("event_types: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_file(path)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config_file(path)

    def test_settings_inline_config(self, settings):
        settings.BEBOP_CONFIG_PATH = ""
        settings.BEBOP_EVENT_CONFIG = {"event_types": [{"type": "ping"}]}
        catalog = load_catalog_from_settings()
        assert catalog.has_event_type("ping")


class TestCatalogHolder:
    def test_reload_replaces_snapshot(self, catalog):
        holder = CatalogHolder(catalog)
        previous = holder.current

        holder.reload({"event_types": [{"type": "ping"}]})

        assert holder.current is not previous
        assert holder.current.has_event_type("ping")
        # The old snapshot is untouched
        assert previous.has_event_type("purchase")

    def test_failed_reload_keeps_previous_snapshot(self, catalog):
        holder = CatalogHolder(catalog)

        with pytest.raises(ConfigurationError):
            holder.reload({"event_types": "broken"})

        assert holder.current is catalog

    def test_default_is_free_form(self):
        assert CatalogHolder().current.is_free_form
        assert isinstance(CatalogHolder().current, Catalog)
