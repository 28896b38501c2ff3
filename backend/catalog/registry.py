# catalog/registry.py
"""
Schema registry for Bebop.

Turns the operator-supplied configuration into THE CATALOG: the typed
vocabulary of event types, their parameters and the recognized identity
claims. Ingestion validates against it and the filter parser resolves
parameter kinds through it.

A Catalog is immutable once built. Configuration reloads build a new
Catalog and swap it into the CatalogHolder wholesale, so readers holding
the old snapshot never observe a half-updated catalog.

Accepted configuration (snake_case or camelCase keys):

    event_types:
      - type: purchase
        label: Purchase
        trace: true
        params:
          - amount: numeric          # shorthand {name: kind}
          - name: sku                # explicit form
            kind: string
            label: SKU
    claims: [tenant, sub]            # or auth.jwt.claims
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from events.errors import ConfigurationError


logger = logging.getLogger(__name__)


NUMERIC = "numeric"
STRING = "string"
PARAMETER_KINDS = (NUMERIC, STRING)


@dataclass(frozen=True)
class ParameterDefinition:
    name: str
    kind: str
    label: str

    @property
    def is_numeric(self) -> bool:
        return self.kind == NUMERIC


@dataclass(frozen=True)
class EventTypeDefinition:
    type: str
    label: str
    trace_enabled: bool
    parameters: Tuple[ParameterDefinition, ...] = ()

    def get_parameter(self, name: str) -> Optional[ParameterDefinition]:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None


@dataclass(frozen=True)
class FlatParameter:
    """A parameter name seen across event types (first kind wins)."""

    name: str
    kind: str
    label: str
    event_types: Tuple[str, ...]


class Catalog:
    """
    Read-only snapshot of the configured event vocabulary.

    Safe for concurrent readers: nothing is mutated after __init__.
    """

    def __init__(
        self,
        event_types: Tuple[EventTypeDefinition, ...] = (),
        claim_names: FrozenSet[str] = frozenset(),
    ):
        self._event_types = tuple(event_types)
        self._by_type = {et.type: et for et in self._event_types}
        self._claim_names = frozenset(claim_names)
        self._flat = self._flatten(self._event_types)

    @staticmethod
    def _flatten(event_types) -> Dict[str, FlatParameter]:
        flat: Dict[str, FlatParameter] = {}
        owners: Dict[str, List[str]] = {}
        for event_type in event_types:
            for parameter in event_type.parameters:
                owners.setdefault(parameter.name, []).append(event_type.type)
                if parameter.name not in flat:
                    flat[parameter.name] = parameter
        return {
            name: FlatParameter(
                name=name,
                kind=parameter.kind,
                label=parameter.label,
                event_types=tuple(owners[name]),
            )
            for name, parameter in flat.items()
        }

    @property
    def event_types(self) -> Tuple[EventTypeDefinition, ...]:
        return self._event_types

    @property
    def claim_names(self) -> FrozenSet[str]:
        return self._claim_names

    @property
    def flat_parameters(self) -> Tuple[FlatParameter, ...]:
        return tuple(self._flat.values())

    @property
    def is_free_form(self) -> bool:
        """No event types configured: any event name is accepted."""
        return not self._event_types

    def get_event_type(self, type_name: str) -> Optional[EventTypeDefinition]:
        return self._by_type.get(type_name)

    def has_event_type(self, type_name: str) -> bool:
        return type_name in self._by_type

    def parameter_kind(self, type_name: str, param_name: str) -> Optional[str]:
        event_type = self._by_type.get(type_name)
        if event_type is None:
            return None
        parameter = event_type.get_parameter(param_name)
        return parameter.kind if parameter else None

    def flat_parameter_kind(self, param_name: str) -> Optional[str]:
        flat = self._flat.get(param_name)
        return flat.kind if flat else None

    def is_claim(self, claim_name: str) -> bool:
        return claim_name in self._claim_names

    def event_label(self, type_name: str) -> str:
        event_type = self._by_type.get(type_name)
        return event_type.label if event_type else type_name

    def parameter_label(self, param_name: str) -> str:
        flat = self._flat.get(param_name)
        return flat.label if flat else param_name

    def describe(self) -> Dict[str, Any]:
        """Introspection document for transport-layer schema generation."""
        return {
            "eventTypes": [
                {
                    "type": et.type,
                    "label": et.label,
                    "trace": et.trace_enabled,
                    "params": [
                        {"name": p.name, "kind": p.kind, "label": p.label}
                        for p in et.parameters
                    ],
                }
                for et in self._event_types
            ],
            "parameters": [
                {
                    "name": fp.name,
                    "label": fp.label,
                    "kind": fp.kind,
                    "eventTypes": list(fp.event_types),
                }
                for fp in self._flat.values()
            ],
            "claimNames": sorted(self._claim_names),
        }

    def __repr__(self):
        return (
            f"Catalog({len(self._event_types)} event types, "
            f"{len(self._flat)} parameters, {len(self._claim_names)} claims)"
        )


# =============================================================================
# Loading
# =============================================================================

def _get(mapping: Mapping, *keys, default=None):
    """Read the first present key (snake_case and camelCase spellings)."""
    for key in keys:
        if key in mapping:
            return mapping[key]
    return default


def _load_parameter(entry: Any, path: str) -> ParameterDefinition:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(
            f"{path}: parameter entry must be a mapping, got {type(entry).__name__}"
        )

    if "name" in entry and "kind" in entry:
        name = entry["name"]
        kind = entry["kind"]
        label = entry.get("label") or name
    elif len(entry) == 1:
        name, kind = next(iter(entry.items()))
        label = name
    else:
        raise ConfigurationError(
            f"{path}: expected {{name: kind}} or {{name, kind, label}}, got keys {sorted(entry)}"
        )

    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"{path}: parameter name must be a non-empty string")
    if kind not in PARAMETER_KINDS:
        raise ConfigurationError(
            f"{path}: parameter '{name}' has kind {kind!r}; expected one of {list(PARAMETER_KINDS)}"
        )
    if not isinstance(label, str):
        raise ConfigurationError(f"{path}: label of parameter '{name}' must be a string")

    return ParameterDefinition(name=name, kind=kind, label=label)


def _load_event_type(entry: Any, path: str) -> EventTypeDefinition:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"{path}: event type must be a mapping")

    type_name = entry.get("type")
    if not isinstance(type_name, str) or not type_name.strip():
        raise ConfigurationError(f"{path}: 'type' must be a non-empty string")

    trace = entry.get("trace", False)
    if not isinstance(trace, bool):
        raise ConfigurationError(f"{path}: 'trace' of '{type_name}' must be a boolean")

    label = entry.get("label") or type_name
    if not isinstance(label, str):
        raise ConfigurationError(f"{path}: 'label' of '{type_name}' must be a string")

    raw_params = entry.get("params", [])
    if raw_params is None:
        raw_params = []
    if not isinstance(raw_params, list):
        raise ConfigurationError(f"{path}: 'params' of '{type_name}' must be a list")

    parameters = []
    seen = set()
    for index, raw in enumerate(raw_params):
        parameter = _load_parameter(raw, f"{path}.params[{index}]")
        if parameter.name in seen:
            raise ConfigurationError(
                f"{path}: duplicate parameter '{parameter.name}' in event type '{type_name}'"
            )
        seen.add(parameter.name)
        parameters.append(parameter)

    return EventTypeDefinition(
        type=type_name,
        label=label,
        trace_enabled=trace,
        parameters=tuple(parameters),
    )


def _load_claim_names(config: Mapping) -> FrozenSet[str]:
    claims = _get(config, "claims")
    if claims is None:
        auth = config.get("auth") or {}
        jwt = auth.get("jwt") if isinstance(auth, Mapping) else None
        claims = jwt.get("claims") if isinstance(jwt, Mapping) else None
    if claims is None:
        return frozenset()

    if not isinstance(claims, list):
        raise ConfigurationError("claims: must be a list of claim names")
    for index, claim in enumerate(claims):
        if not isinstance(claim, str) or not claim.strip():
            raise ConfigurationError(f"claims[{index}]: claim name must be a non-empty string")
    return frozenset(claims)


def load(config: Optional[Mapping[str, Any]]) -> Catalog:
    """
    Build a Catalog from a configuration mapping.

    Pure function: the same config always yields an equivalent catalog.

    Raises:
        ConfigurationError: If the configuration is malformed
    """
    if config is None:
        config = {}
    if not isinstance(config, Mapping):
        raise ConfigurationError(
            f"Catalog configuration must be a mapping, got {type(config).__name__}"
        )

    raw_types = _get(config, "event_types", "eventTypes", default=[])
    if raw_types is None:
        raw_types = []
    if not isinstance(raw_types, list):
        raise ConfigurationError("event_types: must be a list")

    event_types = []
    seen = set()
    for index, raw in enumerate(raw_types):
        event_type = _load_event_type(raw, f"event_types[{index}]")
        if event_type.type in seen:
            raise ConfigurationError(f"event_types[{index}]: duplicate event type '{event_type.type}'")
        seen.add(event_type.type)
        event_types.append(event_type)

    catalog = Catalog(
        event_types=tuple(event_types),
        claim_names=_load_claim_names(config),
    )
    logger.info(f"Loaded catalog: {catalog!r}")
    return catalog


class CatalogHolder:
    """
    Owner of the current catalog snapshot.

    Reload builds a complete new Catalog first and only then swaps the
    reference, so a failed reload leaves the previous snapshot in place.
    """

    def __init__(self, catalog: Optional[Catalog] = None):
        self._catalog = catalog or Catalog()
        self._lock = threading.Lock()

    @property
    def current(self) -> Catalog:
        return self._catalog

    def replace(self, catalog: Catalog) -> Catalog:
        with self._lock:
            previous = self._catalog
            self._catalog = catalog
        return previous

    def reload(self, config: Optional[Mapping[str, Any]]) -> Catalog:
        catalog = load(config)
        self.replace(catalog)
        return catalog
