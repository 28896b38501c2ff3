# events/filters.py
"""
Filter expression parser.

Turns a structured filter expression into a predicate tree
(events.predicates), resolving parameter kinds through the catalog.

Expression keys (all optional, combined with AND):

    eventName   "login" | {"eq"|"neq": str} | {"in": [str, ...]}
    eventType   "purchase" | {"eq": str}              (alias of eventName)
    createdAt   {"eq"|"neq"|"gte"|"lte": unix seconds}
    claims      {claim: {"eq"|"neq": str}}
    params      {event_type: {param: {"eq"|"neq"|"gte"|"lte": value}}}
    paramsFlat  {param: {"eq"|"neq"|"in"|"gte"|"lte": value}}
    and / or    [expression, ...]
    not         expression

A bare scalar in place of an operator mapping means "eq".

Parameter and claim names the catalog does not know are inert: they add
no condition. Anything structurally wrong raises QueryError.
"""

import math
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from catalog.registry import Catalog, NUMERIC, STRING
from events.errors import QueryError
from events.predicates import (
    CLAIMS,
    CREATED_AT,
    EVENT_NAME,
    EQ,
    GTE,
    IN,
    LT,
    LTE,
    MATCH_ALL,
    NEQ,
    PARAMS,
    ChildExists,
    ChildGroupMatch,
    Compare,
    Not,
    Predicate,
    ValueCondition,
    all_of,
    any_of,
    negate,
)
from events.serialization import epoch_second_bounds, is_number, to_param_text


EVENT_NAME_OPS = (EQ, NEQ, IN)
EVENT_TYPE_OPS = (EQ,)
CREATED_AT_OPS = (EQ, NEQ, GTE, LTE)
CLAIM_OPS = (EQ, NEQ)
PARAM_OPS = (EQ, NEQ, GTE, LTE)
FLAT_PARAM_OPS = (EQ, NEQ, IN, GTE, LTE)

FILTER_KEYS = (
    "eventName",
    "eventType",
    "createdAt",
    "claims",
    "params",
    "paramsFlat",
    "and",
    "or",
    "not",
)


def parse_filter(expression: Optional[Mapping[str, Any]], catalog: Catalog) -> Predicate:
    """
    Parse a filter expression into a predicate tree.

    None or an empty mapping matches every event.

    Raises:
        QueryError: If the expression is malformed
    """
    if expression is None:
        return MATCH_ALL
    return FilterParser(catalog).parse(expression)


class FilterParser:
    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    # -------------------------------------------------------------------------
    # Expression
    # -------------------------------------------------------------------------

    def parse(self, expression: Any, path: str = "where") -> Predicate:
        if not isinstance(expression, Mapping):
            raise QueryError(f"expected a mapping, got {type(expression).__name__}", path)

        unknown = set(expression) - set(FILTER_KEYS)
        if unknown:
            raise QueryError(
                f"unknown filter keys {sorted(map(str, unknown))}; expected {list(FILTER_KEYS)}",
                path,
            )

        handlers: Dict[str, Callable[[Any, str], Predicate]] = {
            "eventName": self._event_name,
            "eventType": self._event_type,
            "createdAt": self._created_at,
            "claims": self._claims,
            "params": self._params,
            "paramsFlat": self._params_flat,
            "and": self._and,
            "or": self._or,
            "not": self._not,
        }

        fragments = []
        for key in FILTER_KEYS:
            value = expression.get(key)
            if value is None:
                continue
            fragments.append(handlers[key](value, f"{path}.{key}"))
        return all_of(*fragments)

    def _and(self, value: Any, path: str) -> Predicate:
        items = self._expression_list(value, path)
        return all_of(*(self.parse(item, f"{path}[{i}]") for i, item in enumerate(items)))

    def _or(self, value: Any, path: str) -> Predicate:
        items = self._expression_list(value, path)
        return any_of(*(self.parse(item, f"{path}[{i}]") for i, item in enumerate(items)))

    def _not(self, value: Any, path: str) -> Predicate:
        return negate(self.parse(value, path))

    @staticmethod
    def _expression_list(value: Any, path: str) -> Sequence[Any]:
        if not isinstance(value, (list, tuple)):
            raise QueryError(f"expected a list of expressions, got {type(value).__name__}", path)
        return value

    # -------------------------------------------------------------------------
    # Operator mappings
    # -------------------------------------------------------------------------

    @staticmethod
    def _operators(value: Any, path: str, allowed: Sequence[str]) -> Dict[str, Any]:
        """Normalize a condition to {op: value}; a bare scalar means eq."""
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return {EQ: value}
        if not isinstance(value, Mapping):
            raise QueryError(f"expected a condition mapping, got {type(value).__name__}", path)
        if not value:
            raise QueryError("condition must contain at least one operator", path)
        unknown = set(value) - set(allowed)
        if unknown:
            raise QueryError(
                f"unsupported operators {sorted(map(str, unknown))}; allowed: {list(allowed)}",
                path,
            )
        return {op: operand for op, operand in value.items() if operand is not None}

    @staticmethod
    def _string(value: Any, path: str) -> str:
        if not isinstance(value, str):
            raise QueryError(f"expected a string, got {type(value).__name__}", path)
        return value

    @staticmethod
    def _string_list(value: Any, path: str) -> tuple:
        if not isinstance(value, (list, tuple)):
            raise QueryError(f"expected a list, got {type(value).__name__}", path)
        for index, item in enumerate(value):
            if not isinstance(item, str):
                raise QueryError(f"expected a string, got {type(item).__name__}", f"{path}[{index}]")
        return tuple(value)

    @staticmethod
    def _number(value: Any, path: str) -> float:
        if is_number(value):
            number = float(value)
        elif isinstance(value, str):
            try:
                number = float(value)
            except ValueError:
                raise QueryError(f"expected a number, got {value!r}", path)
        else:
            raise QueryError(f"expected a number, got {type(value).__name__}", path)
        if not math.isfinite(number):
            raise QueryError(f"expected a finite number, got {value!r}", path)
        return number

    @staticmethod
    def _text(value: Any, path: str) -> str:
        """Parameter values compare as their stored text form."""
        if isinstance(value, str) or is_number(value):
            try:
                return to_param_text(value)
            except ValueError as e:
                raise QueryError(str(e), path)
        raise QueryError(f"expected a string or number, got {type(value).__name__}", path)

    # -------------------------------------------------------------------------
    # Event row conditions
    # -------------------------------------------------------------------------

    def _event_name(self, value: Any, path: str) -> Predicate:
        fragments = []
        for op, operand in self._operators(value, path, EVENT_NAME_OPS).items():
            if op == IN:
                fragments.append(Compare(EVENT_NAME, IN, self._string_list(operand, f"{path}.in")))
            else:
                fragments.append(Compare(EVENT_NAME, op, self._string(operand, f"{path}.{op}")))
        return all_of(*fragments)

    def _event_type(self, value: Any, path: str) -> Predicate:
        operators = self._operators(value, path, EVENT_TYPE_OPS)
        if EQ not in operators:
            return MATCH_ALL
        return Compare(EVENT_NAME, EQ, self._string(operators[EQ], f"{path}.eq"))

    def _created_at(self, value: Any, path: str) -> Predicate:
        if not isinstance(value, Mapping):
            raise QueryError(f"expected a condition mapping, got {type(value).__name__}", path)
        fragments = []
        for op, operand in self._operators(value, path, CREATED_AT_OPS).items():
            seconds = self._number(operand, f"{path}.{op}")
            try:
                bounds = epoch_second_bounds(seconds)
            except (OverflowError, OSError, ValueError):
                raise QueryError(f"timestamp out of range: {operand!r}", f"{path}.{op}")
            start, end = bounds["start"], bounds["end"]

            if op == EQ:
                fragments.append(all_of(Compare(CREATED_AT, GTE, start), Compare(CREATED_AT, LT, end)))
            elif op == NEQ:
                fragments.append(any_of(Compare(CREATED_AT, LT, start), Compare(CREATED_AT, GTE, end)))
            elif op == GTE:
                fragments.append(Compare(CREATED_AT, GTE, start))
            elif op == LTE:
                fragments.append(Compare(CREATED_AT, LT, end))
        return all_of(*fragments)

    # -------------------------------------------------------------------------
    # Claims
    # -------------------------------------------------------------------------

    def _claims(self, value: Any, path: str) -> Predicate:
        if not isinstance(value, Mapping):
            raise QueryError(f"expected a mapping of claim conditions, got {type(value).__name__}", path)

        fragments = []
        for name, condition in value.items():
            claim_path = f"{path}.{name}"
            operators = self._operators(condition, claim_path, CLAIM_OPS)
            if not self.catalog.is_claim(name):
                continue
            for op, operand in operators.items():
                match = ChildExists(
                    CLAIMS,
                    name,
                    (ValueCondition(EQ, self._string(operand, f"{claim_path}.{op}")),),
                )
                fragments.append(match if op == EQ else Not(match))
        return all_of(*fragments)

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def _params(self, value: Any, path: str) -> Predicate:
        if not isinstance(value, Mapping):
            raise QueryError(f"expected a mapping of event types, got {type(value).__name__}", path)

        blocks = []
        for event_type, conditions in value.items():
            type_path = f"{path}.{event_type}"
            if not isinstance(event_type, str):
                raise QueryError("event type keys must be strings", path)

            def kind_for(name, _type=event_type):
                if self.catalog.is_free_form:
                    return STRING
                return self.catalog.parameter_kind(_type, name)

            blocks.append(all_of(
                Compare(EVENT_NAME, EQ, event_type),
                self._param_block(conditions, type_path, PARAM_OPS, kind_for),
            ))
        # An event has exactly one name, so blocks for different types are
        # alternatives rather than simultaneous requirements.
        if not blocks:
            return MATCH_ALL
        return any_of(*blocks)

    def _params_flat(self, value: Any, path: str) -> Predicate:
        def kind_for(name):
            if self.catalog.is_free_form:
                return STRING
            return self.catalog.flat_parameter_kind(name)

        return self._param_block(value, path, FLAT_PARAM_OPS, kind_for)

    def _param_block(
        self,
        conditions: Any,
        path: str,
        allowed: Sequence[str],
        kind_for: Callable[[str], Optional[str]],
    ) -> Predicate:
        """
        Compile {param: condition} so every positive condition matches the
        same event; neq conditions become negated existence checks.
        """
        if not isinstance(conditions, Mapping):
            raise QueryError(f"expected a mapping of parameter conditions, got {type(conditions).__name__}", path)

        members = []
        negatives = []
        for name, condition in conditions.items():
            param_path = f"{path}.{name}"
            operators = self._operators(condition, param_path, allowed)
            kind = kind_for(name)
            value_conditions = []
            exclusions = []

            for op, operand in operators.items():
                op_path = f"{param_path}.{op}"
                if op in (GTE, LTE):
                    value_conditions.append(ValueCondition(op, self._number(operand, op_path), numeric=True))
                elif op == IN:
                    items = operand if isinstance(operand, (list, tuple)) else None
                    if items is None:
                        raise QueryError(f"expected a list, got {type(operand).__name__}", op_path)
                    texts = tuple(self._text(item, f"{op_path}[{i}]") for i, item in enumerate(items))
                    value_conditions.append(ValueCondition(IN, texts))
                else:
                    if kind == NUMERIC:
                        equality = ValueCondition(EQ, self._number(operand, op_path), numeric=True)
                    else:
                        equality = ValueCondition(EQ, self._text(operand, op_path))
                    if op == EQ:
                        value_conditions.append(equality)
                    else:
                        exclusions.append(equality)

            if kind is None:
                # Not a declared parameter: validated, but adds no condition
                continue

            if value_conditions:
                members.append(ChildExists(PARAMS, name, tuple(value_conditions)))
            for equality in exclusions:
                negatives.append(Not(ChildExists(PARAMS, name, (equality,))))

        group = ChildGroupMatch(PARAMS, tuple(members)) if members else MATCH_ALL
        return all_of(group, *negatives)
