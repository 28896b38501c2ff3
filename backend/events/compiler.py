# events/compiler.py
"""
Lowers a predicate tree (events.predicates) to a Django Q object over Event.

Child conditions become `id IN (subquery)` filters on the child tables.
A ChildGroupMatch groups the matching child rows by event and keeps the
events where the number of distinct matched names equals the number of
members, so all conditions are satisfied by the same event. Negation
wraps the subquery, so an event with no such child row counts as a
non-match for the positive condition and a match for its negation.

Numeric conditions compare the float copy stored with numeric parameter
values, so string-valued rows never take part in a numeric comparison.
"""

from functools import reduce
from operator import and_, or_

from django.db.models import Count, Q

from events.models import EventClaim, EventParameter
from events.predicates import (
    CLAIMS,
    EQ,
    GT,
    GTE,
    IN,
    LT,
    LTE,
    NEQ,
    PARAMS,
    And,
    ChildExists,
    ChildGroupMatch,
    Compare,
    Not,
    Or,
    Predicate,
    ValueCondition,
)


# Explicit always-true / always-false conditions. An empty Q() is dropped
# when combined with | and ~, so it cannot stand in for either.
MATCH_ALL_Q = Q(pk__isnull=False)
MATCH_NONE_Q = Q(pk__in=[])

LOOKUPS = {
    EQ: "exact",
    IN: "in",
    GTE: "gte",
    LTE: "lte",
    GT: "gt",
    LT: "lt",
}

# relation -> (model, name column, value column)
CHILD_TABLES = {
    PARAMS: (EventParameter, "param_name", "param_value"),
    CLAIMS: (EventClaim, "claim_name", "claim_value"),
}

NUMERIC_COLUMN = "numeric_value"


def compile_predicate(predicate: Predicate) -> Q:
    """Return a Q object selecting the events matched by `predicate`."""
    if isinstance(predicate, And):
        if not predicate.children:
            return MATCH_ALL_Q
        return reduce(and_, (compile_predicate(child) for child in predicate.children))

    if isinstance(predicate, Or):
        if not predicate.children:
            return MATCH_NONE_Q
        return reduce(or_, (compile_predicate(child) for child in predicate.children))

    if isinstance(predicate, Not):
        return ~compile_predicate(predicate.child)

    if isinstance(predicate, Compare):
        if predicate.op == NEQ:
            return ~Q(**{predicate.field: predicate.value})
        return Q(**{f"{predicate.field}__{LOOKUPS[predicate.op]}": predicate.value})

    if isinstance(predicate, ChildExists):
        return _compile_group(predicate.relation, (predicate,))

    if isinstance(predicate, ChildGroupMatch):
        if not predicate.members:
            return MATCH_ALL_Q
        return _compile_group(predicate.relation, predicate.members)

    raise TypeError(f"Unsupported predicate node: {type(predicate).__name__}")


def _compile_group(relation, members) -> Q:
    model, name_column, value_column = CHILD_TABLES[relation]

    member_filters = [_member_filter(member, name_column, value_column) for member in members]
    rows = model.objects.filter(reduce(or_, member_filters))

    if len(members) == 1:
        return Q(id__in=rows.values("event_id"))

    matched = (
        rows.values("event_id")
        .annotate(matched_names=Count(name_column, distinct=True))
        .filter(matched_names=len(members))
        .values("event_id")
    )
    return Q(id__in=matched)


def _member_filter(member: ChildExists, name_column: str, value_column: str) -> Q:
    conditions = [Q(**{name_column: member.name})]
    conditions.extend(_value_filter(condition, value_column) for condition in member.conditions)
    return reduce(and_, conditions)


def _value_filter(condition: ValueCondition, value_column: str) -> Q:
    column = NUMERIC_COLUMN if condition.numeric else value_column
    return Q(**{f"{column}__{LOOKUPS[condition.op]}": condition.value})
