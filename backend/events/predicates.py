# events/predicates.py
"""
Storage-independent predicate tree.

Filter expressions are parsed (events.filters) into this small tree, and a
storage-specific compiler (events.compiler) lowers the tree to native query
conditions. Keeping the tree free of ORM types lets the parsing rules be
tested without a database.

Node types:
- And / Or / Not: boolean composition
- Compare: condition on a column of the event row itself
- ValueCondition: condition on the value column of a child row
- ChildExists: the event has a child row (params or claims) with the given
  name whose value satisfies every condition
- ChildGroupMatch: every member ChildExists is satisfied by the SAME event.
  Lowered as "group matching child rows by event, require the number of
  distinct matched names to equal the number of members", because child
  rows are stored one-row-per-name and cannot be matched with a plain join.

Operators: eq, neq, in, gte, lte (plus gt/lt and range bounds used
internally for createdAt second windows).
"""

from dataclasses import dataclass
from typing import Any, Tuple, Union


EQ = "eq"
NEQ = "neq"
IN = "in"
GTE = "gte"
LTE = "lte"
GT = "gt"
LT = "lt"

OPERATORS = (EQ, NEQ, IN, GTE, LTE, GT, LT)

# Event row columns a Compare node may reference
EVENT_NAME = "event_name"
CREATED_AT = "created_at"
EVENT_FIELDS = (EVENT_NAME, CREATED_AT)

# Child relations a ChildExists node may reference
PARAMS = "params"
CLAIMS = "claims"
CHILD_RELATIONS = (PARAMS, CLAIMS)


@dataclass(frozen=True)
class And:
    children: Tuple["Predicate", ...] = ()


@dataclass(frozen=True)
class Or:
    children: Tuple["Predicate", ...] = ()


@dataclass(frozen=True)
class Not:
    child: "Predicate"


@dataclass(frozen=True)
class Compare:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.field not in EVENT_FIELDS:
            raise ValueError(f"Unknown event field: {self.field}")
        if self.op not in OPERATORS:
            raise ValueError(f"Unknown operator: {self.op}")


@dataclass(frozen=True)
class ValueCondition:
    op: str
    value: Any
    numeric: bool = False

    def __post_init__(self):
        if self.op not in OPERATORS or self.op == NEQ:
            raise ValueError(f"Unsupported child value operator: {self.op}")


@dataclass(frozen=True)
class ChildExists:
    relation: str
    name: str
    conditions: Tuple[ValueCondition, ...] = ()

    def __post_init__(self):
        if self.relation not in CHILD_RELATIONS:
            raise ValueError(f"Unknown child relation: {self.relation}")


@dataclass(frozen=True)
class ChildGroupMatch:
    relation: str
    members: Tuple[ChildExists, ...]

    def __post_init__(self):
        if any(member.relation != self.relation for member in self.members):
            raise ValueError("ChildGroupMatch members must share one relation")
        names = [member.name for member in self.members]
        if len(set(names)) != len(names):
            raise ValueError("ChildGroupMatch members must have distinct names")


Predicate = Union[And, Or, Not, Compare, ChildExists, ChildGroupMatch]

MATCH_ALL = And(())


def all_of(*predicates: Predicate) -> Predicate:
    """AND the given predicates, dropping match-all terms and flattening."""
    children = []
    for predicate in predicates:
        if predicate == MATCH_ALL:
            continue
        if isinstance(predicate, And):
            children.extend(predicate.children)
        else:
            children.append(predicate)
    if len(children) == 1:
        return children[0]
    return And(tuple(children))


def any_of(*predicates: Predicate) -> Predicate:
    """OR the given predicates. An empty OR matches nothing."""
    children = []
    for predicate in predicates:
        if predicate == MATCH_ALL:
            return MATCH_ALL
        if isinstance(predicate, Or):
            children.extend(predicate.children)
        else:
            children.append(predicate)
    if len(children) == 1:
        return children[0]
    return Or(tuple(children))


def negate(predicate: Predicate) -> Predicate:
    if isinstance(predicate, Not):
        return predicate.child
    return Not(predicate)
