"""
Compiled predicate expressions.

A predicate is compiled once from search criteria and then rendered two ways
without recompiling:

* ``to_query()`` returns an Elasticsearch/OpenSearch query DSL fragment.
* ``evaluate(resource)`` tests a resource held in memory.

Both renderings agree for documents indexed with keyword sub-fields: a
``multi_match`` or ``term`` on a keyword field is an exact match on the
field's value, which is what ``evaluate`` does after stripping the
``.keyword`` suffix from the field name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, Mapping

KEYWORD_SUFFIX = ".keyword"


def _strip_keyword(field: str) -> str:
    if field.endswith(KEYWORD_SUFFIX):
        return field[: -len(KEYWORD_SUFFIX)]
    return field


def _iter_values(node: Any, parts: list[str]) -> Iterator[Any]:
    if isinstance(node, (list, tuple)):
        for item in node:
            yield from _iter_values(item, parts)
        return
    if not parts:
        if node is not None:
            yield node
        return
    if isinstance(node, Mapping):
        head, *rest = parts
        if head in node:
            yield from _iter_values(node[head], rest)


def resolve_field(resource: Mapping[str, Any], field: str) -> list[Any]:
    """
    Collect every scalar value found at a dotted field path.

    Lists are flattened at every level, so ``code.coding.system`` reaches the
    system of each coding. The ``.keyword`` suffix is ignored.
    """
    path = _strip_keyword(field)
    return list(_iter_values(resource, path.split(".")))


def as_keyword(value: Any) -> str | None:
    """Render a scalar the way a keyword field indexes it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float, Decimal)):
        return str(value)
    return None


def _field_matches(
    resource: Mapping[str, Any], field: str, query: str
) -> bool:
    return any(
        as_keyword(value) == query for value in resolve_field(resource, field)
    )


class PredicateExpression(ABC):
    """An immutable, dual-renderable search predicate."""

    @abstractmethod
    def to_query(self) -> dict[str, Any]:
        """Render as a search backend query fragment."""

    @abstractmethod
    def evaluate(self, resource: Mapping[str, Any]) -> bool:
        """Test the predicate against an in-memory resource."""


@dataclass(frozen=True)
class MultiMatch(PredicateExpression):
    """Matches when any of the fields holds the query value."""

    fields: tuple[str, ...]
    query: str
    lenient: bool = True

    def to_query(self) -> dict[str, Any]:
        return {
            "multi_match": {
                "fields": list(self.fields),
                "query": self.query,
                "lenient": self.lenient,
            }
        }

    def evaluate(self, resource: Mapping[str, Any]) -> bool:
        return any(
            _field_matches(resource, field, self.query)
            for field in self.fields
        )


@dataclass(frozen=True)
class Term(PredicateExpression):
    """Exact equality on a single field."""

    field: str
    value: str

    def to_query(self) -> dict[str, Any]:
        return {"term": {self.field: self.value}}

    def evaluate(self, resource: Mapping[str, Any]) -> bool:
        return _field_matches(resource, self.field, self.value)


@dataclass(frozen=True)
class MustNotExist(PredicateExpression):
    """Matches when the field is absent."""

    field: str

    def to_query(self) -> dict[str, Any]:
        return {"bool": {"must_not": {"exists": {"field": self.field}}}}

    def evaluate(self, resource: Mapping[str, Any]) -> bool:
        return not resolve_field(resource, self.field)


@dataclass(frozen=True)
class AllOf(PredicateExpression):
    """Conjunction of clauses."""

    clauses: tuple[PredicateExpression, ...]

    def to_query(self) -> dict[str, Any]:
        return {"bool": {"must": [c.to_query() for c in self.clauses]}}

    def evaluate(self, resource: Mapping[str, Any]) -> bool:
        return all(c.evaluate(resource) for c in self.clauses)


@dataclass(frozen=True)
class AnyOf(PredicateExpression):
    """Disjunction of clauses."""

    clauses: tuple[PredicateExpression, ...]

    def to_query(self) -> dict[str, Any]:
        return {
            "bool": {
                "should": [c.to_query() for c in self.clauses],
                "minimum_should_match": 1,
            }
        }

    def evaluate(self, resource: Mapping[str, Any]) -> bool:
        return any(c.evaluate(resource) for c in self.clauses)


def all_of(clauses: list[PredicateExpression]) -> PredicateExpression:
    """Combine clauses with AND, leaving a single clause unwrapped."""
    if not clauses:
        raise ValueError("at least one clause is required")
    if len(clauses) == 1:
        return clauses[0]
    return AllOf(tuple(clauses))


def any_of(clauses: list[PredicateExpression]) -> PredicateExpression:
    """Combine clauses with OR, leaving a single clause unwrapped."""
    if not clauses:
        raise ValueError("at least one clause is required")
    if len(clauses) == 1:
        return clauses[0]
    return AnyOf(tuple(clauses))


__all__ = [
    "AllOf",
    "AnyOf",
    "KEYWORD_SUFFIX",
    "MultiMatch",
    "MustNotExist",
    "PredicateExpression",
    "Term",
    "all_of",
    "any_of",
    "as_keyword",
    "resolve_field",
]
