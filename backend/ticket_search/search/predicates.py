"""Dialect-neutral metadata predicates derived from a FilterSpec.

:class:`PredicateBuilder` turns each present filter field into one
``(column, operator, value)`` predicate, in a fixed order, and owns the
:class:`ParameterCursor` that every statement fragment binds its values
through. Keeping a single cursor per statement means the match
parameters, the metadata conditions and the trailing LIMIT/OFFSET can
never disagree about placeholder numbering.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ticket_search.search.schemas import FilterSpec


class Operator(StrEnum):
    EQ = "="
    GTE = ">="
    LTE = "<="
    IN = "IN"
    EXISTS = "EXISTS"


@dataclass(frozen=True)
class Predicate:
    """One normalized filter condition.

    ``column`` is a logical column name; the statement compilers map it
    onto the ticket table or a related table. For ``IN`` the value is a
    tuple of members, for ``EXISTS`` it is the wanted truth value.
    """

    column: str
    operator: Operator
    value: Any


class ParameterCursor:
    """Hands out numbered bind markers (``:p1``, ``:p2`` ...) in bind order."""

    def __init__(self) -> None:
        self._position = 1
        self._params: dict[str, Any] = {}

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    def bind(self, value: Any) -> str:
        """Register *value* and return the marker to splice into SQL."""
        name = f"p{self._position}"
        self._params[name] = value
        self._position += 1
        return f":{name}"


class PredicateBuilder:
    """Build the ordered predicate list for a FilterSpec.

    Args:
        filters: The search request.
    """

    def __init__(self, filters: FilterSpec) -> None:
        self.filters = filters
        self.cursor = ParameterCursor()

    def build(self) -> list[Predicate]:
        f = self.filters
        predicates: list[Predicate] = []

        def add(column: str, operator: Operator, value: Any) -> None:
            predicates.append(Predicate(column, operator, value))

        if f.project_id is not None:
            add("project_id", Operator.EQ, f.project_id)
        if f.status:
            add("status", Operator.IN, tuple(f.status))
        if f.assignees:
            add("assignee", Operator.IN, tuple(f.assignees))
        if f.labels:
            add("label", Operator.IN, tuple(f.labels))
        if f.created_by is not None:
            add("created_by", Operator.EQ, f.created_by)
        if f.created_after is not None:
            add("created_at", Operator.GTE, f.created_after)
        if f.created_before is not None:
            add("created_at", Operator.LTE, f.created_before)
        if f.updated_after is not None:
            add("updated_at", Operator.GTE, f.updated_after)
        if f.updated_before is not None:
            add("updated_at", Operator.LTE, f.updated_before)
        if f.min_points is not None:
            add("story_points", Operator.GTE, f.min_points)
        if f.max_points is not None:
            add("story_points", Operator.LTE, f.max_points)
        if f.epic_id is not None:
            add("epic_id", Operator.EQ, f.epic_id)
        if f.parent_id is not None:
            add("parent_id", Operator.EQ, f.parent_id)
        if f.has_comments is not None:
            add("comments", Operator.EXISTS, f.has_comments)
        if f.has_commits is not None:
            add("commit_links", Operator.EXISTS, f.has_commits)
        if f.has_dependencies is not None:
            add("ticket_dependencies", Operator.EXISTS, f.has_dependencies)

        return predicates
