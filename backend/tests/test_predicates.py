# @TASK S2-T2.2 - Predicate builder tests
# @TEST tests/test_predicates.py

"""Tests for PredicateBuilder and ParameterCursor."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from ticket_search.search.predicates import Operator, ParameterCursor, Predicate, PredicateBuilder
from ticket_search.search.schemas import FilterSpec

# ---------------------------------------------------------------------------
# 1. ParameterCursor
# ---------------------------------------------------------------------------


class TestParameterCursor:
    """Placeholder numbering."""

    def test_numbers_start_at_one(self):
        cursor = ParameterCursor()
        assert cursor.bind("a") == ":p1"
        assert cursor.bind("b") == ":p2"
        assert cursor.params == {"p1": "a", "p2": "b"}

    def test_list_values_take_one_marker(self):
        cursor = ParameterCursor()
        assert cursor.bind(["todo", "done"]) == ":p1"
        assert cursor.bind(10) == ":p2"

    def test_params_is_a_copy(self):
        cursor = ParameterCursor()
        cursor.bind("a")
        cursor.params["p1"] = "changed"
        assert cursor.params == {"p1": "a"}


# ---------------------------------------------------------------------------
# 2. PredicateBuilder
# ---------------------------------------------------------------------------


class TestPredicateBuilder:
    """Predicate emission from FilterSpec."""

    def test_no_filters_no_predicates(self):
        assert PredicateBuilder(FilterSpec(query="sso")).build() == []

    def test_empty_sets_are_skipped(self):
        """An empty status/assignee/label list means 'no filter'."""
        filters = FilterSpec(query="sso", status=[], assignees=[], labels=[])
        assert PredicateBuilder(filters).build() == []

    def test_fixed_order(self):
        project = uuid.uuid4()
        epic = uuid.uuid4()
        parent = uuid.uuid4()
        after = datetime(2024, 1, 1, tzinfo=UTC)
        before = datetime(2024, 2, 1, tzinfo=UTC)
        filters = FilterSpec(
            query="sso",
            has_dependencies=False,
            has_commits=True,
            has_comments=True,
            parent_id=parent,
            epic_id=epic,
            max_points=8,
            min_points=3,
            updated_before=before,
            updated_after=after,
            created_before=before,
            created_after=after,
            created_by="alice",
            labels=["backend"],
            assignees=["bob"],
            status=["todo", "in_progress"],
            project_id=project,
        )

        predicates = PredicateBuilder(filters).build()

        assert predicates == [
            Predicate("project_id", Operator.EQ, project),
            Predicate("status", Operator.IN, ("todo", "in_progress")),
            Predicate("assignee", Operator.IN, ("bob",)),
            Predicate("label", Operator.IN, ("backend",)),
            Predicate("created_by", Operator.EQ, "alice"),
            Predicate("created_at", Operator.GTE, after),
            Predicate("created_at", Operator.LTE, before),
            Predicate("updated_at", Operator.GTE, after),
            Predicate("updated_at", Operator.LTE, before),
            Predicate("story_points", Operator.GTE, 3),
            Predicate("story_points", Operator.LTE, 8),
            Predicate("epic_id", Operator.EQ, epic),
            Predicate("parent_id", Operator.EQ, parent),
            Predicate("comments", Operator.EXISTS, True),
            Predicate("commit_links", Operator.EXISTS, True),
            Predicate("ticket_dependencies", Operator.EXISTS, False),
        ]

    def test_status_duplicates_collapse(self):
        filters = FilterSpec(query="sso", status=["todo", "todo", "done"])
        assert PredicateBuilder(filters).build() == [Predicate("status", Operator.IN, ("todo", "done"))]

    def test_zero_points_is_a_filter(self):
        """A bound of 0 is still a bound."""
        filters = FilterSpec(query="sso", min_points=0)
        assert PredicateBuilder(filters).build() == [Predicate("story_points", Operator.GTE, 0)]

    def test_each_builder_owns_a_fresh_cursor(self):
        first = PredicateBuilder(FilterSpec(query="sso"))
        first.cursor.bind("x")
        second = PredicateBuilder(FilterSpec(query="sso"))
        assert second.cursor.bind("y") == ":p1"
        assert first.cursor.params == {"p1": "x"}
