# @TASK S2-T2.1 - Ranked search statements for SQLite FTS5 and PostgreSQL tsvector
# @TEST tests/test_compilers.py

"""Statement compilers for the two supported storage engines.

Both compilers produce the same logical statement:

1. one match sub-query over the ticket text index (title + description)
   and one over the comment index, each yielding
   ``(ticket_id, snippet, rank, matched_in)``;
2. ``UNION ALL`` of the matches, grouped per ticket keeping the best rank,
   the snippet of the best-ranked match and every matched-in label;
3. a join against ``tickets`` carrying the metadata predicates;
4. ordering by best rank (ties broken by ticket id) and LIMIT/OFFSET.

They differ in the index syntax, the ranking function and the direction in
which that function's score improves, which each compiler publishes as
:attr:`StatementCompiler.rank_order`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import TextClause, text

from ticket_search.config import Settings, get_settings
from ticket_search.constants import MATCHED_IN_DELIMITER, BackendKind, RankOrder, SearchScope
from ticket_search.search.errors import UnsupportedBackendError
from ticket_search.search.predicates import Operator, ParameterCursor, Predicate, PredicateBuilder
from ticket_search.search.query_preprocessor import normalize_query, sanitize_phrase_query, scope_phrase_query
from ticket_search.search.schemas import FilterSpec
from ticket_search.utils.datetime_utils import datetime_to_iso

# Logical predicate columns that live on a table joined to tickets by ticket_id
_RELATED_COLUMNS: dict[str, tuple[str, str]] = {
    "assignee": ("ticket_assignees", "assignee"),
    "label": ("ticket_labels", "label"),
}

_RESULT_COLUMNS: tuple[str, ...] = (
    "t.id AS ticket_id",
    "t.ticket_number AS ticket_number",
    "t.title AS title",
    "t.description AS description",
    "t.status AS status",
    "t.story_points AS story_points",
    "rt.snippet AS snippet",
    "rt.best_rank AS rank",
    "rt.matched_in AS matched_in",
    "t.created_by AS created_by",
    "t.created_at AS created_at",
    "t.updated_at AS updated_at",
    "t.parent_id AS parent_id",
    "t.epic_id AS epic_id",
)

# FTS5 snippet() refuses more than 64 tokens
_FTS5_MAX_SNIPPET_TOKENS = 64


@dataclass(frozen=True)
class CompiledStatement:
    """A parameterized statement ready for execution."""

    sql: str
    params: dict[str, Any] = field(default_factory=dict)

    def as_text(self) -> TextClause:
        return text(self.sql)


def _sql_literal(value: str) -> str:
    """Render a configuration string as a quoted SQL literal."""
    return "'" + value.replace("'", "''") + "'"


def _cte(name: str, lines: Sequence[str], *, materialized: bool = False) -> str:
    body = "\n".join(f"    {line}" for line in lines)
    keyword = "AS MATERIALIZED" if materialized else "AS"
    return f"{name} {keyword} (\n{body}\n)"


class StatementCompiler(ABC):
    """Compile a FilterSpec into one ranked, paginated search statement."""

    backend: ClassVar[BackendKind]
    rank_order: ClassVar[RankOrder]

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @abstractmethod
    def prepare_match_query(self, query: str) -> str:
        """Return the text handed to the index match operator ("" when blank)."""

    def compile(self, filters: FilterSpec, limit: int, offset: int) -> CompiledStatement:
        """Build the statement for *filters* with the given page window.

        Raises:
            ValueError: If the query is blank; blank queries match nothing
                and must be short-circuited by the caller.
        """
        filters = filters.normalized()
        match_query = self.prepare_match_query(filters.query)
        if not match_query:
            raise ValueError("Cannot compile a search statement for a blank query")

        builder = PredicateBuilder(filters)
        cursor = builder.cursor

        ctes, match_names = self._match_ctes(filters, match_query, cursor)
        union = "\nUNION ALL\n".join(f"SELECT * FROM {name}" for name in match_names)
        ctes.append(_cte("all_matches", union.splitlines()))
        ctes.append(self._ranked_cte())

        conditions = ["t.deleted_at IS NULL"]
        conditions.extend(self.render_predicate(predicate, cursor) for predicate in builder.build())

        limit_marker = cursor.bind(limit)
        offset_marker = cursor.bind(offset)
        direction = "ASC" if self.rank_order is RankOrder.ASCENDING else "DESC"

        sql = "\n".join(
            [
                "WITH " + ",\n".join(ctes),
                "SELECT",
                ",\n".join(f"    {column}" for column in _RESULT_COLUMNS),
                "FROM ranked_tickets rt",
                "INNER JOIN tickets t ON t.id = rt.ticket_id",
                "WHERE " + "\n  AND ".join(conditions),
                f"ORDER BY rt.best_rank {direction}, t.id ASC",
                f"LIMIT {limit_marker} OFFSET {offset_marker}",
            ]
        )
        return CompiledStatement(sql=sql, params=cursor.params)

    def render_predicate(self, predicate: Predicate, cursor: ParameterCursor) -> str:
        """Render one metadata predicate, binding its value(s) through *cursor*."""
        if predicate.operator is Operator.EXISTS:
            clause = f"EXISTS (SELECT 1 FROM {predicate.column} x WHERE x.ticket_id = t.id)"
            return clause if predicate.value else f"NOT {clause}"

        if predicate.column in _RELATED_COLUMNS:
            table, column = _RELATED_COLUMNS[predicate.column]
            membership = self._render_membership(f"x.{column}", predicate.value, cursor)
            return f"EXISTS (SELECT 1 FROM {table} x WHERE x.ticket_id = t.id AND {membership})"

        column = f"t.{predicate.column}"
        if predicate.operator is Operator.IN:
            return self._render_membership(column, predicate.value, cursor)
        return f"{column} {predicate.operator.value} {cursor.bind(self._bind_value(predicate.value))}"

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _match_ctes(
        self, filters: FilterSpec, match_query: str, cursor: ParameterCursor
    ) -> tuple[list[str], list[str]]:
        """Return (CTE definitions, names of the CTEs that yield match rows)."""

    @abstractmethod
    def _aggregates(self) -> tuple[str, str, str]:
        """Return the (snippet, best rank, matched-in) aggregate expressions."""

    @abstractmethod
    def _render_membership(self, column: str, values: Sequence[Any], cursor: ParameterCursor) -> str:
        """Render a set-membership test for *column*."""

    def _bind_value(self, value: Any) -> Any:
        return value

    def _ranked_cte(self) -> str:
        snippet, best_rank, matched_in = self._aggregates()
        return _cte(
            "ranked_tickets",
            [
                "SELECT",
                "    am.ticket_id AS ticket_id,",
                f"    {snippet} AS snippet,",
                f"    {best_rank} AS best_rank,",
                f"    {matched_in} AS matched_in",
                "FROM all_matches am",
                "GROUP BY am.ticket_id",
            ],
        )

    @staticmethod
    def _ticket_label(scopes: Sequence[SearchScope]) -> str:
        return _sql_literal(",".join(scope.value for scope in scopes))


class EmbeddedStatementCompiler(StatementCompiler):
    """SQLite FTS5 statements over ``tickets_fts`` and ``comments_fts``.

    ``bm25()`` scores are negative and lower means more relevant, so the
    best rank per ticket is the MIN and results are ordered ascending.
    SQLite returns the bare ``snippet`` column from the row holding the
    MIN, which keeps the snippet of the best-ranked match.

    The match CTEs are materialized: ``snippet()`` and ``bm25()`` only run
    inside the query that scans the FTS5 table.
    """

    backend = BackendKind.EMBEDDED
    rank_order = RankOrder.ASCENDING

    # Column positions inside the FTS5 tables, as snippet() expects them
    _TICKET_SNIPPET_COLUMNS = {SearchScope.TITLE: 2, SearchScope.DESCRIPTION: 3}
    _COMMENT_SNIPPET_COLUMN = 3

    def prepare_match_query(self, query: str) -> str:
        return sanitize_phrase_query(query)

    def _snippet(self, table: str, column: int) -> str:
        s = self._settings
        tokens = min(s.SNIPPET_MAX_WORDS, _FTS5_MAX_SNIPPET_TOKENS)
        return (
            f"snippet({table}, {column}, {_sql_literal(s.SNIPPET_START_SEL)}, "
            f"{_sql_literal(s.SNIPPET_STOP_SEL)}, {_sql_literal(s.SNIPPET_ELLIPSIS)}, {tokens})"
        )

    def _match_ctes(
        self, filters: FilterSpec, match_query: str, cursor: ParameterCursor
    ) -> tuple[list[str], list[str]]:
        ctes: list[str] = []
        names: list[str] = []

        scopes = filters.ticket_text_scopes
        if scopes:
            # A single in-scope column is enforced with an FTS5 column filter
            restricted = [scopes[0].value] if len(scopes) == 1 else []
            marker = cursor.bind(scope_phrase_query(match_query, restricted))
            snippet_column = self._TICKET_SNIPPET_COLUMNS[scopes[0]] if restricted else -1
            ctes.append(
                _cte(
                    "ticket_matches",
                    [
                        "SELECT",
                        "    tickets_fts.ticket_id AS ticket_id,",
                        f"    {self._snippet('tickets_fts', snippet_column)} AS snippet,",
                        "    bm25(tickets_fts) AS rank,",
                        f"    {self._ticket_label(scopes)} AS matched_in",
                        "FROM tickets_fts",
                        f"WHERE tickets_fts MATCH {marker}",
                    ],
                    materialized=True,
                )
            )
            names.append("ticket_matches")

        if filters.searches_comments:
            marker = cursor.bind(match_query)
            ctes.append(
                _cte(
                    "comment_matches",
                    [
                        "SELECT",
                        "    comments_fts.ticket_id AS ticket_id,",
                        f"    {self._snippet('comments_fts', self._COMMENT_SNIPPET_COLUMN)} AS snippet,",
                        "    bm25(comments_fts) AS rank,",
                        f"    {_sql_literal(SearchScope.COMMENTS.value)} AS matched_in",
                        "FROM comments_fts",
                        f"WHERE comments_fts MATCH {marker}",
                    ],
                    materialized=True,
                )
            )
            names.append("comment_matches")

        return ctes, names

    def _aggregates(self) -> tuple[str, str, str]:
        return (
            "am.snippet",
            "MIN(am.rank)",
            f"GROUP_CONCAT(am.matched_in, {_sql_literal(MATCHED_IN_DELIMITER)})",
        )

    def _render_membership(self, column: str, values: Sequence[Any], cursor: ParameterCursor) -> str:
        markers = ", ".join(cursor.bind(self._bind_value(value)) for value in values)
        return f"{column} IN ({markers})"

    def _bind_value(self, value: Any) -> Any:
        # Identifiers and timestamps are stored as text (RFC 3339 for timestamps)
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, datetime):
            return datetime_to_iso(value)
        return value


class ServerStatementCompiler(StatementCompiler):
    """PostgreSQL statements over the ``search_vector`` tsvector columns.

    ``ts_rank()`` grows with relevance, so the best rank per ticket is the
    MAX and results are ordered descending. The text query is bound once,
    as ``:p1``, in a ``search_query`` CTE; metadata markers follow it.
    """

    backend = BackendKind.SERVER
    rank_order = RankOrder.DESCENDING

    # setweight() labels written by the ticket search_vector trigger
    _TICKET_WEIGHTS = {SearchScope.TITLE: "a", SearchScope.DESCRIPTION: "b"}

    def prepare_match_query(self, query: str) -> str:
        return normalize_query(query)

    def _headline(self, document: str) -> str:
        s = self._settings
        options = (
            f"StartSel={s.SNIPPET_START_SEL}, StopSel={s.SNIPPET_STOP_SEL}, "
            f"MaxWords={s.SNIPPET_MAX_WORDS}, MinWords={s.SNIPPET_MIN_WORDS}"
        )
        config = _sql_literal(s.SEARCH_TEXT_CONFIG)
        return f"ts_headline({config}, {document}, sq.query, {_sql_literal(options)})"

    def _match_ctes(
        self, filters: FilterSpec, match_query: str, cursor: ParameterCursor
    ) -> tuple[list[str], list[str]]:
        config = _sql_literal(self._settings.SEARCH_TEXT_CONFIG)
        marker = cursor.bind(match_query)
        ctes = [_cte("search_query", [f"SELECT plainto_tsquery({config}, {marker}) AS query"])]
        names: list[str] = []

        scopes = filters.ticket_text_scopes
        if scopes:
            if len(scopes) == 1:
                weight = self._TICKET_WEIGHTS[scopes[0]]
                vector = f"ts_filter(t.search_vector, '{{{weight}}}')"
                document = f"t.{scopes[0].value}"
            else:
                vector = "t.search_vector"
                document = "concat_ws(' ', t.title, t.description)"
            ctes.append(
                _cte(
                    "ticket_matches",
                    [
                        "SELECT",
                        "    t.id AS ticket_id,",
                        f"    {self._headline(document)} AS snippet,",
                        f"    ts_rank({vector}, sq.query) AS rank,",
                        f"    {self._ticket_label(scopes)} AS matched_in",
                        "FROM tickets t",
                        "CROSS JOIN search_query sq",
                        f"WHERE {vector} @@ sq.query",
                    ],
                )
            )
            names.append("ticket_matches")

        if filters.searches_comments:
            ctes.append(
                _cte(
                    "comment_matches",
                    [
                        "SELECT",
                        "    c.ticket_id AS ticket_id,",
                        f"    {self._headline('c.content')} AS snippet,",
                        "    ts_rank(c.search_vector, sq.query) AS rank,",
                        f"    {_sql_literal(SearchScope.COMMENTS.value)} AS matched_in",
                        "FROM comments c",
                        "CROSS JOIN search_query sq",
                        "WHERE c.search_vector @@ sq.query",
                    ],
                )
            )
            names.append("comment_matches")

        return ctes, names

    def _aggregates(self) -> tuple[str, str, str]:
        return (
            "(ARRAY_AGG(am.snippet ORDER BY am.rank DESC))[1]",
            "MAX(am.rank)",
            f"STRING_AGG(DISTINCT am.matched_in, {_sql_literal(MATCHED_IN_DELIMITER)})",
        )

    def _render_membership(self, column: str, values: Sequence[Any], cursor: ParameterCursor) -> str:
        return f"{column} = ANY({cursor.bind(list(values))})"


_COMPILERS: dict[BackendKind, type[StatementCompiler]] = {
    BackendKind.EMBEDDED: EmbeddedStatementCompiler,
    BackendKind.SERVER: ServerStatementCompiler,
}


def get_compiler(backend: BackendKind | str, settings: Settings | None = None) -> StatementCompiler:
    """Return the statement compiler for *backend*.

    Raises:
        UnsupportedBackendError: If *backend* is not a known BackendKind.
    """
    try:
        kind = BackendKind(backend)
    except ValueError:
        raise UnsupportedBackendError(backend) from None
    return _COMPILERS[kind](settings)
