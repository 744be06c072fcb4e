# @TASK S2-T2.0 - Ticket search package
# @TASK S2-T2.1 - Statement compilers (SQLite FTS5 / PostgreSQL tsvector)
# @TASK S2-T2.3 - Ranked full-text ticket search service

"""Full-text ticket search over an embedded (SQLite FTS5) or server
(PostgreSQL tsvector) storage engine."""

from ticket_search.search.compilers import (
    CompiledStatement,
    EmbeddedStatementCompiler,
    ServerStatementCompiler,
    StatementCompiler,
    get_compiler,
)
from ticket_search.search.engine import SearchService
from ticket_search.search.errors import (
    RowDecodeError,
    SearchError,
    StatementExecutionError,
    UnsupportedBackendError,
)
from ticket_search.search.mapper import ResultMapper
from ticket_search.search.predicates import Operator, ParameterCursor, Predicate, PredicateBuilder
from ticket_search.search.schemas import FilterSpec, SearchResponse, SearchResult

__all__ = [
    "CompiledStatement",
    "EmbeddedStatementCompiler",
    "FilterSpec",
    "Operator",
    "ParameterCursor",
    "Predicate",
    "PredicateBuilder",
    "ResultMapper",
    "RowDecodeError",
    "SearchError",
    "SearchResponse",
    "SearchResult",
    "SearchService",
    "ServerStatementCompiler",
    "StatementCompiler",
    "StatementExecutionError",
    "UnsupportedBackendError",
    "get_compiler",
]
