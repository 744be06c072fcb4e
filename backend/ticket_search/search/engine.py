# @TASK S2-T2.3 - Ranked full-text ticket search service
# @TEST tests/test_search_service.py

"""Ranked, paginated full-text search over tickets and their comments.

:class:`SearchService` is the only entry point: it normalizes the
FilterSpec, picks the statement compiler for the configured backend,
executes exactly one statement on a pooled connection, maps the rows and
assembles the page.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ticket_search.config import Settings, get_settings
from ticket_search.constants import BackendKind, RankOrder
from ticket_search.search.compilers import CompiledStatement, StatementCompiler, get_compiler
from ticket_search.search.errors import StatementExecutionError
from ticket_search.search.mapper import ResultMapper
from ticket_search.search.query_preprocessor import is_blank_query
from ticket_search.search.schemas import FilterSpec, SearchResponse, SearchResult

logger = logging.getLogger(__name__)


class SearchService:
    """Full-text ticket search against an externally pooled engine.

    The service keeps no state between calls. Each :meth:`search` checks a
    connection out of *engine* for one statement and returns it on every
    exit path, including cancellation.

    Args:
        engine: Shared async engine; its pool bounds concurrency and its
            configuration supplies timeouts.
        backend: Backend kind chosen by the hosting application. Unknown
            kinds are rejected when a search is dispatched.
        settings: Search settings (defaults to the cached application settings).
    """

    def __init__(
        self,
        engine: AsyncEngine,
        backend: BackendKind | str,
        settings: Settings | None = None,
    ) -> None:
        self._engine = engine
        self._backend = backend
        self._settings = settings or get_settings()
        self._mapper = ResultMapper(self._settings.TICKET_NUMBER_PREFIX)

    async def search(
        self,
        filters: FilterSpec,
        limit: int | None = None,
        offset: int | None = None,
    ) -> SearchResponse:
        """Return one page of tickets matching *filters*, most relevant first.

        ``limit`` defaults to 50 and is clamped to [1, 100]; ``offset``
        defaults to 0. ``total`` is the number of results on this page and
        ``has_more`` is ``total == limit``.

        A blank query matches nothing and returns an empty page without
        touching the database.

        Raises:
            UnsupportedBackendError: The backend kind has no compiler.
            StatementExecutionError: The engine failed to run the statement.
            RowDecodeError: A returned row could not be mapped.
        """
        limit = self._clamp_limit(limit)
        offset = max(offset or 0, 0)
        compiler = get_compiler(self._backend, self._settings)
        filters = filters.normalized()

        logger.info(
            "Ticket search: backend=%s, query=%r, scopes=%s, limit=%d, offset=%d",
            compiler.backend.value,
            filters.query,
            ",".join(filters.search_in),
            limit,
            offset,
        )

        if is_blank_query(filters.query):
            return SearchResponse.empty(limit=limit, offset=offset)

        statement = compiler.compile(filters, limit=limit, offset=offset)
        logger.debug("Compiled %s search statement:\n%s", compiler.backend.value, statement.sql)

        rows = await self._execute(statement, compiler)
        results = self.order_results(self._mapper.map_rows(rows), compiler.rank_order)

        total = len(results)
        return SearchResponse(
            results=results,
            total=total,
            has_more=total == limit,
            offset=offset,
            limit=limit,
        )

    @staticmethod
    def order_results(results: list[SearchResult], rank_order: RankOrder) -> list[SearchResult]:
        """Sort results most relevant first under *rank_order*, ties by ticket id."""
        if rank_order is RankOrder.DESCENDING:
            return sorted(results, key=lambda r: (-r.rank, str(r.ticket_id)))
        return sorted(results, key=lambda r: (r.rank, str(r.ticket_id)))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            limit = self._settings.SEARCH_DEFAULT_LIMIT
        return min(max(limit, 1), self._settings.SEARCH_MAX_LIMIT)

    async def _execute(
        self, statement: CompiledStatement, compiler: StatementCompiler
    ) -> list[Mapping[str, Any]]:
        """Run *statement* once on a pooled connection."""
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(statement.as_text(), statement.params)
                return list(result.mappings().all())
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Search statement failed on %s backend: %s", compiler.backend.value, exc)
            raise StatementExecutionError(f"Search statement failed: {exc}", original=exc) from exc
