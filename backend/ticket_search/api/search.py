# @TASK S3-T3.1 - Ticket search API endpoint
# @TEST tests/test_api_search.py

"""Search API endpoint for ticket search.

Provides:
- ``GET /search`` -- Ranked full-text search over ticket titles,
  descriptions and comments, narrowed by optional metadata filters.

The endpoint runs on whichever backend the shared engine points at:
SQLite FTS5 for embedded deployments, PostgreSQL tsvector for server
deployments. Responses use camelCase keys.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncEngine

from ticket_search.config import Settings, get_settings
from ticket_search.constants import SearchScope
from ticket_search.database import get_engine, resolve_backend_kind
from ticket_search.search.engine import SearchService
from ticket_search.search.errors import RowDecodeError, StatementExecutionError, UnsupportedBackendError
from ticket_search.search.schemas import FilterSpec, SearchResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


def _build_search_service(engine: AsyncEngine, settings: Settings) -> SearchService:
    """Create a SearchService for the engine's backend.

    Extracted as a function to allow easy mocking in tests.
    """
    return SearchService(engine, resolve_backend_kind(engine, settings), settings)


@router.get("", response_model=SearchResponse, response_model_by_alias=True)
async def search_tickets(
    q: str = Query("", description="Free-text query"),  # noqa: B008
    status_in: list[str] | None = Query(None, alias="status", description="Allowed ticket statuses"),  # noqa: B008
    assignees: list[str] | None = Query(None, description="Tickets assigned to any of these users"),  # noqa: B008
    labels: list[str] | None = Query(None, description="Tickets carrying any of these labels"),  # noqa: B008
    created_by: str | None = Query(None, description="Ticket creator"),  # noqa: B008
    created_after: datetime | None = Query(None, description="Created at or after (ISO-8601)"),  # noqa: B008
    created_before: datetime | None = Query(None, description="Created at or before (ISO-8601)"),  # noqa: B008
    updated_after: datetime | None = Query(None, description="Updated at or after (ISO-8601)"),  # noqa: B008
    updated_before: datetime | None = Query(None, description="Updated at or before (ISO-8601)"),  # noqa: B008
    min_points: int | None = Query(None, description="Minimum story points (inclusive)"),  # noqa: B008
    max_points: int | None = Query(None, description="Maximum story points (inclusive)"),  # noqa: B008
    has_comments: bool | None = Query(None, description="Require (or exclude) comments"),  # noqa: B008
    has_commits: bool | None = Query(None, description="Require (or exclude) linked commits"),  # noqa: B008
    has_dependencies: bool | None = Query(None, description="Require (or exclude) dependencies"),  # noqa: B008
    epic_id: UUID | None = Query(None, description="Epic the ticket belongs to"),  # noqa: B008
    parent_id: UUID | None = Query(None, description="Parent ticket"),  # noqa: B008
    project_id: UUID | None = Query(None, description="Project the ticket belongs to"),  # noqa: B008
    search_in: list[SearchScope] | None = Query(None, description="Scopes to match in"),  # noqa: B008
    limit: int | None = Query(None, description="Page size (clamped to 1-100, default 50)"),  # noqa: B008
    offset: int = Query(0, description="Number of results to skip"),  # noqa: B008
    engine: AsyncEngine = Depends(get_engine),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> SearchResponse:
    """Search tickets by free text plus metadata filters.

    Args:
        q: Query text. A blank query returns an empty page.
        status_in: Ticket statuses to keep (``?status=todo&status=done``).
        search_in: Restrict matching to title, description and/or comments.
        limit: Page size; out-of-range values are clamped.
        offset: Number of results to skip.

    Returns:
        SearchResponse with the ranked page, most relevant ticket first.
    """
    logger.info(
        "Ticket search request: query=%r, limit=%s, offset=%d, search_in=%s",
        q,
        limit,
        offset,
        search_in,
    )

    filters = FilterSpec(
        query=q,
        status=status_in,
        assignees=assignees,
        labels=labels,
        created_by=created_by,
        created_after=created_after,
        created_before=created_before,
        updated_after=updated_after,
        updated_before=updated_before,
        min_points=min_points,
        max_points=max_points,
        has_comments=has_comments,
        has_commits=has_commits,
        has_dependencies=has_dependencies,
        epic_id=epic_id,
        parent_id=parent_id,
        project_id=project_id,
        search_in=search_in or [],
    )

    service = _build_search_service(engine, settings)
    try:
        return await service.search(filters, limit=limit, offset=offset)
    except UnsupportedBackendError as exc:
        logger.error("Search backend not supported: %r", exc.backend)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    except StatementExecutionError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search backend is unavailable",
        ) from exc
    except RowDecodeError as exc:
        logger.error("Search result could not be decoded: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Search result could not be decoded",
        ) from exc
