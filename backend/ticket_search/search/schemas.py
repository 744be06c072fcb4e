# @TASK S1-T1.1 - Search request / result models
# @TEST tests/test_schemas.py

"""Pydantic models for the ticket search request and its ranked results.

All three models are built fresh for each search call and serialise with
camelCase keys (``hasMore``, ``matchedIn``, ``ticketId`` ...), which is the
JSON contract of the ranked search endpoint.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ticket_search.constants import DEFAULT_SEARCH_SCOPES, SearchScope
from ticket_search.utils.datetime_utils import to_utc

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _unique(values: list | None) -> list | None:
    """Drop duplicates while keeping first-seen order."""
    if values is None:
        return None
    return list(dict.fromkeys(values))


class FilterSpec(BaseModel):
    """Normalized search request: a free-text query plus metadata filters.

    All metadata filters are optional and combined with AND. Date bounds
    and point bounds are inclusive. ``min_points <= max_points`` is not
    enforced here; inverted bounds simply match nothing.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    query: str = ""
    status: list[str] | None = None
    assignees: list[str] | None = None
    labels: list[str] | None = None
    created_by: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None
    min_points: int | None = None
    max_points: int | None = None
    has_comments: bool | None = None
    has_commits: bool | None = None
    has_dependencies: bool | None = None
    epic_id: UUID | None = None
    parent_id: UUID | None = None
    project_id: UUID | None = None
    search_in: list[SearchScope] = Field(default_factory=list)

    @field_validator("status", "assignees", "labels", "search_in")
    @classmethod
    def _dedupe(cls, values: list | None) -> list | None:
        return _unique(values)

    @field_validator("created_after", "created_before", "updated_after", "updated_before")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return to_utc(value) if value is not None else None

    def normalized(self) -> FilterSpec:
        """Return a copy whose ``search_in`` defaults to every scope when empty."""
        if self.search_in:
            return self
        return self.model_copy(update={"search_in": list(DEFAULT_SEARCH_SCOPES)})

    @property
    def ticket_text_scopes(self) -> list[SearchScope]:
        """In-scope ticket columns, always in title-then-description order."""
        return [s for s in (SearchScope.TITLE, SearchScope.DESCRIPTION) if s in self.search_in]

    @property
    def searches_comments(self) -> bool:
        return SearchScope.COMMENTS in self.search_in


class SearchResult(BaseModel):
    """A single ranked ticket.

    Attributes:
        ticket_id: Ticket UUID.
        ticket_number: Human-facing number such as ``TASK-12``.
        snippet: Highlighted excerpt from the best-ranked match.
        rank: Backend-native relevance score. Lower is better on the
            embedded engine (bm25), higher is better on the server engine
            (ts_rank); results are always returned most relevant first.
        matched_in: Scopes the ticket matched in, without duplicates.
        assignees: Filled by a separate enrichment step; empty here.
        labels: Filled by a separate enrichment step; empty here.
    """

    model_config = _CAMEL_CONFIG

    ticket_id: UUID
    ticket_number: str
    title: str
    description: str
    status: str
    story_points: int | None = None
    snippet: str = ""
    rank: float
    matched_in: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    created_by: str
    created_at: datetime
    updated_at: datetime
    parent_id: UUID | None = None
    epic_id: UUID | None = None


class SearchResponse(BaseModel):
    """One page of ranked results.

    ``total`` is the size of the returned page and ``has_more`` is true
    when the page is full; neither comes from a separate COUNT query.
    """

    model_config = _CAMEL_CONFIG

    results: list[SearchResult]
    total: int
    has_more: bool
    offset: int
    limit: int

    @classmethod
    def empty(cls, limit: int, offset: int) -> SearchResponse:
        return cls(results=[], total=0, has_more=False, offset=offset, limit=limit)
