from enum import StrEnum


class BackendKind(StrEnum):
    """Storage engines the search core can compile statements for.

    Values match SQLAlchemy dialect names so the hosting layer can map an
    engine onto a kind without a lookup table.
    """

    EMBEDDED = "sqlite"
    SERVER = "postgresql"


class SearchScope(StrEnum):
    TITLE = "title"
    DESCRIPTION = "description"
    COMMENTS = "comments"


class RankOrder(StrEnum):
    """Direction in which a backend's native rank improves."""

    ASCENDING = "asc"  # lower is more relevant (bm25)
    DESCENDING = "desc"  # higher is more relevant (ts_rank)


DEFAULT_SEARCH_SCOPES: tuple[SearchScope, ...] = (
    SearchScope.TITLE,
    SearchScope.DESCRIPTION,
    SearchScope.COMMENTS,
)

# Separator used when the grouped query aggregates matched-in labels
MATCHED_IN_DELIMITER = "|"
