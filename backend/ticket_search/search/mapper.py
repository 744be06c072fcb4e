"""Map raw search rows onto :class:`SearchResult` values.

Rows come back with driver-specific types: the SQLite driver hands out
identifiers and timestamps as text, asyncpg hands out ``UUID`` and
``datetime`` objects. The mapper coerces both into the same typed result
and fails the whole mapping on the first malformed field.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from ticket_search.constants import MATCHED_IN_DELIMITER
from ticket_search.search.errors import RowDecodeError
from ticket_search.search.schemas import SearchResult
from ticket_search.utils.datetime_utils import datetime_from_iso, to_utc

logger = logging.getLogger(__name__)


def split_matched_in(value: str | None) -> list[str]:
    """Split an aggregated matched-in string into unique labels, in order."""
    if not value:
        return []
    labels = (part.strip() for part in value.split(MATCHED_IN_DELIMITER))
    return list(dict.fromkeys(label for label in labels if label))


def _field(row: Mapping[str, Any], name: str) -> Any:
    try:
        return row[name]
    except KeyError:
        raise RowDecodeError(f"Missing column {name!r} in search row", field=name) from None


def _coerce_uuid(value: Any, name: str, *, optional: bool = False) -> UUID | None:
    if value is None and optional:
        return None
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError as exc:
            raise RowDecodeError(f"Malformed identifier in {name!r}: {value!r}", field=name) from exc
    raise RowDecodeError(f"Malformed identifier in {name!r}: {value!r}", field=name)


def _coerce_timestamp(value: Any, name: str) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str) and value:
        try:
            return datetime_from_iso(value)
        except ValueError as exc:
            raise RowDecodeError(f"Malformed timestamp in {name!r}: {value!r}", field=name) from exc
    raise RowDecodeError(f"Malformed timestamp in {name!r}: {value!r}", field=name)


def _coerce_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise RowDecodeError(f"Malformed number in {name!r}: {value!r}", field=name)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise RowDecodeError(f"Malformed number in {name!r}: {value!r}", field=name) from exc
    if not number.is_integer():
        raise RowDecodeError(f"Non-integral number in {name!r}: {value!r}", field=name)
    return int(number)


def _coerce_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise RowDecodeError(f"Malformed number in {name!r}: {value!r}", field=name)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise RowDecodeError(f"Malformed number in {name!r}: {value!r}", field=name) from exc


class ResultMapper:
    """Convert statement rows to SearchResult values.

    Args:
        ticket_number_prefix: Prefix of the human-facing ticket number,
            rendered as ``<prefix>-<ticket_number>``.
    """

    def __init__(self, ticket_number_prefix: str = "TASK") -> None:
        self._prefix = ticket_number_prefix

    def map_rows(self, rows: Iterable[Mapping[str, Any]]) -> list[SearchResult]:
        """Map every row; a single bad row fails the whole batch."""
        return [self.map_row(row) for row in rows]

    def map_row(self, row: Mapping[str, Any]) -> SearchResult:
        ticket_id = _coerce_uuid(_field(row, "ticket_id"), "ticket_id")
        payload = {
            "ticket_id": ticket_id,
            "ticket_number": self._ticket_number(_field(row, "ticket_number")),
            "title": _field(row, "title"),
            "description": _field(row, "description") or "",
            "status": _field(row, "status"),
            "story_points": _coerce_int(_field(row, "story_points"), "story_points"),
            "snippet": _field(row, "snippet") or "",
            "rank": _coerce_float(_field(row, "rank"), "rank"),
            "matched_in": split_matched_in(_field(row, "matched_in")),
            "created_by": _field(row, "created_by"),
            "created_at": _coerce_timestamp(_field(row, "created_at"), "created_at"),
            "updated_at": _coerce_timestamp(_field(row, "updated_at"), "updated_at"),
            "parent_id": _coerce_uuid(_field(row, "parent_id"), "parent_id", optional=True),
            "epic_id": _coerce_uuid(_field(row, "epic_id"), "epic_id", optional=True),
        }
        try:
            return SearchResult(**payload)
        except ValidationError as exc:
            logger.warning("Search row for ticket %s failed validation", ticket_id)
            raise RowDecodeError(f"Invalid search row for ticket {ticket_id}: {exc}") from exc

    def _ticket_number(self, value: Any) -> str:
        if isinstance(value, str) and value and not value.strip().lstrip("-").isdigit():
            # Already rendered by the caller's schema (e.g. "TASK-12")
            return value
        number = _coerce_int(value, "ticket_number")
        if number is None:
            raise RowDecodeError("Missing ticket number", field="ticket_number")
        return f"{self._prefix}-{number}"
