"""Free-text query normalization for the full-text match operators.

The embedded engine's MATCH operator understands a small query language
(``AND``/``OR``/``NOT``, ``*`` prefixes, ``col:`` filters, ``"phrases"``).
User input is never handed to it verbatim: quote characters are stripped
and the remainder is wrapped in one quoted phrase, so every query is a
plain phrase match and reserved words are matched literally.

A query that is empty after normalization matches nothing; callers check
:func:`is_blank_query` before compiling a statement.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

_QUOTE = '"'
_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


def normalize_query(query: str | None) -> str:
    """Strip quote and control characters and collapse runs of whitespace.

    The MATCH parser rejects control characters such as NUL inside a
    phrase, so they are replaced by spaces.

    Args:
        query: Raw query string from the caller.

    Returns:
        The cleaned query, or ``""`` when nothing searchable remains.
    """
    if not query:
        return ""
    cleaned = _CONTROL_RE.sub(" ", query.replace(_QUOTE, ""))
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def is_blank_query(query: str | None) -> bool:
    """Return True when *query* has no searchable content."""
    return not normalize_query(query)


def sanitize_phrase_query(query: str | None) -> str:
    """Turn a raw query into a single quoted MATCH phrase.

    >>> sanitize_phrase_query('fix "login" OR crash')
    '"fix login OR crash"'
    >>> sanitize_phrase_query("   ")
    ''
    """
    normalized = normalize_query(query)
    if not normalized:
        return ""
    return f"{_QUOTE}{normalized}{_QUOTE}"


def scope_phrase_query(phrase: str, columns: Sequence[str]) -> str:
    """Restrict a sanitized phrase to the given index columns.

    An empty *columns* sequence leaves the phrase unrestricted.

    >>> scope_phrase_query('"sso"', ["title"])
    '{title} : "sso"'
    """
    if not columns:
        return phrase
    return "{" + " ".join(columns) + "} : " + phrase
