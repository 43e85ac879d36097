"""Academic calendar helpers (September to August school year, three terms)."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Tuple

TERMS: Tuple[str, ...] = ("First Term", "Second Term", "Third Term")

_TERM_ALIASES = {
    "1": "First Term",
    "first": "First Term",
    "2": "Second Term",
    "second": "Second Term",
    "3": "Third Term",
    "third": "Third Term",
}
_TERM_ALIASES.update({term.lower(): term for term in TERMS})

_ACADEMIC_YEAR_RE = re.compile(r"^\s*(\d{4})\s*[/-]\s*(\d{4})\s*$")


def normalize_term(value: Any) -> str | None:
    """Return the canonical term name for ``value`` or ``None``."""

    if value is None:
        return None
    key = " ".join(str(value).replace("_", " ").replace("-", " ").split()).lower()
    return _TERM_ALIASES.get(key)


def normalize_academic_year(value: Any) -> str | None:
    """Return ``YYYY/YYYY`` for a valid academic year string, else ``None``."""

    if value is None:
        return None
    match = _ACADEMIC_YEAR_RE.match(str(value))
    if not match:
        return None
    start, end = int(match.group(1)), int(match.group(2))
    if end != start + 1:
        return None
    return f"{start}/{end}"


def current_academic_year(today: date | None = None) -> str:
    today = today or date.today()
    if today.month >= 9:
        return f"{today.year}/{today.year + 1}"
    return f"{today.year - 1}/{today.year}"


def current_term(today: date | None = None) -> str:
    month = (today or date.today()).month
    if 1 <= month <= 4:
        return TERMS[0]
    if 5 <= month <= 8:
        return TERMS[1]
    return TERMS[2]


__all__ = [
    "TERMS",
    "current_academic_year",
    "current_term",
    "normalize_academic_year",
    "normalize_term",
]
