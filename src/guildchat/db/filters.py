"""Reusable SQL filter expressions."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func

_LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")


def contains_ci(column: Any, term: str) -> Any:  # noqa: ANN401
    """Case-insensitive substring match that works on PostgreSQL and SQLite."""
    pattern = f"%{escape_like(term.strip().lower())}%"
    return func.lower(column).like(pattern, escape=_LIKE_ESCAPE)
