"""
Session ordering key.

    effective_time(session) = last_message_at ?? created_at

Sessions are listed most-recently-active first; ties on the effective time
fall back to ``id`` ascending. The SQL form and the in-memory form below
must stay equivalent: the listing query sorts and filters with the column
expression, the cursor is cut from the in-memory value.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement


def to_utc_naive(value: datetime) -> datetime:
    """Normalize a timestamp to naive UTC, the storage convention."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def effective_time(record: Any) -> datetime:
    """In-memory ordering key for a session record or row."""
    last_message_at: Optional[datetime] = getattr(record, "last_message_at", None)
    return to_utc_naive(last_message_at if last_message_at is not None else record.created_at)


def effective_time_column(model: Any) -> ColumnElement[Any]:
    """SQL ordering key: ``COALESCE(last_message_at, created_at)``."""
    return func.coalesce(model.last_message_at, model.created_at)


def order_by_clauses(model: Any) -> tuple[ColumnElement[Any], ...]:
    return (effective_time_column(model).desc(), model.id.asc())


def sort_records(records: Iterable[Any]) -> list[Any]:
    """In-memory equivalent of ``order_by_clauses``."""
    by_id = sorted(records, key=lambda r: str(r.id))
    return sorted(by_id, key=effective_time, reverse=True)
