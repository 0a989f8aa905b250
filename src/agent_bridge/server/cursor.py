"""
Pagination cursor codec.

A cursor is the effective time of the last row on a page, rendered as
fixed-precision UTC ISO-8601 (``2026-02-05T00:00:02.000000Z``) so that
string order and time order agree. It is stateless: nothing is stored
server side, so a cursor stays usable indefinitely.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence, TypeVar

from agent_bridge.errors import InvalidCursor
from agent_bridge.server.ordering import effective_time, to_utc_naive

logger = logging.getLogger(__name__)

CURSOR_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
MAX_CURSOR_LENGTH = 64

T = TypeVar("T")


def encode_cursor(value: Optional[datetime]) -> Optional[str]:
    """Encode an effective time. ``None`` means there is no next page."""
    if value is None:
        return None
    return to_utc_naive(value).isoformat(timespec="microseconds") + "Z"


def decode_cursor(cursor: str) -> datetime:
    """Decode a cursor back to a naive UTC datetime. Raises InvalidCursor."""
    if not isinstance(cursor, str) or not cursor.strip():
        raise InvalidCursor(str(cursor), "empty cursor")
    if len(cursor) > MAX_CURSOR_LENGTH:
        raise InvalidCursor(cursor[:MAX_CURSOR_LENGTH], "cursor too long")
    try:
        return datetime.strptime(cursor, CURSOR_FORMAT)
    except ValueError:
        pass
    # Accept any ISO-8601 timestamp too, e.g. a raw created_at value.
    text = cursor.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        logger.warning("Invalid cursor %r: %s", cursor, e)
        raise InvalidCursor(cursor) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return to_utc_naive(parsed)


def split_page(rows: Sequence[T], limit: int) -> tuple[list[T], Optional[str]]:
    """Cut a ``limit + 1`` fetch into one page and the cursor for the next.

    The extra row only signals that more pages exist; it is never returned.
    """
    if len(rows) > limit:
        page = list(rows[:limit])
        return page, encode_cursor(effective_time(page[-1]))
    return list(rows), None
