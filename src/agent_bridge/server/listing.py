"""
Cursor-paginated session listing.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from agent_bridge.models.session import SessionPage, SessionRecord
from agent_bridge.server.cursor import decode_cursor, split_page
from agent_bridge.server.store import Scope

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class SessionSource(Protocol):
    async def fetch_page(self, scope: Scope, before: Optional[datetime], limit: int) -> list[SessionRecord]:
        ...


def clamp_limit(limit: Optional[int]) -> int:
    """Missing means the default; anything else is clamped to [1, MAX_LIMIT]."""
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(int(limit), MAX_LIMIT))


class SessionListingService:
    """Pages through the non-archived sessions of a scope, newest activity first.

    Walking every page from an empty cursor visits each session in scope at
    most once, as long as no session's effective time changes mid-walk.
    Sessions sharing the effective time of a page's last row can be skipped,
    since the cursor carries only the timestamp.
    """

    def __init__(self, store: SessionSource):
        self._store = store

    async def list(self, scope: Scope, limit: Optional[int] = None, cursor: Optional[str] = None) -> SessionPage:
        limit = clamp_limit(limit)
        # A bad cursor is rejected before any storage access.
        before = decode_cursor(cursor) if cursor else None
        rows = await self._store.fetch_page(scope, before, limit + 1)
        page, next_cursor = split_page(rows, limit)
        logger.debug(
            "Listed %d sessions for workspace=%s project=%s (more=%s)",
            len(page), scope.workspace_id, scope.project_id, next_cursor is not None,
        )
        return SessionPage(data=page, cursor=next_cursor)
