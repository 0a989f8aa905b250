"""
Session storage over the SQL database.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from agent_bridge.errors import NotFound
from agent_bridge.models.session import MessageRecord, SessionDetail, SessionRecord
from agent_bridge.server.db import AgentSession, Database, Message, new_id, utc_now
from agent_bridge.server.ordering import effective_time_column, order_by_clauses, to_utc_naive


@dataclass(frozen=True)
class Scope:
    """Listing scope. A workspace is mandatory; a project narrows it further."""
    workspace_id: str
    project_id: Optional[str] = None


class SessionStore:
    def __init__(self, db: Database):
        self._db = db

    async def fetch_page(self, scope: Scope, before: Optional[datetime], limit: int) -> list[SessionRecord]:
        """Rows in scope with effective time strictly before ``before``, newest first."""
        stmt = select(AgentSession).where(
            AgentSession.workspace_id == scope.workspace_id,
            AgentSession.archived.is_(False),
        )
        if scope.project_id is not None:
            stmt = stmt.where(AgentSession.project_id == scope.project_id)
        if before is not None:
            stmt = stmt.where(effective_time_column(AgentSession) < before)
        stmt = stmt.order_by(*order_by_clauses(AgentSession)).limit(limit)

        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [SessionRecord.model_validate(row) for row in rows]

    async def create(
        self,
        scope: Scope,
        *,
        title: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        system_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> SessionRecord:
        created = to_utc_naive(created_at) if created_at else utc_now()
        row = AgentSession(
            id=session_id or new_id(),
            workspace_id=scope.workspace_id,
            project_id=scope.project_id,
            title=title or "New Session",
            model=model,
            provider=provider,
            system_prompt=system_prompt,
            archived=False,
            created_at=created,
            updated_at=created,
        )
        async with self._db.session() as session:
            session.add(row)
            await session.flush()
            return SessionRecord.model_validate(row)

    async def _load(self, session, scope: Scope, session_id: str) -> AgentSession:
        stmt = select(AgentSession).where(
            AgentSession.id == session_id,
            AgentSession.workspace_id == scope.workspace_id,
        )
        if scope.project_id is not None:
            stmt = stmt.where(AgentSession.project_id == scope.project_id)
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise NotFound(f"Session not found: {session_id}", code="session_not_found")
        return row

    async def get(self, scope: Scope, session_id: str) -> SessionDetail:
        async with self._db.session() as session:
            row = await self._load(session, scope, session_id)
            messages = (await session.execute(
                select(Message)
                .where(Message.session_id == session_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
            )).scalars().all()
            return SessionDetail(
                session=SessionRecord.model_validate(row),
                messages=[MessageRecord.model_validate(m) for m in messages],
            )

    async def update(
        self, scope: Scope, session_id: str, *, title: Optional[str] = None, archived: Optional[bool] = None,
    ) -> SessionRecord:
        async with self._db.session() as session:
            row = await self._load(session, scope, session_id)
            if title is not None:
                row.title = title
            if archived is not None:
                row.archived = archived
            if title is not None or archived is not None:
                row.updated_at = utc_now()
            return SessionRecord.model_validate(row)

    async def add_message(
        self, scope: Scope, session_id: str, role: str, content: str, at: Optional[datetime] = None,
    ) -> MessageRecord:
        """Append a message and move ``last_message_at`` forward (never back)."""
        at = to_utc_naive(at) if at else utc_now()
        async with self._db.session() as session:
            row = await self._load(session, scope, session_id)
            floor = row.last_message_at or row.created_at
            row.last_message_at = max(floor, at)
            row.updated_at = utc_now()
            message = Message(id=new_id(), session_id=row.id, role=role, content=content, created_at=at)
            session.add(message)
            await session.flush()
            return MessageRecord.model_validate(message)
