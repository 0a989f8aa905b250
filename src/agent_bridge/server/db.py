"""
SQL storage for sessions, messages, projects, folders and documents.

Async SQLAlchemy over aiosqlite by default; any async URL works. Timestamps
are stored as naive UTC. Every ``SQLAlchemyError`` leaving a session is
re-raised as ``StorageError`` and never retried here.
"""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from agent_bridge.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///agent_bridge.db"

Base = declarative_base()


def utc_now() -> datetime:
    """Naive UTC now, the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# ORM Models
# =============================================================================


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    deleted_at = Column(DateTime, nullable=True)


class Folder(Base):
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    parent_id = Column(String(36), ForeignKey("folders.id"), nullable=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Document(Base):
    """A markdown document. ``folder_id`` NULL means the project root."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id"), nullable=True)
    name = Column(String(512), nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_documents_project_folder", "project_id", "folder_id"),)


class AgentSession(Base):
    """A chat session.

    ``created_at`` never changes. ``last_message_at`` starts NULL and only
    moves forward as messages arrive; listing order is derived from both
    (see ``agent_bridge.server.ordering``).
    """

    __tablename__ = "agent_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=True)
    title = Column(String(255), nullable=False, default="New Session")
    model = Column(String(128), nullable=True)
    provider = Column(String(64), nullable=True)
    system_prompt = Column(Text, nullable=True)
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    last_message_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_agent_sessions_scope", "workspace_id", "project_id", "archived"),)


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("agent_sessions.id"), nullable=False, index=True)
    role = Column(String(32), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


# =============================================================================
# Database handle
# =============================================================================


class Database:
    def __init__(self, database_url: str = DEFAULT_DATABASE_URL, echo: bool = False):
        self.database_url = database_url
        self.engine = create_async_engine(database_url, echo=echo)
        self.async_session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init_db(self) -> None:
        """Create tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Unit of work: commit on success, roll back and wrap storage failures."""
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Storage operation failed: %s", e)
                raise StorageError(f"Storage operation failed: {e.__class__.__name__}") from e
            except Exception:
                await session.rollback()
                raise


def database_url_from_env() -> str:
    return os.environ.get("AGENT_BRIDGE_DATABASE_URL") or DEFAULT_DATABASE_URL

