"""
Project-scoped document storage.

Every read and write is confined to one project; documents of another
project, and soft-deleted ones, are invisible here.
"""

import logging
from typing import Any, Optional

from sqlalchemy import func, select

from agent_bridge.errors import NotFound
from agent_bridge.models.document import DocumentRecord, FolderRecord, ProjectRecord
from agent_bridge.server.db import Database, Document, Folder, Project, new_id, utc_now

logger = logging.getLogger(__name__)

# Passed as ``folder_id`` to list every document regardless of folder.
ALL_FOLDERS: Any = object()

# Guards breadcrumb walks against a corrupt parent chain.
MAX_FOLDER_DEPTH = 64


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DocumentStore:
    def __init__(self, db: Database):
        self._db = db

    # -------------------------------------------------------------------------
    # Projects and folders
    # -------------------------------------------------------------------------

    async def create_project(self, workspace_id: str, name: str, project_id: Optional[str] = None) -> ProjectRecord:
        row = Project(id=project_id or new_id(), workspace_id=workspace_id, name=name, created_at=utc_now())
        async with self._db.session() as session:
            session.add(row)
            await session.flush()
            return ProjectRecord.model_validate(row)

    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        async with self._db.session() as session:
            row = (await session.execute(
                select(Project).where(Project.id == project_id, Project.deleted_at.is_(None))
            )).scalar_one_or_none()
            return ProjectRecord.model_validate(row) if row else None

    async def create_folder(self, project_id: str, name: str, parent_id: Optional[str] = None) -> FolderRecord:
        async with self._db.session() as session:
            if parent_id is not None:
                await self._load_folder(session, project_id, parent_id)
            row = Folder(id=new_id(), project_id=project_id, parent_id=parent_id, name=name, created_at=utc_now())
            session.add(row)
            await session.flush()
            return FolderRecord.model_validate(row)

    async def list_folders(self, project_id: str, parent_id: Any = ALL_FOLDERS) -> list[FolderRecord]:
        """Folders by name. ``ALL_FOLDERS`` lists the whole tree; None lists the root level."""
        stmt = select(Folder).where(Folder.project_id == project_id)
        if parent_id is None:
            stmt = stmt.where(Folder.parent_id.is_(None))
        elif parent_id is not ALL_FOLDERS:
            stmt = stmt.where(Folder.parent_id == parent_id)
        async with self._db.session() as session:
            rows = (await session.execute(stmt.order_by(Folder.name.asc(), Folder.id.asc()))).scalars().all()
            return [FolderRecord.model_validate(row) for row in rows]

    async def _load_folder(self, session, project_id: str, folder_id: str) -> Folder:
        row = (await session.execute(
            select(Folder).where(Folder.id == folder_id, Folder.project_id == project_id)
        )).scalar_one_or_none()
        if row is None:
            raise NotFound(f"Folder not found: {folder_id}", code="folder_not_found")
        return row

    async def breadcrumb(self, project_id: str, folder_id: Optional[str]) -> list[str]:
        """Folder names from the project root down to ``folder_id``."""
        names: list[str] = []
        async with self._db.session() as session:
            current = folder_id
            while current is not None and len(names) < MAX_FOLDER_DEPTH:
                row = (await session.execute(
                    select(Folder).where(Folder.id == current, Folder.project_id == project_id)
                )).scalar_one_or_none()
                if row is None:
                    break
                names.append(row.name)
                current = row.parent_id
        names.reverse()
        return names

    async def folder_path(self, project_id: str, folder_id: Optional[str]) -> str:
        """``/`` for the root, otherwise ``/A/B/``."""
        names = await self.breadcrumb(project_id, folder_id)
        if not names:
            return "/"
        return "/" + "/".join(names) + "/"

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def _live(self, project_id: str):
        return select(Document).where(Document.project_id == project_id, Document.deleted_at.is_(None))

    async def _load(self, session, project_id: str, doc_id: str) -> Document:
        row = (await session.execute(
            self._live(project_id).where(Document.id == doc_id)
        )).scalar_one_or_none()
        if row is None:
            raise NotFound(f"Document not found: {doc_id}", code="document_not_found")
        return row

    async def create(
        self, project_id: str, name: str, content: str = "", folder_id: Optional[str] = None,
    ) -> DocumentRecord:
        now = utc_now()
        async with self._db.session() as session:
            if folder_id is not None:
                await self._load_folder(session, project_id, folder_id)
            row = Document(
                id=new_id(), project_id=project_id, folder_id=folder_id, name=name,
                content=content or "", created_at=now, updated_at=now,
            )
            session.add(row)
            await session.flush()
            logger.debug("Created document %s in project %s", row.id, project_id)
            return DocumentRecord.model_validate(row)

    async def get(self, project_id: str, doc_id: str) -> Optional[DocumentRecord]:
        async with self._db.session() as session:
            row = (await session.execute(
                self._live(project_id).where(Document.id == doc_id)
            )).scalar_one_or_none()
            return DocumentRecord.model_validate(row) if row else None

    async def count(self, project_id: str) -> int:
        async with self._db.session() as session:
            return (await session.execute(
                select(func.count()).select_from(Document).where(
                    Document.project_id == project_id, Document.deleted_at.is_(None)
                )
            )).scalar_one()

    async def list_page(
        self, project_id: str, folder_id: Any = ALL_FOLDERS, limit: int = 50, offset: int = 0,
    ) -> tuple[list[DocumentRecord], int]:
        """One page of documents, most recently updated first, plus the total.

        ``folder_id`` None restricts to the project root; ``ALL_FOLDERS``
        lists every folder.
        """
        stmt = self._live(project_id)
        if folder_id is not ALL_FOLDERS:
            stmt = stmt.where(Document.folder_id.is_(None) if folder_id is None else Document.folder_id == folder_id)
        async with self._db.session() as session:
            total = (await session.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()
            rows = (await session.execute(
                stmt.order_by(Document.updated_at.desc(), Document.id.asc()).limit(limit).offset(offset)
            )).scalars().all()
            return [DocumentRecord.model_validate(r) for r in rows], total

    async def search(self, project_id: str, query: str, limit: int = 20) -> list[DocumentRecord]:
        """Case-insensitive substring match on document names."""
        pattern = f"%{_escape_like(query.strip())}%"
        async with self._db.session() as session:
            rows = (await session.execute(
                self._live(project_id)
                .where(Document.name.ilike(pattern, escape="\\"))
                .order_by(Document.updated_at.desc(), Document.id.asc())
                .limit(limit)
            )).scalars().all()
            return [DocumentRecord.model_validate(r) for r in rows]

    async def edit(self, project_id: str, doc_id: str, old_text: str, new_text: str) -> bool:
        """Replace the first occurrence of ``old_text``. False when it is absent."""
        async with self._db.session() as session:
            row = await self._load(session, project_id, doc_id)
            index = row.content.find(old_text)
            if not old_text or index == -1:
                return False
            row.content = row.content[:index] + new_text + row.content[index + len(old_text):]
            row.updated_at = utc_now()
            return True

    async def append(self, project_id: str, doc_id: str, content: str) -> None:
        async with self._db.session() as session:
            row = await self._load(session, project_id, doc_id)
            row.content = row.content + content
            row.updated_at = utc_now()

    async def move(self, project_id: str, doc_id: str, folder_id: Optional[str]) -> None:
        async with self._db.session() as session:
            row = await self._load(session, project_id, doc_id)
            if folder_id is not None:
                await self._load_folder(session, project_id, folder_id)
            row.folder_id = folder_id
            row.updated_at = utc_now()

    async def delete(self, project_id: str, doc_id: str) -> None:
        async with self._db.session() as session:
            row = await self._load(session, project_id, doc_id)
            row.deleted_at = utc_now()
            logger.info("Deleted document %s in project %s", doc_id, project_id)
