"""
Session, project, folder and document-tool HTTP endpoints.

The caller's workspace arrives in the ``X-Workspace-Id`` header; resolving
it from real credentials is the job of whatever sits in front of this app.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel

from agent_bridge.errors import NotFound, ScopeError
from agent_bridge.models.document import FolderRecord, ProjectRecord
from agent_bridge.models.session import (
    CreateMessageRequest,
    CreateSessionRequest,
    MessageRecord,
    SessionDetail,
    SessionPage,
    SessionRecord,
    UpdateSessionRequest,
)
from agent_bridge.server.db import Database
from agent_bridge.server.documents import DocumentStore
from agent_bridge.server.listing import SessionListingService
from agent_bridge.server.project_context import build_project_context, compose_system_prompt
from agent_bridge.server.store import Scope, SessionStore
from agent_bridge.server.tools import DocumentTools, ToolSpec

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sessions"])


class CreateProjectRequest(BaseModel):
    name: str


class CreateFolderRequest(BaseModel):
    name: str
    parent_id: Optional[str] = None


def get_db(request: Request) -> Database:
    return request.app.state.database


def get_workspace(x_workspace_id: Optional[str] = Header(default=None)) -> str:
    if not x_workspace_id or not x_workspace_id.strip():
        raise ScopeError("Missing X-Workspace-Id header", code="missing_workspace", status_code=401)
    return x_workspace_id.strip()


async def _require_project(documents: DocumentStore, workspace_id: str, project_id: str) -> ProjectRecord:
    project = await documents.get_project(project_id)
    if project is None:
        raise NotFound(f"Project not found: {project_id}", code="project_not_found")
    if project.workspace_id != workspace_id:
        raise ScopeError("Project belongs to another workspace")
    return project


# =============================================================================
# Projects and folders
# =============================================================================


@router.post("/projects", response_model=ProjectRecord, status_code=201)
async def create_project(
    body: CreateProjectRequest,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    return await DocumentStore(db).create_project(workspace_id, body.name)


@router.post("/projects/{project_id}/folders", response_model=FolderRecord, status_code=201)
async def create_folder(
    project_id: str,
    body: CreateFolderRequest,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    documents = DocumentStore(db)
    await _require_project(documents, workspace_id, project_id)
    return await documents.create_folder(project_id, body.name, body.parent_id)


@router.get("/projects/{project_id}/folders", response_model=list[FolderRecord])
async def list_folders(
    project_id: str,
    parent_id: Optional[str] = Query(default=None),
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    """All folders of the project; ``?parent_id=`` (empty) for the root level, ``?parent_id=X`` for children of X."""
    documents = DocumentStore(db)
    await _require_project(documents, workspace_id, project_id)
    if parent_id is None:
        return await documents.list_folders(project_id)
    return await documents.list_folders(project_id, parent_id or None)


# =============================================================================
# Sessions
# =============================================================================


@router.get("/sessions", response_model=SessionPage)
async def list_sessions(
    limit: Optional[int] = Query(default=None),
    cursor: Optional[str] = Query(default=None),
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    """Sessions of the workspace, most recently active first."""
    service = SessionListingService(SessionStore(db))
    return await service.list(Scope(workspace_id), limit=limit, cursor=cursor)


@router.get("/projects/{project_id}/sessions", response_model=SessionPage)
async def list_project_sessions(
    project_id: str,
    limit: Optional[int] = Query(default=None),
    cursor: Optional[str] = Query(default=None),
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    await _require_project(DocumentStore(db), workspace_id, project_id)
    service = SessionListingService(SessionStore(db))
    return await service.list(Scope(workspace_id, project_id), limit=limit, cursor=cursor)


@router.post("/projects/{project_id}/sessions", response_model=SessionRecord, status_code=201)
async def create_project_session(
    project_id: str,
    body: CreateSessionRequest,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    """Create a session whose system prompt carries the project context."""
    documents = DocumentStore(db)
    await _require_project(documents, workspace_id, project_id)
    context = await build_project_context(documents, project_id)
    record = await SessionStore(db).create(
        Scope(workspace_id, project_id),
        title=body.title,
        model=body.model,
        provider=body.provider,
        system_prompt=compose_system_prompt(body.system_prompt, context),
    )
    logger.info("Created session %s in project %s", record.id, project_id)
    return record


@router.get("/sessions/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: str,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    return await SessionStore(db).get(Scope(workspace_id), session_id)


@router.patch("/sessions/{session_id}", response_model=SessionRecord)
async def update_session(
    session_id: str,
    body: UpdateSessionRequest,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    return await SessionStore(db).update(
        Scope(workspace_id), session_id, title=body.title, archived=body.archived,
    )


@router.post("/sessions/{session_id}/messages", response_model=MessageRecord, status_code=201)
async def add_message(
    session_id: str,
    body: CreateMessageRequest,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    return await SessionStore(db).add_message(Scope(workspace_id), session_id, body.role, body.content)


# =============================================================================
# Document tools
# =============================================================================


@router.get("/projects/{project_id}/tools", response_model=list[ToolSpec])
async def list_tools(
    project_id: str,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
):
    documents = DocumentStore(db)
    await _require_project(documents, workspace_id, project_id)
    return DocumentTools(documents, project_id).tool_specs()


@router.post("/projects/{project_id}/tools/{name}")
async def call_tool(
    project_id: str,
    name: str,
    arguments: Optional[dict[str, Any]] = None,
    workspace_id: str = Depends(get_workspace),
    db: Database = Depends(get_db),
) -> dict[str, Any]:
    """Run one document tool on behalf of the agent runtime."""
    documents = DocumentStore(db)
    await _require_project(documents, workspace_id, project_id)
    return await DocumentTools(documents, project_id).call(name, arguments)
