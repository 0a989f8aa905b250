"""
Sessions REST API client.
"""

from typing import Any, AsyncGenerator, Optional

from agent_bridge.models.session import MessageRecord, SessionDetail, SessionPage, SessionRecord
from agent_bridge.transport.http import HttpClient


class SessionsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def list(
        self, limit: Optional[int] = None, cursor: Optional[str] = None, project_id: Optional[str] = None,
    ) -> SessionPage:
        """One page of sessions, most recently active first."""
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if cursor:
            params["cursor"] = cursor
        path = f"/api/projects/{project_id}/sessions" if project_id else "/api/sessions"
        return SessionPage.model_validate(await self._http.get(path, params=params))

    async def iter_all(
        self, page_size: Optional[int] = None, project_id: Optional[str] = None,
    ) -> AsyncGenerator[SessionRecord, None]:
        """Walk every page, following cursors until the last one."""
        cursor: Optional[str] = None
        while True:
            page = await self.list(limit=page_size, cursor=cursor, project_id=project_id)
            for record in page.data:
                yield record
            if not page.cursor:
                return
            cursor = page.cursor

    async def get(self, session_id: str) -> SessionDetail:
        return SessionDetail.model_validate(await self._http.get(f"/api/sessions/{session_id}"))

    async def create(
        self,
        project_id: str,
        title: Optional[str] = None,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> SessionRecord:
        """Create a session in a project; the server adds the project context to its prompt."""
        body = {"title": title, "system_prompt": system_prompt, "model": model, "provider": provider}
        data = await self._http.post(
            f"/api/projects/{project_id}/sessions", {k: v for k, v in body.items() if v is not None},
        )
        return SessionRecord.model_validate(data)

    async def update(
        self, session_id: str, title: Optional[str] = None, archived: Optional[bool] = None,
    ) -> SessionRecord:
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if archived is not None:
            body["archived"] = archived
        return SessionRecord.model_validate(await self._http.patch(f"/api/sessions/{session_id}", body))

    async def add_message(self, session_id: str, content: str, role: str = "user") -> MessageRecord:
        data = await self._http.post(f"/api/sessions/{session_id}/messages", {"role": role, "content": content})
        return MessageRecord.model_validate(data)
