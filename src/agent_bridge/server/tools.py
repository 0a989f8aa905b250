"""
Document tools exposed to the agent runtime.

Each tool takes JSON arguments and returns a JSON-serializable dict. Bad
input, unknown tools and missing documents come back as ``{"error": ...}``
payloads for the model to read, never as exceptions.
"""

import logging
import re
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agent_bridge.errors import NotFound
from agent_bridge.server.documents import ALL_FOLDERS, DocumentStore

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 60_000
DOC_LIST_DEFAULT_LIMIT = 50
DOC_LIST_MAX_LIMIT = 100
DOC_SEARCH_DEFAULT_LIMIT = 20
DOC_SEARCH_MAX_LIMIT = 100

_HEADING_PREFIX = re.compile(r"^\s{0,3}#{1,6}\s+")
_QUOTES = ('"', "'", "`")


class ToolSpec(BaseModel):
    """Registry entry in function-calling shape; ``parameters`` is a JSON schema."""
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Arguments
# =============================================================================


class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DocReadArgs(_Args):
    id: str = Field(description="Document ID")


class DocListArgs(_Args):
    folder_id: Optional[str] = Field(
        default=None, description="Folder ID to list. Omit for all documents. Use null for project root.",
    )
    limit: Optional[int] = Field(default=None, description="Max documents to return (default 50, max 100)")
    offset: Optional[int] = Field(default=None, description="Skip this many documents (for pagination)")


class DocSearchArgs(_Args):
    query: str = Field(description="Search query (matched against document name)")
    limit: Optional[int] = Field(default=None, description="Max results to return (default 20, max 100)")


class DocCreateArgs(_Args):
    name: str = Field(description="Document name/title")
    content: Optional[str] = Field(default=None, description="Initial markdown content")
    folder_id: Optional[str] = Field(default=None, description="Folder ID to create in. Omit for project root.")


class DocEditArgs(_Args):
    id: str = Field(description="Document ID")
    old_text: str = Field(description="Text to find (must match exactly)")
    new_text: str = Field(description="Text to replace it with")


class DocAppendArgs(_Args):
    id: str = Field(description="Document ID")
    content: str = Field(description="Markdown content to append")


class DocMoveArgs(_Args):
    id: str = Field(description="Document ID")
    folder_id: Optional[str] = Field(description="Target folder ID, or null for project root")


class DocDeleteArgs(_Args):
    id: str = Field(description="Document ID")


class FolderCreateArgs(_Args):
    name: str = Field(description="Folder name")
    parent_id: Optional[str] = Field(default=None, description="Parent folder ID. Omit for project root.")


class FolderListArgs(_Args):
    parent_id: Optional[str] = Field(
        default=None, description="Parent folder ID. Omit for all folders. Use null for project root.",
    )


# =============================================================================
# Helpers
# =============================================================================


def _clamp(value: Optional[int], default: int, maximum: int) -> int:
    if value is None:
        return default
    return max(1, min(value, maximum))


def unquote(text: str) -> str:
    """Strip one pair of matching quotes or backticks around ``text``."""
    trimmed = text.strip()
    if len(trimmed) >= 2 and trimmed[0] in _QUOTES and trimmed[-1] == trimmed[0]:
        return trimmed[1:-1]
    return trimmed


def old_text_candidates(old_text: str) -> list[str]:
    """Variants of ``old_text`` to try in order: as given, unquoted, heading marker removed."""
    candidates: list[str] = []

    def add(value: str) -> None:
        value = value.strip()
        if value and value not in candidates:
            candidates.append(value)

    add(old_text)
    unquoted = unquote(old_text)
    add(unquoted)
    stripped = _HEADING_PREFIX.sub("", unquoted, count=1)
    if stripped != unquoted:
        add(stripped)
    return candidates


# =============================================================================
# Tools
# =============================================================================


class DocumentTools:
    """The document tool set bound to one project."""

    def __init__(self, store: DocumentStore, project_id: str):
        self.store = store
        self.project_id = project_id
        self._registry: dict[str, tuple[str, type[_Args], Callable[[Any], Awaitable[dict[str, Any]]]]] = {
            "doc_read": (
                "Read a document as markdown. For large documents, content may be truncated.",
                DocReadArgs, self.doc_read,
            ),
            "doc_list": (
                "List documents in the project. Supports pagination for large projects.",
                DocListArgs, self.doc_list,
            ),
            "doc_search": ("Search documents by name (case-insensitive).", DocSearchArgs, self.doc_search),
            "doc_create": (
                "Create a new markdown document. Optionally specify a folder.", DocCreateArgs, self.doc_create,
            ),
            "doc_edit": (
                "Find and replace text in a document. The old_text must match exactly.",
                DocEditArgs, self.doc_edit,
            ),
            "doc_append": ("Append markdown content to the end of a document.", DocAppendArgs, self.doc_append),
            "doc_move": ("Move a document to a different folder.", DocMoveArgs, self.doc_move),
            "doc_delete": ("Delete a document. This cannot be undone.", DocDeleteArgs, self.doc_delete),
            "folder_create": ("Create a new folder.", FolderCreateArgs, self.folder_create),
            "folder_list": ("List folders.", FolderListArgs, self.folder_list),
        }

    def tool_specs(self) -> list[ToolSpec]:
        return [
            ToolSpec(name=name, description=description, parameters=args_model.model_json_schema())
            for name, (description, args_model, _) in self._registry.items()
        ]

    async def call(self, name: str, arguments: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Validate ``arguments`` and run the named tool."""
        entry = self._registry.get(name)
        if entry is None:
            return {"error": f"Unknown tool: {name}"}
        _, args_model, handler = entry
        try:
            args = args_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.warning("Invalid arguments for %s: %s", name, e)
            return {"error": f"Invalid arguments for {name}: {e.errors(include_url=False)}"}
        try:
            return await handler(args)
        except NotFound as e:
            return {"success": False, "error": e.message}

    async def doc_read(self, args: DocReadArgs) -> dict[str, Any]:
        doc = await self.store.get(self.project_id, args.id)
        if doc is None:
            return {"error": "Document not found"}
        content = doc.content
        truncated = len(content) >= MAX_CONTENT_LENGTH
        result: dict[str, Any] = {"id": doc.id, "name": doc.name}
        if truncated:
            result["content"] = content[:MAX_CONTENT_LENGTH - 1]
            result["truncated"] = True
            result["note"] = (
                f"Content truncated at {MAX_CONTENT_LENGTH - 1} characters "
                f"(document is {len(content)} characters total)."
            )
        else:
            result["content"] = content
            result["truncated"] = False
        return result

    async def doc_list(self, args: DocListArgs) -> dict[str, Any]:
        limit = _clamp(args.limit, DOC_LIST_DEFAULT_LIMIT, DOC_LIST_MAX_LIMIT)
        offset = max(args.offset or 0, 0)
        # An omitted folder_id lists everything; an explicit null means the root.
        folder_id = args.folder_id if "folder_id" in args.model_fields_set else ALL_FOLDERS
        docs, total = await self.store.list_page(self.project_id, folder_id=folder_id, limit=limit, offset=offset)
        return {
            "documents": [doc.summary() for doc in docs],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def doc_search(self, args: DocSearchArgs) -> dict[str, Any]:
        limit = _clamp(args.limit, DOC_SEARCH_DEFAULT_LIMIT, DOC_SEARCH_MAX_LIMIT)
        docs = await self.store.search(self.project_id, args.query, limit)
        return {"documents": [doc.summary() for doc in docs]}

    async def doc_create(self, args: DocCreateArgs) -> dict[str, Any]:
        doc = await self.store.create(self.project_id, args.name, args.content or "", args.folder_id)
        return doc.summary()

    async def doc_edit(self, args: DocEditArgs) -> dict[str, Any]:
        new_text = unquote(args.new_text)
        for candidate in old_text_candidates(args.old_text):
            if await self.store.edit(self.project_id, args.id, candidate, new_text):
                return {"success": True}
        return {"success": False, "error": "old_text not found in document"}

    async def doc_append(self, args: DocAppendArgs) -> dict[str, Any]:
        await self.store.append(self.project_id, args.id, args.content)
        return {"success": True}

    async def doc_move(self, args: DocMoveArgs) -> dict[str, Any]:
        await self.store.move(self.project_id, args.id, args.folder_id)
        return {"success": True}

    async def doc_delete(self, args: DocDeleteArgs) -> dict[str, Any]:
        await self.store.delete(self.project_id, args.id)
        return {"success": True}

    async def folder_create(self, args: FolderCreateArgs) -> dict[str, Any]:
        folder = await self.store.create_folder(self.project_id, args.name, args.parent_id)
        return folder.summary()

    async def folder_list(self, args: FolderListArgs) -> dict[str, Any]:
        parent_id = args.parent_id if "parent_id" in args.model_fields_set else ALL_FOLDERS
        folders = await self.store.list_folders(self.project_id, parent_id)
        return {"folders": [folder.summary() for folder in folders]}
