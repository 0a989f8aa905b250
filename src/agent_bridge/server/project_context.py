"""
Project context summary embedded in a session's system prompt.

Small projects get their documents listed inline; large ones only get the
document count and a pointer to the lookup tools, so the prompt stays
bounded no matter how big the project grows.
"""

from typing import Optional

from pydantic import BaseModel, Field

from agent_bridge.server.documents import DocumentStore

SMALL_PROJECT_DOC_LIMIT = 20


class DocSummary(BaseModel):
    id: str
    name: str
    folder_path: str = "/"


class ProjectContext(BaseModel):
    project_id: str
    project_name: str
    document_count: int
    documents: list[DocSummary] = Field(default_factory=list)
    is_large_project: bool = False


async def build_project_context(store: DocumentStore, project_id: str) -> Optional[ProjectContext]:
    """Summarize a project, or None if it does not exist."""
    project = await store.get_project(project_id)
    if project is None:
        return None

    count = await store.count(project_id)
    is_large = count >= SMALL_PROJECT_DOC_LIMIT
    documents: list[DocSummary] = []
    if not is_large and count > 0:
        docs, _ = await store.list_page(project_id, limit=SMALL_PROJECT_DOC_LIMIT)
        for doc in docs:
            documents.append(DocSummary(
                id=doc.id,
                name=doc.name,
                folder_path=await store.folder_path(project_id, doc.folder_id),
            ))

    return ProjectContext(
        project_id=project.id,
        project_name=project.name,
        document_count=count,
        documents=documents,
        is_large_project=is_large,
    )


def format_project_context_prompt(context: ProjectContext) -> str:
    """Render the summary as a markdown prompt section."""
    lines = [
        "## Project Context",
        "",
        f'You are working in project "{context.project_name}".',
        "",
    ]
    if context.is_large_project:
        lines += [
            f"This project contains {context.document_count} documents. Use the document tools to:",
            "- `doc_list` - List documents (supports pagination with `folder_id`, `limit`, and `offset`)",
            "- `doc_search` - Search documents by name",
            "- `doc_read` - Read a specific document by ID",
            "",
            "When the user mentions a document by name, use doc_search to find it first.",
        ]
    elif context.documents:
        lines += ["### Documents in this project:", ""]
        for doc in context.documents:
            path = "" if doc.folder_path == "/" else f" ({doc.folder_path})"
            lines.append(f"- **{doc.name}**{path} - ID: `{doc.id}`")
        lines += ["", "You can read any document using `doc_read` with its ID."]
    else:
        lines.append("This project has no documents yet. Use `doc_create` to create one.")
    return "\n".join(lines)


def compose_system_prompt(custom_prompt: Optional[str], context: Optional[ProjectContext]) -> Optional[str]:
    """Caller-supplied prompt first, then the project section."""
    parts = []
    if custom_prompt and custom_prompt.strip():
        parts.append(custom_prompt.strip())
    if context is not None:
        parts.append(format_project_context_prompt(context))
    return "\n\n".join(parts) or None
