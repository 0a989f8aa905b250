"""Document store, document tools and project context."""

import pytest
import pytest_asyncio

from agent_bridge.server.db import Database
from agent_bridge.server.documents import DocumentStore
from agent_bridge.server.project_context import (
    build_project_context,
    compose_system_prompt,
    format_project_context_prompt,
)
from agent_bridge.server.tools import MAX_CONTENT_LENGTH, DocumentTools, old_text_candidates, unquote


@pytest_asyncio.fixture
async def store(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'docs.db'}")
    await database.init_db()
    yield DocumentStore(database)
    await database.close()


@pytest_asyncio.fixture
async def project(store):
    return await store.create_project("ws-1", "Handbook")


@pytest_asyncio.fixture
async def tools(store, project):
    return DocumentTools(store, project.id)


def test_unquote():
    assert unquote('"hello"') == "hello"
    assert unquote("`code`") == "code"
    assert unquote("'mismatched\"") == "'mismatched\""
    assert unquote("  plain  ") == "plain"


def test_old_text_candidates():
    assert old_text_candidates('"## Intro"') == ['"## Intro"', "## Intro", "Intro"]
    assert old_text_candidates("plain") == ["plain"]


class TestDocRead:
    @pytest.mark.asyncio
    async def test_small_document_is_whole(self, store, project, tools):
        doc = await store.create(project.id, "Notes", "# Notes\nshort")
        result = await tools.call("doc_read", {"id": doc.id})
        assert result["content"] == "# Notes\nshort"
        assert result["truncated"] is False
        assert "note" not in result

    @pytest.mark.asyncio
    async def test_large_document_is_truncated(self, store, project, tools):
        doc = await store.create(project.id, "Big", "x" * 70_000)
        result = await tools.call("doc_read", {"id": doc.id})
        assert result["truncated"] is True
        assert len(result["content"]) < MAX_CONTENT_LENGTH
        assert "70000" in result["note"]

    @pytest.mark.asyncio
    async def test_document_at_ceiling_is_truncated(self, store, project, tools):
        doc = await store.create(project.id, "Edge", "y" * MAX_CONTENT_LENGTH)
        result = await tools.call("doc_read", {"id": doc.id})
        assert result["truncated"] is True
        assert len(result["content"]) == MAX_CONTENT_LENGTH - 1

    @pytest.mark.asyncio
    async def test_missing_document(self, tools):
        assert await tools.call("doc_read", {"id": "nope"}) == {"error": "Document not found"}

    @pytest.mark.asyncio
    async def test_other_project_is_invisible(self, store, project, tools):
        other = await store.create_project("ws-1", "Other")
        doc = await store.create(other.id, "Secret", "hidden")
        assert await tools.call("doc_read", {"id": doc.id}) == {"error": "Document not found"}


class TestDocList:
    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, store, project, tools):
        for i in range(105):
            await store.create(project.id, f"Doc {i}")
        result = await tools.call("doc_list", {"limit": 500})
        assert result["limit"] == 100
        assert len(result["documents"]) == 100
        assert result["total"] == 105

    @pytest.mark.asyncio
    async def test_offset_skips_rows_and_is_clamped(self, store, project, tools):
        for i in range(5):
            await store.create(project.id, f"Doc {i}")
        result = await tools.call("doc_list", {"limit": 2, "offset": 4})
        assert len(result["documents"]) == 1
        negative = await tools.call("doc_list", {"offset": -3})
        assert negative["offset"] == 0
        assert len(negative["documents"]) == 5

    @pytest.mark.asyncio
    async def test_folder_filter(self, store, project, tools):
        folder = await store.create_folder(project.id, "Design")
        await store.create(project.id, "Root doc")
        await store.create(project.id, "Roadmap", folder_id=folder.id)

        everything = await tools.call("doc_list", {})
        assert everything["total"] == 2
        root = await tools.call("doc_list", {"folder_id": None})
        assert [d["name"] for d in root["documents"]] == ["Root doc"]
        in_folder = await tools.call("doc_list", {"folder_id": folder.id})
        assert [d["name"] for d in in_folder["documents"]] == ["Roadmap"]


class TestDocSearch:
    @pytest.mark.asyncio
    async def test_case_insensitive_name_match(self, store, project, tools):
        await store.create(project.id, "Roadmap 2026")
        await store.create(project.id, "Meeting notes")
        result = await tools.call("doc_search", {"query": "ROADMAP"})
        assert [d["name"] for d in result["documents"]] == ["Roadmap 2026"]

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, store, project, tools):
        await store.create(project.id, "100% done")
        await store.create(project.id, "1000 things")
        result = await tools.call("doc_search", {"query": "100%"})
        assert [d["name"] for d in result["documents"]] == ["100% done"]


class TestWriteTools:
    @pytest.mark.asyncio
    async def test_create_edit_append(self, store, project, tools):
        created = await tools.call("doc_create", {"name": "Plan", "content": "# Intro\nDraft"})
        doc_id = created["id"]

        assert await tools.call("doc_edit", {"id": doc_id, "old_text": '"# Intro"', "new_text": "# Overview"}) == {
            "success": True,
        }
        assert await tools.call("doc_append", {"id": doc_id, "content": "\nMore"}) == {"success": True}
        doc = await store.get(project.id, doc_id)
        assert doc.content == "# Overview\nDraft\nMore"

    @pytest.mark.asyncio
    async def test_edit_missing_text(self, store, project, tools):
        doc = await store.create(project.id, "Plan", "body")
        result = await tools.call("doc_edit", {"id": doc.id, "old_text": "absent", "new_text": "x"})
        assert result == {"success": False, "error": "old_text not found in document"}

    @pytest.mark.asyncio
    async def test_move_and_delete(self, store, project, tools):
        folder = await store.create_folder(project.id, "Archive")
        doc = await store.create(project.id, "Old")
        assert await tools.call("doc_move", {"id": doc.id, "folder_id": folder.id}) == {"success": True}
        assert (await store.get(project.id, doc.id)).folder_id == folder.id

        assert await tools.call("doc_delete", {"id": doc.id}) == {"success": True}
        assert await store.get(project.id, doc.id) is None
        assert await store.count(project.id) == 0

    @pytest.mark.asyncio
    async def test_bad_input_is_an_error_payload(self, tools):
        assert "error" in await tools.call("doc_read", {})
        assert await tools.call("doc_explode", {}) == {"error": "Unknown tool: doc_explode"}
        missing = await tools.call("doc_append", {"id": "nope", "content": "x"})
        assert missing["success"] is False

    @pytest.mark.asyncio
    async def test_tool_specs(self, tools):
        specs = {spec.name: spec for spec in tools.tool_specs()}
        assert set(specs) == {
            "doc_read", "doc_list", "doc_search", "doc_create",
            "doc_edit", "doc_append", "doc_move", "doc_delete",
            "folder_create", "folder_list",
        }
        assert specs["doc_read"].parameters["required"] == ["id"]
        assert "query" in specs["doc_search"].parameters["properties"]
        assert specs["folder_create"].parameters["required"] == ["name"]


class TestFolderTools:
    @pytest.mark.asyncio
    async def test_create_nested_folders_and_file_into_them(self, store, project, tools):
        design = await tools.call("folder_create", {"name": "Design"})
        assert design["parent_id"] is None
        backend = await tools.call("folder_create", {"name": "Backend", "parent_id": design["id"]})
        assert backend["parent_id"] == design["id"]

        doc = await tools.call("doc_create", {"name": "API", "folder_id": backend["id"]})
        assert doc["folder_id"] == backend["id"]
        assert await store.folder_path(project.id, backend["id"]) == "/Design/Backend/"

        other = await tools.call("doc_create", {"name": "Loose"})
        assert await tools.call("doc_move", {"id": other["id"], "folder_id": design["id"]}) == {"success": True}
        listed = await tools.call("doc_list", {"folder_id": design["id"]})
        assert [d["name"] for d in listed["documents"]] == ["Loose"]

    @pytest.mark.asyncio
    async def test_unknown_parent_is_an_error_payload(self, tools):
        result = await tools.call("folder_create", {"name": "Orphan", "parent_id": "missing"})
        assert result["success"] is False
        assert "missing" in result["error"]

    @pytest.mark.asyncio
    async def test_folder_list_filters_by_parent(self, store, project, tools):
        zeta = await store.create_folder(project.id, "Zeta")
        alpha = await store.create_folder(project.id, "Alpha")
        child = await store.create_folder(project.id, "Child", parent_id=zeta.id)

        everything = await tools.call("folder_list", {})
        assert [f["name"] for f in everything["folders"]] == ["Alpha", "Child", "Zeta"]
        root = await tools.call("folder_list", {"parent_id": None})
        assert [f["id"] for f in root["folders"]] == [alpha.id, zeta.id]
        children = await tools.call("folder_list", {"parent_id": zeta.id})
        assert children["folders"] == [{"id": child.id, "name": "Child", "parent_id": zeta.id}]

    @pytest.mark.asyncio
    async def test_folders_are_project_scoped(self, store, project, tools):
        elsewhere = await store.create_project("ws-1", "Other")
        foreign = await store.create_folder(elsewhere.id, "Private")
        assert (await tools.call("folder_list", {}))["folders"] == []
        result = await tools.call("doc_create", {"name": "Sneaky", "folder_id": foreign.id})
        assert result["success"] is False


class TestProjectContext:
    @pytest.mark.asyncio
    async def test_small_project_lists_every_document(self, store, project):
        folder = await store.create_folder(project.id, "Design")
        sub = await store.create_folder(project.id, "Backend", parent_id=folder.id)
        docs = [await store.create(project.id, f"Doc {i}") for i in range(4)]
        docs.append(await store.create(project.id, "API", folder_id=sub.id))

        context = await build_project_context(store, project.id)
        assert context.document_count == 5
        assert context.is_large_project is False
        assert {d.id for d in context.documents} == {d.id for d in docs}

        prompt = format_project_context_prompt(context)
        assert prompt.startswith("## Project Context")
        assert 'You are working in project "Handbook".' in prompt
        for doc in docs:
            assert f"ID: `{doc.id}`" in prompt
        assert "- **API** (/Design/Backend/) - ID:" in prompt
        assert "- **Doc 0** - ID:" in prompt

    @pytest.mark.asyncio
    async def test_large_project_lists_none(self, store, project):
        docs = [await store.create(project.id, f"Doc {i}") for i in range(25)]
        context = await build_project_context(store, project.id)
        assert context.is_large_project is True
        assert context.documents == []

        prompt = format_project_context_prompt(context)
        assert "This project contains 25 documents." in prompt
        for tool in ("doc_list", "doc_search", "doc_read"):
            assert f"`{tool}`" in prompt
        assert not any(doc.id in prompt for doc in docs)

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, store, project):
        for i in range(20):
            await store.create(project.id, f"Doc {i}")
        context = await build_project_context(store, project.id)
        assert context.is_large_project is True

    @pytest.mark.asyncio
    async def test_empty_project(self, store, project):
        prompt = format_project_context_prompt(await build_project_context(store, project.id))
        assert "This project has no documents yet." in prompt

    @pytest.mark.asyncio
    async def test_unknown_project(self, store):
        assert await build_project_context(store, "missing") is None

    @pytest.mark.asyncio
    async def test_compose_system_prompt(self, store, project):
        context = await build_project_context(store, project.id)
        composed = compose_system_prompt("Be terse.", context)
        assert composed.startswith("Be terse.\n\n## Project Context")
        assert compose_system_prompt(None, None) is None
