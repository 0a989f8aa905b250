"""CLI: agent-bridge sessions list|show|create|rename|archive"""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from agent_bridge.models.session import SessionRecord

console = Console()


def _get_client():
    from agent_bridge.cli.main import _get_client
    return _get_client(workspace_required=True)


def _run(coro):
    from agent_bridge.cli.main import _run
    return _run(coro)


def _activity(s: SessionRecord) -> str:
    return (s.last_message_at or s.created_at).isoformat(timespec="seconds")


@click.group()
def sessions():
    """Session management."""


@sessions.command("list")
@click.option("--project", "project_id", default=None, help="Only sessions of this project.")
@click.option("--limit", default=None, type=int, help="Page size (max 100).")
@click.option("--cursor", default=None, help="Cursor from a previous page.")
@click.option("--all", "fetch_all", is_flag=True, help="Follow cursors through every page.")
@click.option("--json-output", "--json", is_flag=True)
def sessions_list(
    project_id: Optional[str], limit: Optional[int], cursor: Optional[str], fetch_all: bool, json_output: bool,
):
    """List sessions, most recently active first."""

    async def _list():
        client = _get_client()
        try:
            if fetch_all:
                records = [s async for s in client.sessions.iter_all(page_size=limit, project_id=project_id)]
                next_cursor = None
            else:
                page = await client.sessions.list(limit=limit, cursor=cursor, project_id=project_id)
                records, next_cursor = page.data, page.cursor
        finally:
            await client.stop()

        if json_output:
            click.echo(json.dumps({
                "data": [s.model_dump(mode="json") for s in records],
                "cursor": next_cursor,
            }, indent=2))
            return
        table = Table(title=f"Sessions ({len(records)})")
        table.add_column("ID", style="bold")
        table.add_column("Title")
        table.add_column("Project")
        table.add_column("Last activity")
        for s in records:
            table.add_row(s.id, s.title, s.project_id or "", _activity(s))
        console.print(table)
        if next_cursor:
            console.print(f"[dim]Next page: --cursor {next_cursor}[/dim]")

    _run(_list())


@sessions.command("show")
@click.argument("session_id")
def sessions_show(session_id: str):
    """Show a session and its messages."""

    async def _show():
        client = _get_client()
        try:
            detail = await client.sessions.get(session_id)
        finally:
            await client.stop()
        s = detail.session
        console.print(f"[bold]{s.title}[/bold] [dim]{s.id}[/dim]")
        for m in detail.messages:
            console.print(f"[cyan]{m.role}:[/cyan] {m.content}")

    _run(_show())


@sessions.command("create")
@click.argument("project_id")
@click.option("--title", default=None)
@click.option("--system-prompt", default=None)
def sessions_create(project_id: str, title: Optional[str], system_prompt: Optional[str]):
    """Create a session in a project."""

    async def _create():
        client = _get_client()
        try:
            with console.status("Creating session..."):
                session = await client.sessions.create(project_id, title=title, system_prompt=system_prompt)
        finally:
            await client.stop()
        console.print(f"[green]Session created: {session.id}[/green]")

    _run(_create())


@sessions.command("rename")
@click.argument("session_id")
@click.argument("title")
def sessions_rename(session_id: str, title: str):
    """Rename a session."""

    async def _rename():
        client = _get_client()
        try:
            await client.sessions.update(session_id, title=title)
        finally:
            await client.stop()
        console.print(f"[green]Session {session_id} renamed.[/green]")

    _run(_rename())


@sessions.command("archive")
@click.argument("session_id")
def sessions_archive(session_id: str):
    """Archive a session; it disappears from listings."""

    async def _archive():
        client = _get_client()
        try:
            await client.sessions.update(session_id, archived=True)
        finally:
            await client.stop()
        console.print(f"[green]Session {session_id} archived.[/green]")

    _run(_archive())
