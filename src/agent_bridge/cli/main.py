"""
agent-bridge CLI: `agent-bridge` command.

Commands:
  agent-bridge chat               Interactive REPL chat with the runtime
  agent-bridge send <message>     One-shot message, prints the turn
  agent-bridge sessions <cmd>     Session listing and management
  agent-bridge config             Show or update ~/.agent-bridge/config.json
  agent-bridge serve              Run the sessions HTTP service
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install agent-bridge[cli]")

from agent_bridge.client import AsyncAgentClient

console = Console()
CONFIG_FILE = Path.home() / ".agent-bridge" / "config.json"

CONFIG_KEYS = ("url", "api_url", "workspace_id", "model", "system_prompt")


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_client(workspace_required: bool = False) -> AsyncAgentClient:
    cfg = _load_config()
    workspace_id = cfg.get("workspace_id")
    if workspace_required and not workspace_id:
        console.print("[red]No workspace configured. Run `agent-bridge config --workspace <id>` first.[/red]")
        raise SystemExit(1)
    return AsyncAgentClient(
        connection_url=os.environ.get("AGENT_BRIDGE_URL") or cfg.get("url"),
        api_url=cfg.get("api_url"),
        workspace_id=workspace_id,
        model=cfg.get("model"),
        system_prompt=cfg.get("system_prompt"),
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("--debug", is_flag=True, help="Verbose logging.")
def main(debug: bool):
    """agent-bridge CLI: talk to a remote agent runtime."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("config")
@click.option("--url", default=None, help="Agent runtime URL.")
@click.option("--api-url", default=None, help="Sessions service URL (defaults to --url).")
@click.option("--workspace", "workspace_id", default=None, help="Workspace id sent with API calls.")
@click.option("--model", default=None)
@click.option("--system-prompt", default=None)
def config_cmd(
    url: Optional[str], api_url: Optional[str], workspace_id: Optional[str],
    model: Optional[str], system_prompt: Optional[str],
):
    """Show or update the CLI configuration."""
    cfg = _load_config()
    updates = {
        "url": url, "api_url": api_url, "workspace_id": workspace_id,
        "model": model, "system_prompt": system_prompt,
    }
    changed = {k: v for k, v in updates.items() if v is not None}
    if changed:
        cfg.update(changed)
        _save_config(cfg)
        console.print(f"[green]Saved {', '.join(sorted(changed))} to {CONFIG_FILE}[/green]")
    for key in CONFIG_KEYS:
        console.print(f"{key}: {cfg.get(key, '[dim]unset[/dim]')}")


@main.command("serve")
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=3000, type=int)
@click.option("--database-url", default=None, help="SQLAlchemy async URL (default: $AGENT_BRIDGE_DATABASE_URL).")
def serve_cmd(host: str, port: int, database_url: Optional[str]):
    """Run the sessions and document tools HTTP service."""
    from agent_bridge.server.app import run

    run(host=host, port=port, database_url=database_url)


# Register subcommands from separate modules
from agent_bridge.cli.chat import chat_cmd, send_cmd  # noqa: E402
from agent_bridge.cli.sessions import sessions  # noqa: E402

main.add_command(chat_cmd)
main.add_command(send_cmd)
main.add_command(sessions)


if __name__ == "__main__":
    main()
