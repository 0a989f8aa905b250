"""CLI: agent-bridge chat, agent-bridge send"""

import json
from typing import Any

import click
from rich.console import Console

from agent_bridge.errors import BridgeError
from agent_bridge.models.frames import ConnectedMessage, ErrorMessage, InfoMessage, SdkMessage, UnknownMessage
from agent_bridge.transport.websocket import ChannelEvent

console = Console()

HELP_TEXT = """Commands:
  /new        start a new session
  /interrupt  interrupt the running turn
  /help       show this help
  /quit       exit"""


def _get_client():
    from agent_bridge.cli.main import _get_client
    return _get_client()


def _run(coro):
    from agent_bridge.cli.main import _run
    return _run(coro)


def _assistant_text(data: dict[str, Any]) -> str:
    content = (data.get("message") or {}).get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(block.get("text", "") for block in content if isinstance(block, dict))
    return ""


def render_event(event: ChannelEvent) -> None:
    if event.type == ChannelEvent.DISCONNECTED:
        console.print(f"[red]Disconnected: {event.reason or 'connection closed'}[/red]")
        return
    if event.type == ChannelEvent.PARSE_ERROR:
        console.print(f"[yellow]Unreadable frame: {event.error}[/yellow]")
        return
    msg = event.message
    if isinstance(msg, SdkMessage):
        if msg.kind == "assistant":
            text = _assistant_text(msg.data)
            if text:
                console.print(f"[green]Agent:[/green] {text}")
        elif msg.kind == "result":
            cost = msg.data.get("total_cost_usd")
            suffix = f" (${cost:.4f})" if isinstance(cost, (int, float)) else ""
            console.print(f"[dim]Done{suffix}[/dim]")
        else:
            console.print(f"[dim][{msg.kind}][/dim]")
    elif isinstance(msg, ErrorMessage):
        console.print(f"[red]Error:[/red] {msg.error}")
    elif isinstance(msg, InfoMessage):
        console.print(f"[cyan]{msg.data}[/cyan]")
    elif isinstance(msg, ConnectedMessage):
        console.print("[dim]Connected[/dim]")
    elif isinstance(msg, UnknownMessage):
        console.print(f"[dim]Unknown message type: {msg.type}[/dim]")


def _event_json(event: ChannelEvent) -> str:
    payload: dict[str, Any] = {"event": event.type}
    if event.message is not None:
        payload["message"] = event.message.model_dump(mode="json")
    if event.error is not None:
        payload["error"] = str(event.error)
    if event.reason is not None:
        payload["reason"] = event.reason
    return json.dumps(payload)


@click.command("chat")
def chat_cmd():
    """Interactive chat with the agent runtime."""

    async def _chat():
        client = _get_client()
        with console.status("Connecting..."):
            await client.start()
        console.print(f"[dim]Session: {client.session_id}[/dim]")
        console.print("[cyan]Type your message (/help for commands, Ctrl+C to exit)[/cyan]\n")
        try:
            while True:
                msg = click.prompt("You", prompt_suffix=": ")
                command = msg.strip().lower()
                if command in ("/quit", "/exit"):
                    break
                if command == "/help":
                    console.print(HELP_TEXT)
                    continue
                if command == "/new":
                    console.print(f"[dim]New session: {client.new_session()}[/dim]")
                    continue
                if command == "/interrupt":
                    sent = await client.interrupt()
                    console.print("[dim]Interrupt sent[/dim]" if sent else "[yellow]Not connected[/yellow]")
                    continue
                try:
                    async for event in client.turn(msg):
                        render_event(event)
                except BridgeError as e:
                    console.print(f"[red]{e.message}[/red]")
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            await client.stop()

    _run(_chat())


@click.command("send")
@click.argument("message")
@click.option("--json-output", "--json", is_flag=True)
def send_cmd(message: str, json_output: bool):
    """Send a one-shot message and print the turn."""

    async def _send():
        client = _get_client()
        await client.start()
        try:
            if not json_output:
                console.print(f"[dim]Session: {client.session_id}[/dim]")
            async for event in client.turn(message):
                if json_output:
                    click.echo(_event_json(event))
                else:
                    render_event(event)
        finally:
            await client.stop()

    _run(_send())
