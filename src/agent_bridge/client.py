"""
AgentClient / AsyncAgentClient: client facade over the runtime channel and the sessions API.
"""

import asyncio
import logging
import os
from typing import Any, AsyncGenerator, Callable, Optional

from agent_bridge.dispatcher import CommandDispatcher
from agent_bridge.models.frames import FileEncoding
from agent_bridge.sessions import SessionsAPI
from agent_bridge.transport.http import DEFAULT_BASE_URL, HttpClient
from agent_bridge.transport.websocket import ChannelEvent, ChannelState, DuplexChannel, websocket_url

logger = logging.getLogger(__name__)


class AsyncAgentClient:
    """Async client (primary).

    ``connection_url`` points at the agent runtime (``/config`` and ``/ws``);
    ``api_url`` at the sessions service, defaulting to the same host.
    """

    def __init__(
        self,
        connection_url: Optional[str] = None,
        *,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        allowed_tools: Optional[list[str]] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        workspace_id: Optional[str] = None,
        connect_timeout: float = 15.0,
        debug: bool = False,
    ):
        self._connection_url = (connection_url or os.environ.get("AGENT_BRIDGE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self._system_prompt = system_prompt or os.environ.get("SYSTEM_PROMPT")
        self._model = model
        self._allowed_tools = allowed_tools
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if debug:
            logging.getLogger("agent_bridge").setLevel(logging.DEBUG)

        self.runtime_http = HttpClient(base_url=self._connection_url)
        self.http = HttpClient(base_url=api_url or self._connection_url, workspace_id=workspace_id)
        self.sessions = SessionsAPI(self.http)

        self.channel = DuplexChannel(websocket_url(self._connection_url), connect_timeout=connect_timeout)
        self.dispatcher = CommandDispatcher(self.channel)

    @property
    def connection_url(self) -> str:
        return self._connection_url

    @property
    def session_id(self) -> str:
        return self.dispatcher.session_id

    @property
    def connected(self) -> bool:
        return self.channel.connected

    @property
    def state(self) -> ChannelState:
        return self.channel.state

    def runtime_config(self) -> dict[str, Any]:
        """Body of the ``/config`` handshake; unset options are left out."""
        config: dict[str, Any] = {
            "systemPrompt": self._system_prompt,
            "model": self._model,
            "allowedTools": self._allowed_tools,
            "anthropicApiKey": self._api_key,
        }
        return {k: v for k, v in config.items() if v is not None}

    async def start(self) -> None:
        """Configure the runtime, then open the duplex channel."""
        logger.info("Configuring runtime at %s/config", self._connection_url)
        await self.runtime_http.configure_runtime(self.runtime_config())
        await self.channel.connect()

    async def stop(self) -> None:
        await self.channel.stop()
        await self.runtime_http.close()
        await self.http.close()

    async def __aenter__(self) -> "AsyncAgentClient":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def add_event_handler(self, handler: Callable[[ChannelEvent], None]) -> Callable[[], None]:
        return self.channel.add_event_handler(handler)

    async def events(self) -> AsyncGenerator[ChannelEvent, None]:
        async for event in self.channel.events():
            yield event

    async def send(self, content: Any) -> None:
        """Send a user message; one reconnect-and-replay on failure."""
        await self.dispatcher.send_user_message(content)

    async def turn(self, content: Any) -> AsyncGenerator[ChannelEvent, None]:
        """Send a message and yield events until the runtime finishes the turn."""
        async for event in self.dispatcher.turn(content):
            yield event

    async def interrupt(self) -> bool:
        return await self.dispatcher.interrupt()

    def new_session(self) -> str:
        return self.dispatcher.new_session()

    async def create_file(self, path: str, content: str, encoding: FileEncoding = "utf-8") -> None:
        await self.dispatcher.create_file(path, content, encoding)

    async def read_file(self, path: str, encoding: FileEncoding = "utf-8") -> str:
        return await self.dispatcher.read_file(path, encoding)

    async def delete_file(self, path: str) -> None:
        await self.dispatcher.delete_file(path)

    async def list_files(self, path: Optional[str] = None) -> list[str]:
        return await self.dispatcher.list_files(path)


class AgentClient:
    """Sync wrapper around AsyncAgentClient. Runs the event loop internally."""

    def __init__(self, connection_url: Optional[str] = None, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncAgentClient(connection_url, **kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def sessions(self) -> SessionsAPI:
        return self._async.sessions

    @property
    def session_id(self) -> str:
        return self._async.session_id

    @property
    def connected(self) -> bool:
        return self._async.connected

    def start(self) -> None:
        self._run(self._async.start())

    def stop(self) -> None:
        self._run(self._async.stop())

    def send(self, content: Any) -> None:
        self._run(self._async.send(content))

    def turn_sync(self, content: Any) -> list[ChannelEvent]:
        """Send a message and return every event of the turn (blocking)."""
        async def _collect() -> list[ChannelEvent]:
            return [event async for event in self._async.turn(content)]
        return self._run(_collect())

    def interrupt(self) -> bool:
        return self._run(self._async.interrupt())

    def new_session(self) -> str:
        return self._async.new_session()
