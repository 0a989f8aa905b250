"""
Duplex channel to the remote agent runtime.

One WebSocket per channel, one JSON frame per text message. The channel owns
the connection state machine; it never reconnects on its own. Reconnect
policy lives in the dispatcher.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED | CLOSING -> CLOSED
"""

import asyncio
import contextlib
import enum
import logging
from typing import AsyncGenerator, Callable, Optional
from urllib.parse import urlsplit

import aiohttp
from pydantic import BaseModel

from agent_bridge.errors import NotConnected, ParseError, TransportError
from agent_bridge.models.frames import ServerMessage
from agent_bridge.transport.frames import encode_frame, parse_server_message

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_S = 15.0


class ChannelState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"


class ChannelEvent:
    """Caller-visible channel event.

    ``type`` is one of ``connected``, ``disconnected``, ``message`` (with
    ``message`` set) or ``parse_error`` (with ``error`` set).
    """

    __slots__ = ("type", "message", "error", "reason")

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"
    PARSE_ERROR = "parse_error"

    def __init__(self, type: str, message: Optional[ServerMessage] = None,
                 error: Optional[ParseError] = None, reason: Optional[str] = None):
        self.type = type
        self.message = message
        self.error = error
        self.reason = reason

    def __repr__(self) -> str:
        if self.message is not None:
            return f"ChannelEvent(type={self.type!r}, message={self.message.type!r})"
        return f"ChannelEvent(type={self.type!r})"


EventHandler = Callable[[ChannelEvent], None]


class DuplexChannel:
    def __init__(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
        heartbeat: Optional[float] = None,
    ):
        self._url = url
        self._headers = headers or {}
        self._connect_timeout = connect_timeout
        self._heartbeat = heartbeat
        self._state = ChannelState.DISCONNECTED
        self._http: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task[None]] = None
        self._event_handlers: list[EventHandler] = []
        self._streams: list[asyncio.Queue[Optional[ChannelEvent]]] = []

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ChannelState.CONNECTED and self._ws is not None and not self._ws.closed

    def add_event_handler(self, handler: EventHandler) -> Callable[[], None]:
        """Add an event handler. Returns a cleanup function."""
        self._event_handlers.append(handler)

        def remove() -> None:
            try:
                self._event_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    async def events(self) -> AsyncGenerator[ChannelEvent, None]:
        """Yield channel events until the channel is stopped."""
        if self._state is ChannelState.CLOSED:
            return
        queue: asyncio.Queue[Optional[ChannelEvent]] = asyncio.Queue()
        remove = self.add_event_handler(queue.put_nowait)
        self._streams.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            remove()
            with contextlib.suppress(ValueError):
                self._streams.remove(queue)

    async def connect(self) -> None:
        """Open the transport. Raises TransportError if it fails before open."""
        if self._state is ChannelState.CLOSED:
            raise TransportError("Channel is closed", code="channel_closed")
        if self._state is ChannelState.CONNECTED:
            return
        if self._state is not ChannelState.DISCONNECTED:
            raise TransportError(f"Cannot connect while {self._state.value}", code="invalid_state")

        self._state = ChannelState.CONNECTING
        logger.info("Connecting to %s", self._url)
        http = aiohttp.ClientSession(headers=self._headers)
        try:
            ws = await asyncio.wait_for(
                http.ws_connect(self._url, heartbeat=self._heartbeat),
                timeout=self._connect_timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            await http.close()
            if self._state is ChannelState.CONNECTING:
                self._state = ChannelState.DISCONNECTED
            raise TransportError(f"Failed to connect to {self._url}: {str(e) or type(e).__name__}") from e
        except asyncio.CancelledError:
            await http.close()
            if self._state is ChannelState.CONNECTING:
                self._state = ChannelState.DISCONNECTED
            raise

        if self._state is not ChannelState.CONNECTING:
            # stop() landed mid-handshake; the late transport is discarded.
            logger.info("Discarding connection to %s opened after stop()", self._url)
            await ws.close()
            await http.close()
            return

        self._http = http
        self._ws = ws
        self._state = ChannelState.CONNECTED
        self._reader = asyncio.get_running_loop().create_task(self._read_loop(ws, http))
        logger.info("Connected to %s", self._url)
        self._emit(ChannelEvent(ChannelEvent.CONNECTED))

    async def send(self, frame: BaseModel) -> None:
        """Transmit exactly one frame. Raises NotConnected unless CONNECTED.

        A socket found closed, or a failed write, tears the connection down
        (state DISCONNECTED, ``disconnected`` event) before raising, so the
        next connect() opens a fresh transport.
        """
        ws = self._ws
        if self._state is not ChannelState.CONNECTED or ws is None:
            raise NotConnected()
        if ws.closed:
            await self._drop(ws, "connection lost")
            raise NotConnected()
        text = encode_frame(frame)
        try:
            await ws.send_str(text)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            await self._drop(ws, f"write failed: {str(e) or type(e).__name__}")
            raise TransportError(f"Failed to send {getattr(frame, 'type', 'frame')!r}: {e}") from e
        logger.debug("Sent frame: %s", text)

    async def stop(self) -> None:
        """Close the channel for good. Idempotent; no events are emitted afterwards."""
        if self._state in (ChannelState.CLOSING, ChannelState.CLOSED):
            return
        self._state = ChannelState.CLOSING
        reader, ws, http = self._reader, self._ws, self._http
        self._reader = self._ws = self._http = None

        if ws is not None:
            await ws.close()
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if http is not None:
            await http.close()

        self._state = ChannelState.CLOSED
        logger.info("Channel to %s closed", self._url)
        for queue in list(self._streams):
            queue.put_nowait(None)

    async def _drop(self, ws: aiohttp.ClientWebSocketResponse, reason: str) -> None:
        if self._ws is not ws or self._state is not ChannelState.CONNECTED:
            return
        reader, http = self._reader, self._http
        self._state = ChannelState.DISCONNECTED
        self._reader = self._ws = self._http = None
        logger.info("Disconnected from %s (%s)", self._url, reason)
        self._emit(ChannelEvent(ChannelEvent.DISCONNECTED, reason=reason))

        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        await ws.close()
        if http is not None:
            await http.close()

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse, http: aiohttp.ClientSession) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    try:
                        self._handle_text(msg.data.decode("utf-8"))
                    except UnicodeDecodeError as e:
                        self._report_parse_error(ParseError(f"Binary frame is not UTF-8: {e}"))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("WebSocket error on %s: %s", self._url, ws.exception())
                    break
        finally:
            if self._ws is ws and self._state is ChannelState.CONNECTED:
                self._state = ChannelState.DISCONNECTED
                self._ws = None
                self._http = None
                self._reader = None
                reason = f"closed with code {ws.close_code}" if ws.close_code is not None else "connection lost"
                logger.info("Disconnected from %s (%s)", self._url, reason)
                self._emit(ChannelEvent(ChannelEvent.DISCONNECTED, reason=reason))
                await http.close()

    def _handle_text(self, text: str) -> None:
        try:
            message = parse_server_message(text)
        except ParseError as e:
            self._report_parse_error(e)
            return
        except Exception as e:
            self._report_parse_error(ParseError(f"Frame could not be decoded: {e!r}", raw=text))
            return
        logger.debug("Received %s frame", message.type)
        self._emit(ChannelEvent(ChannelEvent.MESSAGE, message=message))

    def _report_parse_error(self, error: ParseError) -> None:
        logger.warning("Dropping unparseable frame: %s", error)
        self._emit(ChannelEvent(ChannelEvent.PARSE_ERROR, error=error))

    def _emit(self, event: ChannelEvent) -> None:
        if self._state in (ChannelState.CLOSING, ChannelState.CLOSED):
            return
        for handler in list(self._event_handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %r", event)

    def __repr__(self) -> str:
        return f"DuplexChannel(url={self._url!r}, state={self._state.value!r})"


def websocket_url(base_url: str, path: str = "/ws") -> str:
    """Derive ``ws(s)://host/ws`` from an ``http(s)://`` connection URL."""
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    return f"{scheme}://{parts.netloc}{path}"

