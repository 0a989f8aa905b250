"""
Command dispatcher: caller intents in, protocol frames out.

Retry policy for outbound intents:
- a send that finds the channel down gets exactly one connect() attempt;
- if that succeeds, the same frame is replayed exactly once;
- if it fails, the original failure is raised. No loops, no backoff.

Interrupts are never retried: a turn cannot still be running on a channel
that just died.
"""

import asyncio
import logging
import uuid
from typing import Any, AsyncGenerator, Optional

from pydantic import BaseModel

from agent_bridge.errors import NotConnected, RemoteError, TransportError
from agent_bridge.models.frames import (
    CreateFileFrame,
    DeleteFileFrame,
    ErrorMessage,
    FileEncoding,
    FileResultMessage,
    InterruptFrame,
    ListFilesFrame,
    ReadFileFrame,
    SdkMessage,
)
from agent_bridge.transport.frames import build_user_message
from agent_bridge.transport.websocket import ChannelEvent, DuplexChannel

logger = logging.getLogger(__name__)

DEFAULT_FILE_TIMEOUT_S = 30.0

# sdk_message kinds that close a turn
TURN_END_KINDS = {"result"}


def ends_turn(event: ChannelEvent) -> bool:
    if event.type == ChannelEvent.DISCONNECTED:
        return True
    if event.type != ChannelEvent.MESSAGE:
        return False
    msg = event.message
    if isinstance(msg, ErrorMessage):
        return True
    return isinstance(msg, SdkMessage) and msg.kind in TURN_END_KINDS


class CommandDispatcher:
    def __init__(
        self,
        channel: DuplexChannel,
        session_id: Optional[str] = None,
        file_timeout_s: float = DEFAULT_FILE_TIMEOUT_S,
    ):
        self._channel = channel
        self._session_id = session_id or str(uuid.uuid4())
        self._file_timeout_s = file_timeout_s
        self._last_failed: Optional[BaseModel] = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def channel(self) -> DuplexChannel:
        return self._channel

    @property
    def last_failed(self) -> Optional[BaseModel]:
        """The intent awaiting its single replay, if any."""
        return self._last_failed

    def new_session(self) -> str:
        """Rotate the session id used to tag outbound frames. Never touches the channel."""
        self._session_id = str(uuid.uuid4())
        logger.info("Started new session %s", self._session_id)
        return self._session_id

    async def send_user_message(self, content: Any) -> None:
        """Send a user turn tagged with the current session id."""
        await self._send_with_retry(build_user_message(content, self._session_id))

    async def interrupt(self) -> bool:
        """Fire-and-forget interrupt. Returns False if it was dropped."""
        if not self._channel.connected:
            logger.warning("Dropping interrupt: channel is %s", self._channel.state.value)
            return False
        try:
            await self._channel.send(InterruptFrame())
        except (NotConnected, TransportError) as e:
            logger.warning("Dropping interrupt: %s", e)
            return False
        return True

    async def turn(self, content: Any) -> AsyncGenerator[ChannelEvent, None]:
        """Send a message and yield channel events until the turn ends.

        A turn ends on the runtime's ``result`` message, an ``error`` frame,
        or the channel dropping.
        """
        queue: asyncio.Queue[ChannelEvent] = asyncio.Queue()
        sending = True

        def collect(event: ChannelEvent) -> None:
            # a disconnect raised by a failed write is handled by the retry
            if sending and event.type == ChannelEvent.DISCONNECTED:
                return
            queue.put_nowait(event)

        remove = self._channel.add_event_handler(collect)
        try:
            await self.send_user_message(content)
            sending = False
            if not self._channel.connected:
                queue.put_nowait(ChannelEvent(ChannelEvent.DISCONNECTED, reason="connection lost"))
            while True:
                event = await queue.get()
                yield event
                if ends_turn(event):
                    break
        finally:
            remove()

    async def create_file(self, path: str, content: str, encoding: FileEncoding = "utf-8") -> None:
        await self._request_file(CreateFileFrame(path=path, content=content, encoding=encoding))

    async def read_file(self, path: str, encoding: FileEncoding = "utf-8") -> str:
        result = await self._request_file(ReadFileFrame(path=path, encoding=encoding))
        return result.result if isinstance(result.result, str) else "\n".join(result.result)

    async def delete_file(self, path: str) -> None:
        await self._request_file(DeleteFileFrame(path=path))

    async def list_files(self, path: Optional[str] = None) -> list[str]:
        result = await self._request_file(ListFilesFrame(path=path))
        return result.result if isinstance(result.result, list) else [result.result]

    async def _request_file(self, frame: BaseModel) -> FileResultMessage:
        """Send a file request and wait for the ``file_result`` of the same operation."""
        operation = getattr(frame, "type")
        future: asyncio.Future[FileResultMessage] = asyncio.get_running_loop().create_future()
        sending = True

        def handler(event: ChannelEvent) -> None:
            if future.done():
                return
            if event.type == ChannelEvent.DISCONNECTED:
                if sending:
                    return
                future.set_exception(TransportError(f"Disconnected before {operation} result"))
                return
            msg = event.message
            if isinstance(msg, FileResultMessage) and msg.operation == operation:
                future.set_result(msg)
            elif isinstance(msg, ErrorMessage):
                future.set_exception(RemoteError(msg.error))

        remove = self._channel.add_event_handler(handler)
        try:
            await self._send_with_retry(frame)
            sending = False
            if not future.done() and not self._channel.connected:
                raise TransportError(f"Disconnected before {operation} result")
            return await asyncio.wait_for(future, timeout=self._file_timeout_s)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timeout waiting for {operation} result")
        finally:
            remove()
            if not future.done():
                future.cancel()

    async def _send_with_retry(self, frame: BaseModel) -> None:
        try:
            await self._channel.send(frame)
            return
        except (NotConnected, TransportError) as e:
            failure = e

        self._last_failed = frame
        logger.info("Send of %r failed (%s); reconnecting once", getattr(frame, "type", frame), failure)
        try:
            await self._channel.connect()
        except TransportError as e:
            self._last_failed = None
            logger.warning("Reconnect failed, giving up on %r: %s", getattr(frame, "type", frame), e)
            raise failure from e

        try:
            await self._channel.send(frame)
        finally:
            self._last_failed = None
