"""Command dispatcher against a scripted channel."""

import asyncio

import pytest

from agent_bridge.dispatcher import CommandDispatcher, ends_turn
from agent_bridge.errors import NotConnected, RemoteError, TransportError
from agent_bridge.models.frames import (
    ErrorMessage,
    FileResultMessage,
    InfoMessage,
    InterruptFrame,
    SdkMessage,
    UserMessageFrame,
)
from agent_bridge.transport.websocket import ChannelEvent, ChannelState


class FakeChannel:
    """Records frames; sends and connects fail while the script says so.

    Like the real channel, a failed write drops the connection and emits
    ``disconnected`` before raising.
    """

    def __init__(self, connected=True, send_failures=0, connect_ok=True):
        self.connected = connected
        self.send_failures = send_failures
        self.connect_ok = connect_ok
        self.sent = []
        self.connect_calls = 0
        self.handlers = []
        self.on_send = None

    @property
    def state(self):
        return ChannelState.CONNECTED if self.connected else ChannelState.DISCONNECTED

    def add_event_handler(self, handler):
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    def emit(self, event):
        for handler in list(self.handlers):
            handler(event)

    async def connect(self):
        self.connect_calls += 1
        if not self.connect_ok:
            raise TransportError("connection refused")
        self.connected = True
        self.emit(ChannelEvent(ChannelEvent.CONNECTED))

    async def send(self, frame):
        if not self.connected:
            raise NotConnected()
        if self.send_failures:
            self.send_failures -= 1
            self.connected = False
            self.emit(ChannelEvent(ChannelEvent.DISCONNECTED, reason="write failed"))
            raise TransportError("socket reset")
        self.sent.append(frame)
        if self.on_send:
            self.on_send(frame)


def message(msg):
    return ChannelEvent(ChannelEvent.MESSAGE, message=msg)


class TestSendUserMessage:
    @pytest.mark.asyncio
    async def test_tags_current_session(self):
        channel = FakeChannel()
        dispatcher = CommandDispatcher(channel, session_id="sess-1")
        await dispatcher.send_user_message("hi")
        frame = channel.sent[0]
        assert isinstance(frame, UserMessageFrame)
        assert frame.data.session_id == "sess-1"
        assert frame.data.message.content == "hi"
        assert channel.connect_calls == 0

    @pytest.mark.asyncio
    async def test_disconnected_send_reconnects_once_and_replays(self):
        channel = FakeChannel(connected=False)
        dispatcher = CommandDispatcher(channel)
        await dispatcher.send_user_message("hi")
        assert channel.connect_calls == 1
        assert len(channel.sent) == 1
        assert dispatcher.last_failed is None

    @pytest.mark.asyncio
    async def test_write_failure_reconnects_once_and_replays(self):
        channel = FakeChannel(send_failures=1)
        dispatcher = CommandDispatcher(channel)
        await dispatcher.send_user_message("hi")
        assert channel.connect_calls == 1
        assert [f.data.message.content for f in channel.sent] == ["hi"]

    @pytest.mark.asyncio
    async def test_reconnect_failure_surfaces_original_error(self):
        channel = FakeChannel(connected=False, connect_ok=False)
        dispatcher = CommandDispatcher(channel)
        with pytest.raises(NotConnected) as exc_info:
            await dispatcher.send_user_message("hi")
        assert isinstance(exc_info.value.__cause__, TransportError)
        assert channel.connect_calls == 1
        assert channel.sent == []
        assert dispatcher.last_failed is None

    @pytest.mark.asyncio
    async def test_replay_failure_is_not_retried_again(self):
        channel = FakeChannel(send_failures=2)
        dispatcher = CommandDispatcher(channel)
        with pytest.raises(TransportError):
            await dispatcher.send_user_message("hi")
        assert channel.connect_calls == 1
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_channel_usable_after_failed_intent(self):
        channel = FakeChannel(connected=False, connect_ok=False)
        dispatcher = CommandDispatcher(channel)
        with pytest.raises(NotConnected):
            await dispatcher.send_user_message("lost")
        channel.connect_ok = True
        await dispatcher.send_user_message("next")
        assert [f.data.message.content for f in channel.sent] == ["next"]


class TestInterrupt:
    @pytest.mark.asyncio
    async def test_sent_when_connected(self):
        channel = FakeChannel()
        assert await CommandDispatcher(channel).interrupt() is True
        assert isinstance(channel.sent[0], InterruptFrame)

    @pytest.mark.asyncio
    async def test_dropped_when_disconnected(self):
        channel = FakeChannel(connected=False)
        assert await CommandDispatcher(channel).interrupt() is False
        assert channel.connect_calls == 0
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_dropped_on_write_failure(self):
        channel = FakeChannel(send_failures=1)
        assert await CommandDispatcher(channel).interrupt() is False
        assert channel.connect_calls == 0


def test_new_session_rotates_without_touching_channel():
    channel = FakeChannel(connected=False)
    dispatcher = CommandDispatcher(channel, session_id="first")
    new_id = dispatcher.new_session()
    assert new_id != "first"
    assert dispatcher.session_id == new_id
    assert channel.connect_calls == 0


def test_ends_turn():
    assert ends_turn(message(SdkMessage(data={"type": "result"})))
    assert ends_turn(message(ErrorMessage(error="boom")))
    assert ends_turn(ChannelEvent(ChannelEvent.DISCONNECTED, reason="gone"))
    assert not ends_turn(message(SdkMessage(data={"type": "assistant"})))
    assert not ends_turn(message(InfoMessage(data="hi")))


class TestTurn:
    @pytest.mark.asyncio
    async def test_yields_until_result(self):
        channel = FakeChannel()

        def reply(frame):
            loop = asyncio.get_running_loop()
            loop.call_soon(channel.emit, message(SdkMessage(data={"type": "assistant"})))
            loop.call_soon(channel.emit, message(SdkMessage(data={"type": "result"})))
            loop.call_soon(channel.emit, message(InfoMessage(data="after")))

        channel.on_send = reply
        events = [e async for e in CommandDispatcher(channel).turn("go")]
        assert [e.message.kind for e in events] == ["assistant", "result"]
        assert channel.handlers == []

    @pytest.mark.asyncio
    async def test_retried_write_does_not_end_turn(self):
        channel = FakeChannel(send_failures=1)

        def reply(frame):
            loop = asyncio.get_running_loop()
            loop.call_soon(channel.emit, message(SdkMessage(data={"type": "result"})))

        channel.on_send = reply
        events = [e async for e in CommandDispatcher(channel).turn("go")]
        assert [e.type for e in events] == [ChannelEvent.CONNECTED, ChannelEvent.MESSAGE]
        assert channel.connect_calls == 1


class TestFileRequests:
    @pytest.mark.asyncio
    async def test_list_files_matches_operation(self):
        channel = FakeChannel()

        def reply(frame):
            loop = asyncio.get_running_loop()
            loop.call_soon(channel.emit, message(FileResultMessage(operation="read_file", result="nope")))
            loop.call_soon(channel.emit, message(FileResultMessage(operation="list_files", result=["a", "b"])))

        channel.on_send = reply
        assert await CommandDispatcher(channel).list_files("/") == ["a", "b"]
        assert channel.handlers == []

    @pytest.mark.asyncio
    async def test_error_frame_raises_remote_error(self):
        channel = FakeChannel()
        channel.on_send = lambda frame: asyncio.get_running_loop().call_soon(
            channel.emit, message(ErrorMessage(error="no such file")),
        )
        with pytest.raises(RemoteError, match="no such file"):
            await CommandDispatcher(channel).read_file("missing.txt")

    @pytest.mark.asyncio
    async def test_retried_write_still_waits_for_result(self):
        channel = FakeChannel(send_failures=1)
        channel.on_send = lambda frame: asyncio.get_running_loop().call_soon(
            channel.emit, message(FileResultMessage(operation="read_file", result="contents")),
        )
        assert await CommandDispatcher(channel).read_file("a.txt") == "contents"
        assert channel.connect_calls == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        channel = FakeChannel()
        with pytest.raises(TimeoutError):
            await CommandDispatcher(channel, file_timeout_s=0.05).delete_file("x")

    @pytest.mark.asyncio
    async def test_disconnect_fails_request(self):
        channel = FakeChannel()
        channel.on_send = lambda frame: asyncio.get_running_loop().call_soon(
            channel.emit, ChannelEvent(ChannelEvent.DISCONNECTED, reason="gone"),
        )
        with pytest.raises(TransportError):
            await CommandDispatcher(channel).create_file("a.txt", "hello")
