"""Basic unit tests for the agent-bridge package."""

from agent_bridge import (
    AgentClient,
    AsyncAgentClient,
    BridgeError,
    ChannelState,
    InvalidCursor,
    NotConnected,
    ParseError,
    RemoteError,
    ScopeError,
    StorageError,
    TransportError,
    __version__,
)
from agent_bridge.transport.websocket import websocket_url


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert AgentClient is not None
    assert AsyncAgentClient is not None


def test_error_hierarchy():
    for cls in (TransportError, NotConnected, ParseError, RemoteError, InvalidCursor, StorageError, ScopeError):
        assert issubclass(cls, BridgeError)


def test_error_attributes():
    err = BridgeError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert err.message == "something broke"
    assert str(err) == "something broke"
    assert err.details is None

    cursor_err = InvalidCursor("garbage")
    assert cursor_err.code == "invalid_cursor"
    assert cursor_err.cursor == "garbage"
    assert cursor_err.details == {"cursor": "garbage"}

    assert NotConnected().code == "not_connected"
    assert ScopeError("nope").status_code == 403
    assert ScopeError("who?", status_code=401).status_code == 401


def test_websocket_url():
    assert websocket_url("http://localhost:3000") == "ws://localhost:3000/ws"
    assert websocket_url("https://agent.example.com/") == "wss://agent.example.com/ws"
    assert websocket_url("https://agent.example.com/some/path") == "wss://agent.example.com/ws"


def test_client_defaults(monkeypatch):
    monkeypatch.delenv("AGENT_BRIDGE_URL", raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.delenv("SYSTEM_PROMPT", raising=False)
    client = AsyncAgentClient("https://agent.example.com/", model="claude-sonnet", allowed_tools=["Read"])
    assert client.connection_url == "https://agent.example.com"
    assert client.channel.url == "wss://agent.example.com/ws"
    assert client.state is ChannelState.DISCONNECTED
    assert client.runtime_config() == {
        "model": "claude-sonnet",
        "allowedTools": ["Read"],
        "anthropicApiKey": "sk-test",
    }


def test_client_session_id_rotates(monkeypatch):
    monkeypatch.delenv("AGENT_BRIDGE_URL", raising=False)
    client = AsyncAgentClient()
    first = client.session_id
    assert client.session_id == first
    second = client.new_session()
    assert second != first
    assert client.session_id == second
