"""
agent-bridge: client and services for a remote agent runtime.

WebSocket duplex channel to the runtime, plus a cursor-paginated sessions
API and project document tools.
"""

from agent_bridge.client import AgentClient, AsyncAgentClient
from agent_bridge.dispatcher import CommandDispatcher
from agent_bridge.errors import (
    BridgeError,
    InvalidCursor,
    NotConnected,
    NotFound,
    ParseError,
    RemoteError,
    ScopeError,
    StorageError,
    TransportError,
)
from agent_bridge.sessions import SessionsAPI
from agent_bridge.transport.websocket import ChannelEvent, ChannelState, DuplexChannel

__version__ = "0.1.0"
__all__ = [
    "AgentClient",
    "AsyncAgentClient",
    "CommandDispatcher",
    "DuplexChannel",
    "ChannelEvent",
    "ChannelState",
    "SessionsAPI",
    "BridgeError",
    "TransportError",
    "NotConnected",
    "ParseError",
    "RemoteError",
    "InvalidCursor",
    "StorageError",
    "NotFound",
    "ScopeError",
]
