"""
Frame construction and parsing for the duplex protocol.
"""

import json
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from agent_bridge.errors import ParseError
from agent_bridge.models.frames import (
    SERVER_MESSAGE_TYPES,
    KnownServerMessage,
    ServerMessage,
    TurnMessage,
    UnknownMessage,
    UserMessageFrame,
    UserTurn,
)

_known_server_message = TypeAdapter(KnownServerMessage)


def build_user_message(content: Any, session_id: str) -> UserMessageFrame:
    """Build a ``user_message`` frame tagged with the duplex session id."""
    return UserMessageFrame(
        data=UserTurn(
            message=TurnMessage(content=content),
            parent_tool_use_id=None,
            session_id=session_id,
        ),
    )


def encode_frame(frame: BaseModel) -> str:
    """Serialize an outbound frame to the text payload of one WebSocket message."""
    return json.dumps(frame.model_dump(mode="json"), separators=(",", ":"))


def parse_server_message(text: str) -> ServerMessage:
    """Parse one inbound text message.

    Raises ParseError for payloads that are not a JSON object with a string
    ``type`` (including JSON nested too deeply to decode), or whose known tag
    carries an invalid body. Unrecognized tags
    are not errors: they decode to UnknownMessage.
    """
    try:
        obj = json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        raise ParseError(f"Frame is not valid JSON: {e}", raw=text) from e

    if not isinstance(obj, dict) or not isinstance(obj.get("type"), str):
        raise ParseError("Frame is not an object with a string 'type'", raw=text)

    if obj["type"] not in SERVER_MESSAGE_TYPES:
        return UnknownMessage(type=obj["type"], raw=obj)

    try:
        return _known_server_message.validate_python(obj)
    except ValidationError as e:
        raise ParseError(f"Invalid '{obj['type']}' frame: {e.error_count()} validation error(s)", raw=text) from e
    except RecursionError as e:
        raise ParseError(f"Invalid '{obj['type']}' frame: nested too deeply", raw=text) from e
