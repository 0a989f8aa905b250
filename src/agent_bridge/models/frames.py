"""
Duplex protocol frames.

One JSON object per WebSocket text message, tagged by ``type``.
Client-to-server and server-to-client frames are closed unions; a server
frame with a tag outside the union decodes to ``UnknownMessage``.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

FileEncoding = Literal["utf-8", "base64"]
FileOperation = Literal["create_file", "read_file", "delete_file", "list_files"]


class TurnMessage(BaseModel):
    role: Literal["user"] = "user"
    content: Any


class UserTurn(BaseModel):
    """The runtime's user-message payload, tagged with the duplex session id."""
    type: Literal["user"] = "user"
    message: TurnMessage
    parent_tool_use_id: Optional[str] = None
    session_id: str


# --- client -> server ---

class UserMessageFrame(BaseModel):
    type: Literal["user_message"] = "user_message"
    data: UserTurn


class InterruptFrame(BaseModel):
    type: Literal["interrupt"] = "interrupt"


class CreateFileFrame(BaseModel):
    type: Literal["create_file"] = "create_file"
    path: str
    content: str
    encoding: FileEncoding = "utf-8"


class ReadFileFrame(BaseModel):
    type: Literal["read_file"] = "read_file"
    path: str
    encoding: FileEncoding = "utf-8"


class DeleteFileFrame(BaseModel):
    type: Literal["delete_file"] = "delete_file"
    path: str


class ListFilesFrame(BaseModel):
    type: Literal["list_files"] = "list_files"
    path: Optional[str] = None


# --- server -> client ---

class ConnectedMessage(BaseModel):
    type: Literal["connected"] = "connected"


class SdkMessage(BaseModel):
    """A runtime event, passed through opaque apart from its own ``type``."""
    type: Literal["sdk_message"] = "sdk_message"
    data: dict[str, Any]

    @property
    def kind(self) -> Optional[str]:
        return self.data.get("type")


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    error: str


class InfoMessage(BaseModel):
    type: Literal["info"] = "info"
    data: str


class FileResultMessage(BaseModel):
    type: Literal["file_result"] = "file_result"
    operation: FileOperation
    result: Union[list[str], str]
    encoding: Optional[FileEncoding] = None


class UnknownMessage(BaseModel):
    """A well-formed frame whose tag this client does not know."""
    type: str
    raw: dict[str, Any] = Field(default_factory=dict)


KnownServerMessage = Annotated[
    Union[ConnectedMessage, SdkMessage, ErrorMessage, InfoMessage, FileResultMessage],
    Field(discriminator="type"),
]

ServerMessage = Union[
    ConnectedMessage, SdkMessage, ErrorMessage, InfoMessage, FileResultMessage, UnknownMessage,
]

SERVER_MESSAGE_TYPES = frozenset({"connected", "sdk_message", "error", "info", "file_result"})
