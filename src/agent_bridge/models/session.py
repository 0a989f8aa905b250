"""
Session models shared by the listing service, the HTTP API and its client.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    project_id: Optional[str] = None
    title: str = "New Session"
    model: Optional[str] = None
    provider: Optional[str] = None
    system_prompt: Optional[str] = None
    archived: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None


class SessionPage(BaseModel):
    """One page of a listing. ``cursor`` is None on the last page."""
    data: list[SessionRecord]
    cursor: Optional[str] = None


class MessageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    role: str
    content: str
    created_at: datetime


class SessionDetail(BaseModel):
    session: SessionRecord
    messages: list[MessageRecord] = Field(default_factory=list)


class CreateSessionRequest(BaseModel):
    title: Optional[str] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    system_prompt: Optional[str] = None


class UpdateSessionRequest(BaseModel):
    title: Optional[str] = None
    archived: Optional[bool] = None


class CreateMessageRequest(BaseModel):
    role: str = "user"
    content: str
