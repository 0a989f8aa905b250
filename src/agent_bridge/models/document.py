"""
Project, folder and document records.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProjectRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    name: str
    created_at: datetime


class FolderRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    parent_id: Optional[str] = None
    name: str

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "parent_id": self.parent_id}


class DocumentRecord(BaseModel):
    """A live document. ``folder_id`` None means the project root."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    folder_id: Optional[str] = None
    name: str
    content: str = ""
    created_at: datetime
    updated_at: datetime

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "folder_id": self.folder_id}
