"""
Workspace Models
"""

from pathlib import Path

from pydantic import BaseModel, Field

from ..config import workspace_store_path


class Workspace(BaseModel):
    """An opened library: its id and root folder"""

    library_id: str
    folder_path: str
    library_name: str | None = None

    @property
    def root(self) -> Path:
        return Path(self.folder_path)

    @property
    def store_path(self) -> Path:
        return workspace_store_path(self.folder_path)


class WorkspaceRegistryEntry(BaseModel):
    """Row of the central registry"""

    library_id: str
    folder_path: str
    folder_name: str
    store_path: str
    first_opened: str
    last_opened: str
    open_count: int = 1
    total_files: int = 0
    files_due_today: int = 0


class OpenWorkspaceRequest(BaseModel):
    folder_path: str = Field(..., min_length=1)


class WorkspaceStatsRequest(BaseModel):
    total_files: int = Field(..., ge=0)
    files_due_today: int = Field(..., ge=0)
