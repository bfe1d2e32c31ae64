from typing import Optional, List
from datetime import datetime

from api.s3.schemas.common import CamelModel
from api.s3.schemas.files import FileResponse
from models import Folder


class CreateFolderRequest(CamelModel):
    name: Optional[str] = None
    parent_id: Optional[str] = None
    color: Optional[str] = None


class UpdateFolderRequest(CamelModel):
    """Partial update. An explicit ``parentId: null`` moves the folder to the top level."""

    name: Optional[str] = None
    parent_id: Optional[str] = None
    color: Optional[str] = None


class FolderResponse(CamelModel):
    id: str
    name: str
    parent_id: Optional[str] = None
    created_at: datetime
    color: Optional[str] = None

    @classmethod
    def from_record(cls, folder: Folder) -> "FolderResponse":
        return cls(
            id=folder.id,
            name=folder.name,
            parent_id=folder.parent_id,
            created_at=folder.created_at,
            color=folder.color,
        )


class FolderContentsResponse(CamelModel):
    folders: List[FolderResponse]
    files: List[FileResponse]
