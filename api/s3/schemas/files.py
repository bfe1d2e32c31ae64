from pydantic import Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from api.s3.schemas.common import CamelModel
from models import File


class UploadUrlRequest(CamelModel):
    # Presence is checked by the upload validator so a missing field maps to its own error
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None


class UploadUrlResponse(CamelModel):
    upload_url: str = Field(..., alias="uploadURL")
    key: str
    object_path: str
    sanitized_filename: str


class CreateFileRequest(CamelModel):
    name: str = Field(..., min_length=1)
    original_name: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1)
    object_path: str = Field(..., min_length=1)
    folder_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class FileResponse(CamelModel):
    id: str
    name: str
    original_name: str
    size: int
    mime_type: str
    object_path: str
    uploaded_at: datetime
    status: str
    folder_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, file: File) -> "FileResponse":
        return cls(
            id=file.id,
            name=file.name,
            original_name=file.original_name,
            size=file.size,
            mime_type=file.mime_type,
            object_path=file.object_path,
            uploaded_at=file.uploaded_at,
            status=getattr(file.status, "value", file.status),
            folder_id=file.folder_id,
            metadata=file.file_metadata,
        )


class BulkDeleteRequest(CamelModel):
    file_ids: Optional[List[str]] = None


class BulkDeleteResponse(CamelModel):
    success: bool
    deleted_count: int


class SyncResponse(CamelModel):
    success: bool
    total_files: int
    synced_count: int
    failed_count: int
    message: str


class RenameFileRequest(CamelModel):
    name: Optional[str] = None


class MoveFileRequest(CamelModel):
    folder_id: Optional[str] = None
