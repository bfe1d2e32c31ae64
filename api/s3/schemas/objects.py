from pydantic import Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from api.s3.schemas.common import CamelModel


class ObjectUploadResponse(CamelModel):
    upload_url: str = Field(..., alias="uploadURL")
    key: str


class CompleteObjectUploadRequest(CamelModel):
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None


class CompleteObjectUploadResponse(CamelModel):
    object_path: str
    key: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None
    uploaded_at: datetime


class ObjectActionResponse(CamelModel):
    success: bool
    message: str


class ObjectTransferRequest(CamelModel):
    destination_key: Optional[str] = None


class ObjectTransferResponse(ObjectActionResponse):
    new_object_path: str


class ObjectListItem(CamelModel):
    key: str
    size: int
    last_modified: Optional[datetime] = None
    object_path: str
    public_url: str


class ObjectListResponse(CamelModel):
    objects: List[ObjectListItem]


class ObjectMetadataResponse(CamelModel):
    key: str
    size: int
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    etag: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class PresignedPostRequest(CamelModel):
    file_name: str = Field(..., min_length=1)
    content_type: Optional[str] = None


class PresignedPostResponse(CamelModel):
    url: str
    fields: Dict[str, Any]
    key: str
    object_path: str
