import uuid
from datetime import datetime, timezone
from email.utils import formatdate
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from typing import Optional
import logging

from common.http_errors import api_error
from api.s3.config import Constants, s3_config
from api.s3.dependencies import AuthContext, get_s3_service, require_user, validate_object_access
from api.s3.domain.policies import FileSecurityValidator
from api.s3.infra.s3.s3_management_service import S3ManagementService, ObjectNotFoundError
from api.s3.schemas.objects import (
    CompleteObjectUploadRequest,
    CompleteObjectUploadResponse,
    ObjectActionResponse,
    ObjectListItem,
    ObjectListResponse,
    ObjectMetadataResponse,
    ObjectTransferRequest,
    ObjectTransferResponse,
    ObjectUploadResponse,
    PresignedPostRequest,
    PresignedPostResponse
)

logger = logging.getLogger(__name__)

# Served at the app root: /objects/<id>
object_files_router = APIRouter(tags=["Objects"])
objects_router = APIRouter(prefix="/api/objects", tags=["Objects"])


def _iter_body(body):
    try:
        for chunk in body.iter_chunks(chunk_size=Constants.STREAM_CHUNK_BYTES):
            yield chunk
    finally:
        body.close()


@object_files_router.get("/objects/{object_path:path}")
async def serve_object(
    object_path: str,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    """Stream a stored object addressed by its ``/objects/<id>`` path."""
    validate_object_access(object_path)

    try:
        entity = s3_service.get_object_entity_file(f"{s3_config.object_path_prefix}{object_path}")
        stream = s3_service.get_object_stream(entity.key)
    except ObjectNotFoundError:
        raise api_error(404, "File not found")
    except Exception as e:
        logger.error(f"Error serving object {object_path}: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")

    headers = {
        "Content-Length": str(stream.content_length),
        "Cache-Control": "private, max-age=3600",
    }
    if stream.etag:
        headers["ETag"] = stream.etag
    if stream.last_modified:
        headers["Last-Modified"] = formatdate(stream.last_modified.timestamp(), usegmt=True)

    return StreamingResponse(
        _iter_body(stream.body),
        media_type=stream.content_type or s3_config.default_content_type,
        headers=headers
    )


@objects_router.post("/upload", response_model=ObjectUploadResponse)
async def get_object_upload_url(
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    try:
        upload_url, key = s3_service.get_object_entity_upload_url()
        return ObjectUploadResponse(upload_url=upload_url, key=key)
    except Exception as e:
        logger.error(f"Error generating upload URL: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to generate upload URL")


@objects_router.post("/presigned-post", response_model=PresignedPostResponse)
async def get_presigned_post(
    request: PresignedPostRequest,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    """Presigned POST form for browsers that cannot PUT; capped at 10 MB."""
    name_validation = FileSecurityValidator.validate_filename(request.file_name)
    if not name_validation.is_valid:
        raise api_error(400, "Invalid filename", name_validation.errors)

    key = f"{s3_config.uploads_prefix}/{uuid.uuid4()}-{name_validation.sanitized_filename}"
    try:
        presigned_post = s3_service.get_presigned_post(key, request.content_type)
        return PresignedPostResponse(
            url=presigned_post["url"],
            fields=presigned_post["fields"],
            key=key,
            object_path=s3_service.object_path_for_key(key)
        )
    except Exception as e:
        logger.error(f"Error generating presigned POST: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to generate presigned POST")


@objects_router.get("", response_model=ObjectListResponse)
async def list_objects(
    prefix: Optional[str] = Query(None, description="Only keys starting with this prefix"),
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    try:
        objects = s3_service.list_objects(prefix)
        return ObjectListResponse(objects=[
            ObjectListItem(
                key=obj.key,
                size=obj.size,
                last_modified=obj.last_modified,
                object_path=s3_service.object_path_for_key(obj.key),
                public_url=s3_service.get_public_url(obj.key)
            )
            for obj in objects
        ])
    except Exception as e:
        logger.error(f"Error listing objects: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to list objects")


@objects_router.get("/{key:path}/metadata", response_model=ObjectMetadataResponse)
async def get_object_metadata(
    key: str,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    validate_object_access(key)

    try:
        metadata = s3_service.head_object(key)
    except ObjectNotFoundError:
        raise api_error(404, "File not found")
    except Exception as e:
        logger.error(f"Error getting object metadata: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to get file metadata")

    return ObjectMetadataResponse(
        key=key,
        size=metadata.content_length,
        content_type=metadata.content_type,
        last_modified=metadata.last_modified,
        etag=metadata.etag,
        metadata=metadata.metadata
    )


@objects_router.put("/{key:path}", response_model=CompleteObjectUploadResponse)
async def complete_object_upload(
    key: str,
    request: CompleteObjectUploadRequest,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    """Confirm a direct upload landed in storage and report its object path."""
    validate_object_access(key)

    try:
        exists = s3_service.object_exists(key)
    except Exception as e:
        logger.error(f"Error processing file upload completion: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to process upload completion")

    if not exists:
        raise api_error(404, "File not found in storage")

    return CompleteObjectUploadResponse(
        object_path=s3_service.object_path_for_key(key),
        key=key,
        file_name=request.file_name,
        file_size=request.file_size,
        content_type=request.content_type,
        uploaded_at=datetime.now(tz=timezone.utc)
    )


@objects_router.delete("/{key:path}", response_model=ObjectActionResponse)
async def delete_object(
    key: str,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    validate_object_access(key)

    try:
        s3_service.delete_object(key)
        return ObjectActionResponse(success=True, message="File deleted successfully")
    except Exception as e:
        logger.error(f"Error deleting file: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to delete file")


def _transfer(key: str, request: ObjectTransferRequest, s3_service: S3ManagementService, action: str):
    validate_object_access(key)
    if not request.destination_key:
        raise api_error(400, "Destination key is required")
    validate_object_access(request.destination_key)

    try:
        if action == "move":
            s3_service.move_object(key, request.destination_key)
        else:
            s3_service.copy_object(key, request.destination_key)
    except ObjectNotFoundError:
        raise api_error(404, "File not found")
    except Exception as e:
        logger.error(f"Error during object {action} {key} -> {request.destination_key}: {str(e)}", exc_info=True)
        raise api_error(500, f"Failed to {action} file")

    past_tense = "moved" if action == "move" else "copied"
    return ObjectTransferResponse(
        success=True,
        message=f"File {past_tense} successfully",
        new_object_path=s3_service.object_path_for_key(request.destination_key)
    )


@objects_router.post("/{key:path}/move", response_model=ObjectTransferResponse)
async def move_object(
    key: str,
    request: ObjectTransferRequest,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    return _transfer(key, request, s3_service, "move")


@objects_router.post("/{key:path}/copy", response_model=ObjectTransferResponse)
async def copy_object(
    key: str,
    request: ObjectTransferRequest,
    auth: AuthContext = Depends(require_user),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    return _transfer(key, request, s3_service, "copy")
