from fastapi import APIRouter, Depends, Query, Response, status
from typing import Optional, List
import logging

from settings.config import get_settings
from common.http_errors import api_error
from api.s3.dependencies import (
    AuthContext,
    UploadValidation,
    get_s3_service,
    get_uow,
    require_user,
    validate_file_upload
)
from api.s3.domain.errors import NotFoundError, ValidationFailedError
from api.s3.domain.services.file_catalog import FileCatalog
from api.s3.infra.db.uow import UnitOfWork
from api.s3.infra.s3.s3_management_service import S3ManagementService
from api.s3.schemas.files import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    CreateFileRequest,
    FileResponse,
    MoveFileRequest,
    RenameFileRequest,
    SyncResponse,
    UploadUrlResponse
)

logger = logging.getLogger(__name__)

files_router = APIRouter(prefix="/api/files", tags=["Files"])


def _catalog(uow: UnitOfWork, s3_service: S3ManagementService) -> FileCatalog:
    return FileCatalog(uow, s3_service, sniff_bytes=get_settings().content_sniff_bytes)


@files_router.post("/upload-url", response_model=UploadUrlResponse, status_code=status.HTTP_200_OK)
async def get_upload_url(
    auth: AuthContext = Depends(require_user),
    upload: UploadValidation = Depends(validate_file_upload),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    """
    Validate an intended upload and hand out a presigned PUT URL.

    The client uploads straight to S3 with the returned URL, then registers
    the object with ``POST /api/files``.
    """
    try:
        upload_url, key = s3_service.get_object_entity_upload_url(upload.validation.detected_mime_type)
        object_path = s3_service.normalize_object_entity_path(key)

        logger.info(f"Upload URL issued: user={auth.username}, key={key}")

        return UploadUrlResponse(
            upload_url=upload_url,
            key=key,
            object_path=object_path,
            sanitized_filename=upload.sanitized_filename
        )
    except Exception as e:
        logger.error(f"Error getting upload URL: {str(e)}", exc_info=True)
        raise api_error(500, "Failed to get upload URL")


@files_router.post("", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def create_file(
    request: CreateFileRequest,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    """Register an uploaded object as a file record."""
    try:
        file = _catalog(uow, s3_service).register_file(request)
        uow.commit()
        return FileResponse.from_record(file)
    except ValidationFailedError as e:
        raise api_error(400, e.message, e.details)
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error creating file record: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@files_router.get("", response_model=List[FileResponse])
async def list_files(
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    try:
        return [FileResponse.from_record(f) for f in _catalog(uow, s3_service).list_files()]
    except Exception as e:
        logger.error(f"Error fetching files: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@files_router.get("/search", response_model=List[FileResponse])
async def search_files(
    q: Optional[str] = Query(None, description="Substring of the original file name"),
    type: Optional[str] = Query(None, description="Documents, Images, Videos or All Files"),
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    try:
        files = _catalog(uow, s3_service).search_files(q, type)
        return [FileResponse.from_record(f) for f in files]
    except Exception as e:
        logger.error(f"Error searching files: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@files_router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_files(
    request: BulkDeleteRequest,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    if not request.file_ids:
        raise api_error(400, "fileIds must be a non-empty array")

    try:
        deleted_count = _catalog(uow, s3_service).bulk_delete(request.file_ids)
        logger.info(f"Bulk delete by {auth.username}: {deleted_count} files")
        return BulkDeleteResponse(success=True, deleted_count=deleted_count)
    except Exception as e:
        logger.error(f"Error bulk deleting files: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@files_router.post("/sync", response_model=SyncResponse)
async def sync_files(
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    """Re-check every file record against storage and update its status."""
    try:
        total, synced_count, failed_count = _catalog(uow, s3_service).sync()
        return SyncResponse(
            success=True,
            total_files=total,
            synced_count=synced_count,
            failed_count=failed_count,
            message=f"Sync complete. {synced_count} files verified, {failed_count} issues found."
        )
    except Exception as e:
        logger.error(f"Error during sync: {str(e)}", exc_info=True)
        raise api_error(500, "Sync failed")


@files_router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    try:
        _catalog(uow, s3_service).delete_file(file_id)
        logger.info(f"File deleted: id={file_id}, user={auth.username}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error deleting file: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@files_router.patch("/{file_id}/rename", response_model=FileResponse)
async def rename_file(
    file_id: str,
    request: RenameFileRequest,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    if not request.name:
        raise api_error(400, "Name is required")

    try:
        file = _catalog(uow, s3_service).rename_file(file_id, request.name)
        return FileResponse.from_record(file)
    except ValidationFailedError as e:
        raise api_error(400, e.message, e.details)
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error renaming file: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@files_router.patch("/{file_id}/move", response_model=FileResponse)
async def move_file(
    file_id: str,
    request: MoveFileRequest,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow),
    s3_service: S3ManagementService = Depends(get_s3_service)
):
    try:
        file = _catalog(uow, s3_service).move_file(file_id, request.folder_id)
        return FileResponse.from_record(file)
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error moving file: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")
