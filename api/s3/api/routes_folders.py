from fastapi import APIRouter, Depends, status
from typing import List
import logging

from common.http_errors import api_error
from api.s3.dependencies import AuthContext, get_uow, require_user, validate_folder_name
from api.s3.domain.errors import NotFoundError, ValidationFailedError
from api.s3.domain.services.folder_tree import FolderTree
from api.s3.infra.db.uow import UnitOfWork
from api.s3.schemas.common import MessageResponse
from api.s3.schemas.files import FileResponse
from api.s3.schemas.folders import (
    CreateFolderRequest,
    FolderContentsResponse,
    FolderResponse,
    UpdateFolderRequest
)

logger = logging.getLogger(__name__)

folders_router = APIRouter(prefix="/api/folders", tags=["Folders"])


@folders_router.get("", response_model=List[FolderResponse])
async def list_folders(
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow)
):
    try:
        return [FolderResponse.from_record(f) for f in FolderTree(uow).list_folders()]
    except Exception as e:
        logger.error(f"Error fetching folders: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@folders_router.get("/{folder_id}/contents", response_model=FolderContentsResponse)
async def get_folder_contents(
    folder_id: str,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow)
):
    """
    List the immediate subfolders and files of a folder.

    - **folder_id**: folder id, or ``root`` for the top level
    """
    try:
        folders, files = FolderTree(uow).get_contents(folder_id)

        logger.info(f"Folder listed: id={folder_id}, folders={len(folders)}, files={len(files)}")

        return FolderContentsResponse(
            folders=[FolderResponse.from_record(f) for f in folders],
            files=[FileResponse.from_record(f) for f in files]
        )
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error fetching folder contents: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@folders_router.post("", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    request: CreateFolderRequest,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow)
):
    sanitized_name = validate_folder_name(request.name)

    try:
        folder = FolderTree(uow).create_folder(sanitized_name, request.parent_id, request.color)
        return FolderResponse.from_record(folder)
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error creating folder: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@folders_router.patch("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: str,
    request: UpdateFolderRequest,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow)
):
    """Rename, recolor or re-parent a folder. Only the fields present in the body change."""
    changes = {}
    if request.name:
        changes["name"] = validate_folder_name(request.name)
    if "parent_id" in request.model_fields_set:
        changes["parent_id"] = request.parent_id
    if request.color is not None:
        changes["color"] = request.color

    try:
        folder = FolderTree(uow).update_folder(folder_id, **changes)
        return FolderResponse.from_record(folder)
    except ValidationFailedError as e:
        raise api_error(400, e.message, e.details)
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error updating folder: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")


@folders_router.delete("/{folder_id}", response_model=MessageResponse)
async def delete_folder(
    folder_id: str,
    auth: AuthContext = Depends(require_user),
    uow: UnitOfWork = Depends(get_uow)
):
    try:
        FolderTree(uow).delete_folder(folder_id)
        return MessageResponse(message="Folder deleted successfully")
    except NotFoundError as e:
        raise api_error(404, str(e))
    except Exception as e:
        logger.error(f"Error deleting folder: {str(e)}", exc_info=True)
        raise api_error(500, "Internal server error")
