"""
Routers for the file storage API.

Combines the file, folder and object routes so the application can include
them in one place.
"""
from fastapi import APIRouter

from api.s3.api.routes_files import files_router
from api.s3.api.routes_folders import folders_router
from api.s3.api.routes_objects import object_files_router, objects_router

storage_router = APIRouter()

storage_router.include_router(files_router)
storage_router.include_router(folders_router)
storage_router.include_router(objects_router)
storage_router.include_router(object_files_router)

__all__ = ["storage_router", "files_router", "folders_router", "objects_router", "object_files_router"]
