from typing import List, Optional, Tuple
import logging

from api.s3.config import Constants
from api.s3.domain.errors import NotFoundError, ValidationFailedError
from api.s3.infra.db.uow import UnitOfWork
from models import DEFAULT_FOLDER_COLOR, File, Folder

logger = logging.getLogger(__name__)

_UNSET = object()


class FolderTree:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def list_folders(self) -> List[Folder]:
        return self.uow.folders.list_all()

    def get_folder(self, folder_id: str) -> Folder:
        folder = self.uow.folders.get_by_id(folder_id)
        if not folder:
            raise NotFoundError("Folder not found")
        return folder

    def get_contents(self, folder_id: str) -> Tuple[List[Folder], List[File]]:
        if folder_id == Constants.ROOT_FOLDER_ID:
            return self.uow.folders.get_contents(None)

        self.get_folder(folder_id)
        return self.uow.folders.get_contents(folder_id)

    def create_folder(self, name: str, parent_id: Optional[str] = None, color: Optional[str] = None) -> Folder:
        if parent_id and not self.uow.folders.get_by_id(parent_id):
            raise NotFoundError("Parent folder not found")

        folder = Folder(name=name, parent_id=parent_id or None, color=color or DEFAULT_FOLDER_COLOR)
        self.uow.folders.create(folder)
        self.uow.commit()

        logger.info(f"Created folder {folder.id} ({folder.name}) under parent={folder.parent_id}")
        return folder

    def update_folder(self, folder_id: str, name: Optional[str] = None, parent_id=_UNSET, color: Optional[str] = None) -> Folder:
        """Apply a partial update. ``parent_id=None`` moves the folder to the top level."""
        folder = self.get_folder(folder_id)

        if parent_id is not _UNSET:
            if parent_id:
                if parent_id == folder.id or parent_id in self.uow.folders.descendant_ids(folder.id):
                    raise ValidationFailedError("Folder cannot be moved into itself or a descendant")
                if not self.uow.folders.get_by_id(parent_id):
                    raise NotFoundError("Parent folder not found")
            folder.parent_id = parent_id or None

        if name is not None:
            folder.name = name
        if color is not None:
            folder.color = color

        self.uow.folders.update(folder)
        self.uow.commit()
        return folder

    def delete_folder(self, folder_id: str) -> None:
        """Delete a folder; its direct children move up to its parent."""
        folder = self.get_folder(folder_id)
        parent_id = folder.parent_id

        moved_folders = self.uow.folders.reparent(folder.id, parent_id)
        moved_files = self.uow.files.reparent(folder.id, parent_id)
        self.uow.db.expire_all()

        self.uow.folders.delete(self.get_folder(folder_id))
        self.uow.commit()

        logger.info(
            f"Deleted folder {folder_id}; moved {moved_folders} folders and {moved_files} files to parent={parent_id}"
        )
