from typing import Iterable, List, Optional, Tuple
import logging

from botocore.exceptions import ClientError

from api.s3.domain.errors import NotFoundError, ValidationFailedError
from api.s3.domain.policies import FileSecurityValidator
from api.s3.infra.db.uow import UnitOfWork
from api.s3.infra.s3.s3_management_service import S3ManagementService, ObjectNotFoundError
from api.s3.schemas.files import CreateFileRequest
from models import File, FileStatus

logger = logging.getLogger(__name__)


class FileCatalog:
    """File records and the stored objects they point at."""

    def __init__(self, uow: UnitOfWork, s3_service: S3ManagementService, sniff_bytes: int = 8192):
        self.uow = uow
        self.s3 = s3_service
        self.sniff_bytes = sniff_bytes

    def register_file(self, request: CreateFileRequest) -> File:
        name_validation = FileSecurityValidator.validate_filename(request.name)
        if not name_validation.is_valid:
            raise ValidationFailedError("Invalid filename", name_validation.errors)

        if request.folder_id and not self.uow.folders.get_by_id(request.folder_id):
            raise NotFoundError("Folder not found")

        object_path = self.s3.normalize_object_entity_path(request.object_path)
        self._verify_stored_content(object_path, request.mime_type)

        file = File(
            name=name_validation.sanitized_filename,
            original_name=request.original_name,
            size=request.size,
            mime_type=request.mime_type,
            object_path=object_path,
            status=FileStatus.SYNCED,
            folder_id=request.folder_id or None,
            file_metadata=request.metadata
        )
        self.uow.files.create(file)

        logger.info(f"Registered file {file.id} ({file.original_name}) at {object_path}")
        return file

    def _verify_stored_content(self, object_path: str, mime_type: str) -> None:
        """Sniff the leading bytes of the uploaded object; reject and remove it on mismatch."""
        try:
            key = self.s3.object_key_for_path(object_path)
            head = self.s3.read_object_head(key, self.sniff_bytes)
        except ObjectNotFoundError:
            logger.warning(f"Skipping content check, no stored object for {object_path}")
            return
        except ClientError as e:
            logger.error(f"Skipping content check, could not read {object_path}: {e}")
            return

        result = FileSecurityValidator.validate_content(head, mime_type)
        if result.is_valid:
            return

        logger.warning(f"Content validation failed for {object_path}: {result.errors}")
        try:
            self.s3.delete_object(key)
        except ClientError as e:
            logger.error(f"Failed to remove rejected object {key}: {e}")

        raise ValidationFailedError("File content validation failed", result.errors)

    def list_files(self) -> List[File]:
        return self.uow.files.list_all()

    def search_files(self, query: Optional[str] = None, file_type: Optional[str] = None) -> List[File]:
        return self.uow.files.search(query, file_type)

    def get_file(self, file_id: str) -> File:
        file = self.uow.files.get_by_id(file_id)
        if not file:
            raise NotFoundError("File not found")
        return file

    def delete_file(self, file_id: str) -> None:
        file = self.get_file(file_id)
        object_path = file.object_path

        self.uow.files.delete(file)
        self.uow.commit()

        self._discard_objects([object_path])

    def bulk_delete(self, file_ids: List[str]) -> int:
        deleted = self.uow.files.delete_many(file_ids)
        self.uow.commit()

        self._discard_objects(file.object_path for file in deleted)
        logger.info(f"Bulk deleted {len(deleted)} of {len(file_ids)} requested files")
        return len(deleted)

    def _discard_objects(self, object_paths: Iterable[str]) -> None:
        # Records are already gone; storage cleanup failures are only logged
        for object_path in object_paths:
            try:
                self.s3.delete_object(self.s3.object_key_for_path(object_path))
            except ObjectNotFoundError:
                logger.info(f"No stored object to delete for {object_path}")
            except ClientError as e:
                logger.error(f"Failed to delete stored object for {object_path}: {e}")

    def sync(self) -> Tuple[int, int, int]:
        """Check every record against storage. Returns (total, synced, failed)."""
        files = self.uow.files.list_all()
        synced_count = 0
        failed_count = 0

        for file in files:
            try:
                self.s3.get_object_entity_file(file.object_path)
            except ObjectNotFoundError:
                logger.warning(f"Sync check failed for file {file.id}: object missing")
                self.uow.files.set_status(file, FileStatus.FAILED)
                failed_count += 1
                continue
            except ClientError as e:
                logger.error(f"Sync check failed for file {file.id}: {e}")
                failed_count += 1
                continue

            if file.status != FileStatus.SYNCED:
                self.uow.files.set_status(file, FileStatus.SYNCED)
            synced_count += 1

        self.uow.commit()
        return len(files), synced_count, failed_count

    def rename_file(self, file_id: str, name: str) -> File:
        name_validation = FileSecurityValidator.validate_filename(name)
        if not name_validation.is_valid:
            raise ValidationFailedError("Invalid filename", name_validation.errors)

        file = self.get_file(file_id)
        file.name = name_validation.sanitized_filename
        self.uow.files.update(file)
        self.uow.commit()
        return file

    def move_file(self, file_id: str, folder_id: Optional[str]) -> File:
        file = self.get_file(file_id)
        if folder_id and not self.uow.folders.get_by_id(folder_id):
            raise NotFoundError("Folder not found")

        file.folder_id = folder_id or None
        self.uow.files.update(file)
        self.uow.commit()
        return file
