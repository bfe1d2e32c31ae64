import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, BigInteger, Text, DateTime, ForeignKey, Index, JSON, Enum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from settings.database import Base


DEFAULT_FOLDER_COLOR = "#3B82F6"


class FileStatus(str, enum.Enum):
    PROCESSING = "processing"
    SYNCED = "synced"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


class Folder(Base):
    __tablename__ = "folders"
    __table_args__ = (
        Index("ix_folders_parent_id", "parent_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    parent_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), default=_utcnow, nullable=False)
    color = Column(String(16), default=DEFAULT_FOLDER_COLOR, nullable=True)

    files = relationship("File", back_populates="folder")


class File(Base):
    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_folder_id", "folder_id"),
        Index("ix_files_uploaded_at", "uploaded_at"),
        Index("ix_files_status", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    original_name = Column(Text, nullable=False)
    size = Column(BigInteger, nullable=False)
    mime_type = Column(Text, nullable=False)
    object_path = Column(Text, nullable=False)
    uploaded_at = Column(DateTime, server_default=func.now(), default=_utcnow, nullable=False)
    status = Column(
        Enum(FileStatus, name="file_status", values_callable=lambda statuses: [s.value for s in statuses]),
        nullable=False,
        default=FileStatus.PROCESSING,
    )
    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)
    # "metadata" is reserved on declarative classes
    file_metadata = Column("metadata", JSON, nullable=True)

    folder = relationship("Folder", back_populates="files")
