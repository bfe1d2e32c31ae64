from typing import Optional, List, Set, Tuple
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import and_, func

from api.s3.config import Constants
from models import File, FileStatus, Folder, User, UserRole, UserSession


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create(self, username: str, password_hash: str, role: UserRole = UserRole.GUEST) -> User:
        user = User(username=username, password=password_hash, role=role)
        self.db.add(user)
        self.db.flush()
        return user

    def touch_last_login(self, user: User, when: datetime) -> User:
        user.last_login_at = when
        self.db.flush()
        return user

    def update_password(self, user: User, password_hash: str) -> User:
        user.password = password_hash
        self.db.flush()
        return user


class SessionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, token: str, user_id: str, expires_at: datetime) -> UserSession:
        session = UserSession(token=token, user_id=user_id, expires_at=expires_at)
        self.db.add(session)
        self.db.flush()
        return session

    def get_active(self, token: str, now: datetime) -> Optional[UserSession]:
        return self.db.query(UserSession).filter(
            and_(
                UserSession.token == token,
                UserSession.expires_at > now
            )
        ).first()

    def delete(self, token: str) -> bool:
        deleted = self.db.query(UserSession).filter(UserSession.token == token).delete(
            synchronize_session=False
        )
        return deleted > 0

    def delete_expired(self, now: datetime) -> int:
        return self.db.query(UserSession).filter(UserSession.expires_at <= now).delete(
            synchronize_session=False
        )


class FileRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, file: File) -> File:
        self.db.add(file)
        self.db.flush()
        return file

    def get_by_id(self, file_id: str) -> Optional[File]:
        return self.db.query(File).filter(File.id == file_id).first()

    def list_all(self) -> List[File]:
        return self.db.query(File).order_by(File.uploaded_at.desc()).all()

    def list_in_folder(self, folder_id: Optional[str]) -> List[File]:
        query = self.db.query(File)
        if folder_id is None:
            query = query.filter(File.folder_id.is_(None))
        else:
            query = query.filter(File.folder_id == folder_id)
        return query.order_by(File.uploaded_at.desc()).all()

    def search(self, query_text: Optional[str] = None, file_type: Optional[str] = None) -> List[File]:
        """Case-insensitive substring match on the original name, optionally narrowed to a category."""
        query = self.db.query(File)

        if query_text:
            query = query.filter(
                func.lower(File.original_name).contains(query_text.lower(), autoescape=True)
            )

        if file_type and file_type != Constants.FILE_CATEGORY_ALL:
            mime_types = Constants.FILE_CATEGORIES.get(file_type)
            if mime_types is not None:
                query = query.filter(File.mime_type.in_(mime_types))

        return query.order_by(File.uploaded_at.desc()).all()

    def update(self, file: File) -> File:
        self.db.flush()
        return file

    def set_status(self, file: File, status: FileStatus) -> File:
        file.status = status
        self.db.flush()
        return file

    def delete(self, file: File) -> None:
        self.db.delete(file)
        self.db.flush()

    def delete_many(self, file_ids: List[str]) -> List[File]:
        files = self.db.query(File).filter(File.id.in_(file_ids)).all()
        for file in files:
            self.db.delete(file)
        self.db.flush()
        return files

    def reparent(self, from_folder_id: str, to_folder_id: Optional[str]) -> int:
        return self.db.query(File).filter(File.folder_id == from_folder_id).update(
            {File.folder_id: to_folder_id}, synchronize_session=False
        )


class FolderRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, folder: Folder) -> Folder:
        self.db.add(folder)
        self.db.flush()
        return folder

    def get_by_id(self, folder_id: str) -> Optional[Folder]:
        return self.db.query(Folder).filter(Folder.id == folder_id).first()

    def list_all(self) -> List[Folder]:
        return self.db.query(Folder).order_by(Folder.name).all()

    def list_children(self, parent_id: Optional[str]) -> List[Folder]:
        query = self.db.query(Folder)
        if parent_id is None:
            query = query.filter(Folder.parent_id.is_(None))
        else:
            query = query.filter(Folder.parent_id == parent_id)
        return query.order_by(Folder.name).all()

    def get_contents(self, folder_id: Optional[str]) -> Tuple[List[Folder], List[File]]:
        folders = self.list_children(folder_id)
        files = FileRepository(self.db).list_in_folder(folder_id)
        return folders, files

    def descendant_ids(self, folder_id: str) -> Set[str]:
        """Ids of every folder nested below ``folder_id`` (not including itself)."""
        descendants: Set[str] = set()
        frontier = [folder_id]
        while frontier:
            rows = self.db.query(Folder.id).filter(Folder.parent_id.in_(frontier)).all()
            frontier = [row[0] for row in rows if row[0] not in descendants]
            descendants.update(frontier)
        return descendants

    def update(self, folder: Folder) -> Folder:
        self.db.flush()
        return folder

    def reparent(self, from_parent_id: str, to_parent_id: Optional[str]) -> int:
        return self.db.query(Folder).filter(Folder.parent_id == from_parent_id).update(
            {Folder.parent_id: to_parent_id}, synchronize_session=False
        )

    def delete(self, folder: Folder) -> None:
        self.db.delete(folder)
        self.db.flush()
