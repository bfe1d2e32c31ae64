from sqlalchemy.orm import Session
from contextlib import contextmanager
from typing import Generator

from api.s3.infra.db.repositories import (
    UserRepository,
    SessionRepository,
    FileRepository,
    FolderRepository
)


class UnitOfWork:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.sessions = SessionRepository(db)
        self.files = FileRepository(db)
        self.folders = FolderRepository(db)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def flush(self):
        self.db.flush()


@contextmanager
def unit_of_work(db: Session) -> Generator[UnitOfWork, None, None]:
    uow = UnitOfWork(db)
    try:
        yield uow
        uow.commit()
    except Exception:
        uow.rollback()
        raise
