import os
from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import sessionmaker, declarative_base

POSTGRES_HOST = os.environ.get('FILEVAULT_DB_HOST', 'localhost')
POSTGRES_PORT = os.environ.get('FILEVAULT_DB_PORT', '5432')
POSTGRES_USER = os.environ.get('FILEVAULT_DB_USER', 'postgres')
POSTGRES_PASSWORD = os.environ.get('FILEVAULT_DB_PASSWORD')
POSTGRES_DB = os.environ.get('FILEVAULT_DB_NAME', 'filevault')


def get_database_url():
    """FILEVAULT_DATABASE_URL wins over the individual FILEVAULT_DB_* parts."""
    explicit_url = os.environ.get('FILEVAULT_DATABASE_URL')
    if explicit_url:
        return explicit_url
    return URL.create(
        drivername="postgresql",
        username=POSTGRES_USER,
        password=POSTGRES_PASSWORD,
        host=POSTGRES_HOST,
        database=POSTGRES_DB,
        port=int(POSTGRES_PORT) if POSTGRES_PORT else None
    )


DATABASE_URL = get_database_url()

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
