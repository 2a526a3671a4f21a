"""Database session management with connection pooling"""

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from good4it_gateway.config import settings


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # single file, no pool sizing; sessions may cross TestClient threads
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

# expire_on_commit off: aggregates are read back after commit to build responses
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions; uncommitted work is rolled back"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()
