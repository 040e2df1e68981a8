"""Engine and session factory for the billing store"""

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from tuition_ledger.config import settings


def build_engine(database_url: str) -> Engine:
    """
    PostgreSQL gets a bounded connection pool; SQLite (local runs) a single-file
    engine usable from the request threadpool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Request-scoped session; handlers commit, errors roll back in domain_errors"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
