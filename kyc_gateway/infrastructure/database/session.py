"""Database engine, session factory, and schema bootstrap"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from kyc_gateway.config import settings
from kyc_gateway.infrastructure.database.models import Base

# Audit appends and decision writes share one connection per request
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables() -> None:
    """Create any missing tables; existing tables are left untouched"""
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    """Session-per-request dependency; the endpoint owns commit and rollback"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
