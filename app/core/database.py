from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator, Iterator
from fastapi import Request
import logging

from .exceptions import InternalError

logger = logging.getLogger(__name__)

Base = declarative_base()

def create_db_engine(database_url: str) -> Engine:
    """Create the engine with pool settings suited to the backend."""
    if database_url.startswith("sqlite"):
        # SQLite connections are shared across the request threadpool
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    # PostgreSQL database setup with appropriate connection pool settings
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
    )

def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success, roll back on any failure.

    Storage errors surface as InternalError; domain errors propagate untouched.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database transaction failed: {str(e)}")
        raise InternalError("Storage failure") from e
    except Exception:
        db.rollback()
        raise

# Database dependency
def get_db(request: Request) -> Generator[Session, None, None]:
    """Get database session."""
    db = request.app.state.runtime.session_factory()
    try:
        yield db
    finally:
        db.close()

# Database initialization
def init_db(engine: Engine):
    """Initialize database tables."""
    # Models must be imported so their tables register on Base.metadata
    from ..models import (  # noqa: F401
        user, profile, slot, appointment, message, prescription, video_session, audit_log
    )
    Base.metadata.create_all(bind=engine)
