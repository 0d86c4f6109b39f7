"""
Database Session Management

Handles connection pooling, session lifecycle, and database initialization.
PostgreSQL in production, SQLite for local development and tests.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .models import Base

logger = logging.getLogger(__name__)

# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def get_database_url() -> str:
    """
    Get database URL from environment.

    Priority:
    1. DATABASE_URL
    2. SQLite fallback for local development
    """
    url = os.getenv("DATABASE_URL")

    if url:
        # Hosted PostgreSQL URLs often use postgres:// but SQLAlchemy needs postgresql://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        logger.info("Using PostgreSQL database from DATABASE_URL")
        return url

    sqlite_path = os.getenv("SQLITE_PATH", "siterefresh_dev.db")
    logger.warning(f"No DATABASE_URL found, using SQLite: {sqlite_path}")
    return f"sqlite:///{sqlite_path}"


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def create_db_engine(url: Optional[str] = None) -> Engine:
    """
    Create database engine with appropriate settings.

    PostgreSQL: Connection pooling
    SQLite: Cross-thread access (repository calls run in worker threads),
    foreign key support
    """
    url = url or get_database_url()
    echo = os.getenv("SQL_DEBUG", "false").lower() == "true"

    if url.startswith("postgresql"):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=echo,
        )
        logger.info("Created PostgreSQL engine with connection pooling")
        return engine

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine")
    return engine


# Global engine (lazy initialization)
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

_SessionLocal = None


def make_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Returned rows stay readable after commit
    )


def get_session_factory() -> sessionmaker:
    """Get or create the global session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_session_factory(get_engine())
    return _SessionLocal


@contextmanager
def get_db_context(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_context() as db:
            db.query(UrlProfile).all()
    """
    SessionLocal = session_factory or get_session_factory()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables verified")


def check_db_connection(engine: Optional[Engine] = None) -> bool:
    """Return True when a trivial query succeeds."""
    engine = engine or get_engine()
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
