from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
import logging
import os
from models import Base

logger = logging.getLogger(__name__)


def get_engine(db_path: str):
    """Create SQLAlchemy engine for SQLite with connection pooling

    The provisioning flow relies on the conditional UPDATE on the user row
    being visible to every other connection as soon as it commits.
    """
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={
            "check_same_thread": False,
            "timeout": 30,
        },
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite for concurrent request handling."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=DELETE")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")  # 30 seconds
        cursor.close()

    return engine


def init_database(engine):
    """Initialize all tables"""
    Base.metadata.create_all(engine)
    logger.info(f"Database initialized at {engine.url.database}")


@contextmanager
def get_session(engine):
    """Context manager for database sessions"""
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# Global engine for FastAPI dependency injection
_global_engine = None


def set_global_engine(engine):
    """Set the global engine for FastAPI dependencies"""
    global _global_engine
    _global_engine = engine


def get_session_factory():
    """Session factory bound to the global engine (for background services)"""
    if _global_engine is None:
        raise RuntimeError("Database engine not initialized. Call set_global_engine first.")
    return sessionmaker(bind=_global_engine)


def get_db():
    """
    FastAPI dependency for database sessions

    Usage:
        @app.get("/api/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            # Use db here
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
