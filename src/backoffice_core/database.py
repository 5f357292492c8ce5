"""Database handle and session management."""
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings
from .models import Base

logger = logging.getLogger("backoffice-core.database")


class Database:
    """Connection-pooled handle to the relational store.

    Constructed once per process (or per test) and passed to whatever needs
    sessions. Nothing is connected until ``init()`` is called.
    """

    def __init__(self, url: str, settings: Optional[Settings] = None):
        self.url = url
        self.settings = settings or get_settings()
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def init(self, create_tables: bool = False) -> "Database":
        """Create the engine and session factory.

        Args:
            create_tables: Issue CREATE TABLE for every model (tests and local
                development; production schemas come from alembic)

        Returns:
            The handle itself, for chaining
        """
        if self.url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                self.url,
                pool_pre_ping=True,
                pool_size=self.settings.db_pool_size,
                max_overflow=self.settings.db_max_overflow,
                pool_recycle=self.settings.db_pool_recycle,
                pool_timeout=self.settings.db_pool_timeout,
            )
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        if create_tables:
            Base.metadata.create_all(bind=self.engine)

        logger.info(f"Database initialized ({self.engine.dialect.name})")
        return self

    def shutdown(self) -> None:
        """Dispose of the pool. Safe to call more than once."""
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connections disposed")
        self.engine = None
        self._session_factory = None

    def session(self) -> Session:
        """Open a new session bound to this handle."""
        if self._session_factory is None:
            raise RuntimeError("Database.init() must be called before opening sessions")
        return self._session_factory()


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Run a block of writes as one unit.

    Commits when the block exits cleanly; on any exception rolls back
    everything the block flushed and re-raises.

    Args:
        db: Session to commit or roll back
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency function to get a database session.

    Yields:
        Session: SQLAlchemy session from the application's Database handle
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
