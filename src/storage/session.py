"""Database engine and session management."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from scoring.config import load_config
from storage.models import Base

logger = logging.getLogger(__name__)


class DatabaseSession:
    """Owns an engine and hands out transactional sessions."""

    def __init__(self, database_url: str | None = None):
        """Initialize database session factory.

        Args:
            database_url: SQLAlchemy URL. If None, read from configuration.
        """
        self.database_url = database_url or load_config().database_url

        if self.database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in self.database_url or self.database_url == "sqlite://":
                # One shared connection so every session sees the same database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs = {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}

        self.engine = create_engine(self.database_url, **kwargs)
        self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init_db(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Database schema ready at {self.engine.url!r}")

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
