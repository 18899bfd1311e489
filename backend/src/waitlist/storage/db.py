"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from waitlist.logging_config import get_logger
from waitlist.settings import settings
from waitlist.storage.models import Base

logger = get_logger(__name__)


def _normalize_url(database_url: str) -> str:
    # Hosted Postgres providers still hand out the legacy scheme
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None, echo: bool = False):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
            echo: Log every SQL statement
        """
        self.database_url = _normalize_url(database_url or settings.database_url)

        engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        if self.database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", dialect=self.engine.dialect.name)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_tables(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Yields:
            Database session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
