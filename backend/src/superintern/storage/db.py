"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from superintern.logging_config import get_logger
from superintern.settings import settings
from superintern.storage.models import Base

logger = get_logger(__name__)


class Database:
    """Database connection manager.

    One instance is built per process (see ``create_app``) and handed to the
    services that need it.
    """

    def __init__(self, database_url: str | None = None, echo: bool = False):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
            echo: Log emitted SQL
        """
        self.database_url = database_url or settings.database_url

        engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                # Single shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    @property
    def dialect(self) -> str:
        """Name of the SQL dialect in use (``sqlite``, ``postgresql``...)."""
        return self.engine.dialect.name

    def create_tables(self) -> None:
        """Create all tables in the database."""
        # Import model modules so they register with the metadata
        import superintern.auth.models  # noqa: F401
        import superintern.companies.models  # noqa: F401
        import superintern.referral.models  # noqa: F401
        import superintern.tasks.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    def drop_tables(self) -> None:
        """Drop all tables from the database."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("tables_dropped")

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()

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
