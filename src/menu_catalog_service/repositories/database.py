"""Database engine and transactional unit of work."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from menu_catalog_service.exceptions import InternalError
from menu_catalog_service.repositories.tables import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:  # noqa: ARG001
    """SQLite ignores foreign keys (and so ON DELETE CASCADE) unless asked."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the SQLAlchemy engine and hands out one session per operation.

    Every catalog operation runs inside ``transaction()``: the session commits
    when the block exits normally and rolls back on any exception, so a
    multi-statement operation is never partially applied.
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any) -> None:
        """Initialize the database.

        Args:
            url: SQLAlchemy database URL
            echo: Whether to log emitted SQL
            **engine_kwargs: Extra arguments for ``create_engine`` (e.g. poolclass)
        """
        self.url = url
        self.engine: Engine = create_engine(url, echo=echo, **engine_kwargs)

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_tables(self) -> None:
        """Create all catalog tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Database tables ensured for {self.engine.url.render_as_string(hide_password=True)}")

    def drop_tables(self) -> None:
        """Drop all catalog tables."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def transaction(self, operation: str, **identifiers: Any) -> Iterator[Session]:
        """Run a block of work in a single transaction.

        Args:
            operation: Operation name, used when logging storage failures
            **identifiers: Ids involved in the operation, logged on failure

        Yields:
            Session: Session bound to the open transaction

        Raises:
            InternalError: If the storage layer fails; the raw error is only logged
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(f"Storage failure during {operation} {identifiers}: {e}")
            raise InternalError() from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
