"""Connection and cursor helpers shared by the PostgreSQL repositories."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..app_context import get_conn
from .errors import PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class PostgresRepository:
    """Base class for repositories that share one dict-cursor idiom."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        try:
            with managed_connection(self._conn) as (connection, _managed):
                cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                try:
                    yield cursor
                finally:
                    cursor.close()
        except psycopg2.Error as exc:
            logger.error(
                "Database operation failed in %s: %s",
                type(self).__name__,
                exc.__class__.__name__,
            )
            raise PersistenceError("A storage error occurred.") from exc


__all__ = ["PostgresRepository", "managed_connection"]
