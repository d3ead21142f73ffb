"""Database connection helpers."""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import psycopg

from urbanthread.config import Settings


def get_connection(settings: Optional[Settings] = None) -> psycopg.Connection:
    """Create a new database connection."""
    settings = settings or Settings()
    return psycopg.connect(settings.get_database_url())


@contextmanager
def db_cursor(
    settings: Optional[Settings] = None,
    row_factory: Optional[Any] = None,
) -> Iterator[psycopg.Cursor]:
    """Yield a cursor inside one transaction with automatic commit/rollback."""
    conn = get_connection(settings)
    try:
        if row_factory is None:
            cursor_cm = conn.cursor()
        else:
            cursor_cm = conn.cursor(row_factory=row_factory)
        with cursor_cm as cursor:
            yield cursor
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
