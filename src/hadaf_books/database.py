"""
Hadaf Books - Database Handle

``Database`` is the one object that knows where the SQLite file lives. It is
created once by the application and handed to every repository, so tests can
point a whole engine at a temporary file.

Connections are short-lived: each public repository call opens one, does its
work and closes it. Compound operations open a write transaction themselves
and pass the cursor down, and any repository method that receives a cursor
joins that transaction instead of committing on its own.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

from .migration_runner import run_all_pending
from .setup_sqlite import connect, create_database

logger = logging.getLogger(__name__)


class Database:

    def __init__(self, db_path):
        self.db_path = Path(db_path)

    def initialize(self):
        """Create the schema on first use, otherwise apply pending migrations."""
        if not create_database(self.db_path):
            raise RuntimeError(f"Could not initialize database at {self.db_path}")
        applied = run_all_pending(self.db_path)
        if applied:
            logger.info("Applied %d migration(s) to %s", applied, self.db_path)
        return self

    def _get_db_connection(self):
        """
        Establish a new database connection.

        Returns:
            tuple: (connection, cursor)

        Note:
            Callers are responsible for closing the connection and cursor.
        """
        conn = connect(self.db_path)
        return conn, conn.cursor()

    @contextmanager
    def transaction(self, cursor=None):
        """
        Yield a cursor inside a write transaction.

        When ``cursor`` is given the caller already owns a transaction: it is
        yielded unchanged and nothing is committed, rolled back or closed here.
        Otherwise a new connection is opened with ``BEGIN IMMEDIATE`` so that
        concurrent writers serialize before they read, and the work is
        committed on success or rolled back on any exception.
        """
        if cursor is not None:
            yield cursor
            return

        conn, cursor = self._get_db_connection()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    @contextmanager
    def reader(self, cursor=None):
        """Yield a cursor for read-only work, reusing ``cursor`` if given."""
        if cursor is not None:
            yield cursor
            return

        conn, cursor = self._get_db_connection()
        try:
            yield cursor
        finally:
            cursor.close()
            conn.close()


class Repository:
    """Shared SQLite conversion helpers for the repositories."""

    def __init__(self, db):
        self._db = db

    @staticmethod
    def _to_money_str(value):
        """Convert Decimal, int, float or numeric string to exact TEXT for SQLite storage"""
        if value is None:
            return None
        if isinstance(value, Decimal):
            return str(value)
        return str(Decimal(str(value)))

    @staticmethod
    def _from_money_str(value):
        """Convert string from SQLite to Decimal for calculations"""
        if value is None or value == '':
            return Decimal('0.00')
        return Decimal(str(value))

    def _row_to_dict(self, row):
        """Convert sqlite3.Row to dictionary for JSON serialization"""
        if row is None:
            return None
        return dict(row)

    def _rows_to_dicts(self, rows):
        return [self._row_to_dict(row) for row in rows]
