"""
Hadaf Books - Database Migration Runner

This module handles schema migrations for the SQLite database.
Migrations are SQL files in the package's migrations/ folder that are applied
in order.

Migration files should be named: 001_description.sql, 002_description.sql, etc.

The schema_version table tracks which migrations have been applied. Databases
created by setup_sqlite already contain every bundled change, so they are
stamped with the latest version instead of replaying the files.
"""

import logging
import re
import sqlite3
from pathlib import Path

from .setup_sqlite import connect, get_db_path

logger = logging.getLogger(__name__)

MIGRATION_PATTERN = re.compile(r'^(\d{3})_(.+)\.sql$')


def get_migrations_path():
    """Return the path to the migrations folder"""
    return Path(__file__).parent / "migrations"


def get_current_version(conn):
    """
    Get the current schema version from the database.

    Returns:
        int: The highest migration version applied, or 0 if no migrations
    """
    try:
        result = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return result[0] if result[0] is not None else 0
    except sqlite3.OperationalError:
        # schema_version table doesn't exist yet
        return 0


def get_migrations():
    """
    List every bundled migration file.

    Returns:
        list: tuples (version, filepath, description) sorted by version
    """
    migrations = []
    for file in sorted(get_migrations_path().glob('*.sql')):
        match = MIGRATION_PATTERN.match(file.name)
        if match:
            version = int(match.group(1))
            description = match.group(2).replace('_', ' ')
            migrations.append((version, file, description))
    return migrations


def stamp_all(cursor):
    """Record every bundled migration as applied without running it."""
    cursor.executemany(
        "INSERT OR IGNORE INTO schema_version (version, description) VALUES (?, ?)",
        [(version, description) for version, _, description in get_migrations()],
    )


def apply_migration(conn, version, filepath, description):
    """
    Apply a single migration file to the database.

    Args:
        conn: SQLite connection
        version (int): Migration version number
        filepath (Path): Path to the migration SQL file
        description (str): Human-readable description

    Returns:
        bool: True if successful, False otherwise
    """
    sql = filepath.read_text(encoding='utf-8')
    try:
        # executescript commits any open transaction before running, so the
        # version row is written in the same script to keep the pair atomic
        conn.executescript(
            "BEGIN;\n" + sql + "\n"
            f"INSERT INTO schema_version (version, description) VALUES ({int(version)}, "
            f"'{description.replace(chr(39), chr(39) * 2)}');\n"
            "COMMIT;"
        )
        logger.info("Applied migration %03d: %s", version, description)
        return True
    except sqlite3.Error as e:
        if conn.in_transaction:
            conn.rollback()
        logger.error("Migration %03d (%s) failed: %s", version, description, e)
        return False


def run_all_pending(db_path=None):
    """
    Run all pending migrations.

    Returns:
        int: Number of migrations applied
    """
    db_path = Path(db_path or get_db_path())
    if not db_path.exists():
        logger.warning("Database %s does not exist. Run setup_sqlite first.", db_path)
        return 0

    conn = connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                applied_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()

        current_version = get_current_version(conn)
        pending = [m for m in get_migrations() if m[0] > current_version]

        applied = 0
        for version, filepath, description in pending:
            if not apply_migration(conn, version, filepath, description):
                logger.error("Migration %03d failed. Stopping.", version)
                break
            applied += 1
        return applied
    finally:
        conn.close()


def list_migrations(db_path=None):
    """Return [(version, description, applied)] for every bundled migration."""
    db_path = Path(db_path or get_db_path())
    current_version = 0
    if db_path.exists():
        conn = connect(db_path)
        try:
            current_version = get_current_version(conn)
        finally:
            conn.close()
    return [(version, description, version <= current_version) for version, _, description in get_migrations()]


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1 and sys.argv[1] == 'list':
        print()
        print("Migration Status:")
        print("=" * 60)
        for version, description, applied in list_migrations():
            status = "[APPLIED]" if applied else "[PENDING]"
            print(f"{version:03d}. {description:<40} {status}")
    else:
        count = run_all_pending()
        print(f"[OK] Applied {count} migration(s)." if count else "[OK] No pending migrations.")
