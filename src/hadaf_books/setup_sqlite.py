"""
Hadaf Books - SQLite Database Setup & Initialization

This module creates and initializes the Hadaf Books SQLite database schema.
It creates all tables with proper foreign key relationships and indexes.

Database Schema Overview:
------------------------
- categories: Income/expense categories, optionally nested via parent_id
- transactions: Ledger entries (done, pending or cancelled)
- recurring_transactions: Repeating payment templates with a next due date
- schema_version: Track applied database migrations

Key Design Features:
- Foreign key constraints for referential integrity
- Cascade deletes from categories to transactions and templates
- TEXT storage for monetary values (preserves exact precision)
- Partial unique index allowing only one pending installment per
  (template, date)

License: MIT
"""

import logging
import sqlite3
from pathlib import Path

from .config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (
    "Turkish Class",
    "German Class",
    "English Class",
    "Marketing/Ads",
    "General Costs",
    "Other Income",
)

EXPECTED_TABLES = (
    "categories",
    "transactions",
    "recurring_transactions",
    "schema_version",
)


def get_db_path():
    """Return the default path of the SQLite database file"""
    return DEFAULT_DB_PATH


def connect(db_path):
    """Open a connection with foreign keys enforced and dict-style rows."""
    conn = sqlite3.connect(str(db_path), timeout=10)
    # Enable foreign key constraints (CRITICAL for cascade deletes)
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    return conn


def create_schema(cursor):
    # =================================================================
    # TABLE 1: categories
    # =================================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            parent_id INTEGER DEFAULT NULL,
            type TEXT NOT NULL DEFAULT 'custom',
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (parent_id) REFERENCES categories(id) ON DELETE CASCADE
        )
    """)

    # =================================================================
    # TABLE 2: recurring_transactions - repeating payment templates
    # =================================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS recurring_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            category_id INTEGER NOT NULL,
            amount TEXT NOT NULL,
            currency TEXT NOT NULL DEFAULT 'AFN' CHECK(currency IN ('AFN', 'USD', 'TRY', 'EUR')),
            type TEXT NOT NULL CHECK(type IN ('in', 'out')),
            name TEXT NOT NULL,
            description TEXT,
            frequency TEXT NOT NULL CHECK(frequency IN ('daily', 'weekly', 'monthly', 'yearly')),
            next_due_date TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE
        )
    """)
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_recurring_next_due_date ON recurring_transactions(next_due_date);")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_recurring_is_active ON recurring_transactions(is_active);")

    # =================================================================
    # TABLE 3: transactions - the ledger
    # =================================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            category_id INTEGER NOT NULL,
            recurring_id INTEGER DEFAULT NULL,
            amount TEXT NOT NULL,
            currency TEXT NOT NULL DEFAULT 'AFN' CHECK(currency IN ('AFN', 'USD', 'TRY', 'EUR')),
            type TEXT NOT NULL CHECK(type IN ('in', 'out')),
            status TEXT NOT NULL DEFAULT 'done' CHECK(status IN ('pending', 'done', 'cancelled')),
            date TEXT NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE,
            FOREIGN KEY (recurring_id) REFERENCES recurring_transactions(id) ON DELETE SET NULL
        )
    """)
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_category_id ON transactions(category_id);")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date);")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_status ON transactions(status);")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_currency ON transactions(currency);")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_recurring ON transactions(recurring_id, date);")
    cursor.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS ux_transactions_pending_installment
        ON transactions(recurring_id, date)
        WHERE status = 'pending' AND recurring_id IS NOT NULL
    """)

    # =================================================================
    # TABLE 4: schema_version - Migration tracking
    # =================================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            description TEXT NOT NULL,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)


def seed_default_categories(cursor):
    """Insert the default categories into an empty categories table."""
    cursor.execute("SELECT COUNT(*) FROM categories")
    if cursor.fetchone()[0] > 0:
        return 0
    cursor.executemany(
        "INSERT INTO categories (name, parent_id, type) VALUES (?, NULL, 'default')",
        [(name,) for name in DEFAULT_CATEGORIES],
    )
    return len(DEFAULT_CATEGORIES)


def _table_names(cursor):
    cursor.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {row[0] for row in cursor.fetchall()}


def create_database(db_path=None):
    """
    Create the Hadaf Books SQLite database if it has no schema yet.

    A database that already holds the ledger tables is left untouched; bring
    it up to date with ``migration_runner.run_all_pending``. A new database
    already contains every bundled migration, so they are stamped as applied.

    Args:
        db_path (Path, optional): database file, defaults to get_db_path()

    Returns:
        bool: True on success, False if SQLite reported an error
    """
    # Imported here: migration_runner imports connect() from this module
    from .migration_runner import stamp_all

    db_path = Path(db_path or get_db_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path)
    cursor = conn.cursor()
    try:
        if "transactions" in _table_names(cursor):
            return True
        create_schema(cursor)
        seeded = seed_default_categories(cursor)
        stamp_all(cursor)
        conn.commit()
        logger.info("Database created at %s (%d default categories seeded)", db_path, seeded)
        return True
    except sqlite3.Error as err:
        conn.rollback()
        logger.error("Error creating database at %s: %s", db_path, err)
        return False
    finally:
        cursor.close()
        conn.close()


def reset_database(db_path=None):
    """
    DANGER: Delete the existing database and create a fresh one.
    All data will be permanently lost!
    """
    db_path = Path(db_path or get_db_path())
    if db_path.exists():
        logger.warning("Deleting existing database at %s", db_path)
        db_path.unlink()
    return create_database(db_path)


def verify_schema(db_path=None):
    """Return the list of expected tables missing from the database."""
    db_path = Path(db_path or get_db_path())
    if not db_path.exists():
        return list(EXPECTED_TABLES)

    conn = connect(db_path)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        present = {row["name"] for row in rows}
        return [table for table in EXPECTED_TABLES if table not in present]
    finally:
        conn.close()


if __name__ == "__main__":
    print("=" * 80)
    print("Hadaf Books - SQLite Database Setup")
    print("=" * 80)
    print()

    path = get_db_path()
    if path.exists():
        print(f"Database already exists at: {path}")
        choice = input("Choose an option:\n  1. Verify existing schema\n  2. Reset database ([WARNING] DELETES ALL DATA)\n  3. Cancel\n\nChoice: ")
        if choice == '1':
            missing = verify_schema(path)
            print("[OK] Schema complete" if not missing else f"[ERROR] Missing tables: {', '.join(missing)}")
        elif choice == '2':
            confirm = input("\n[WARNING] This will DELETE ALL DATA. Type 'DELETE' to confirm: ")
            if confirm == 'DELETE':
                reset_database(path)
            else:
                print("Reset cancelled.")
        else:
            print("Cancelled.")
    else:
        print("No existing database found. Creating new database...")
        create_database(path)
