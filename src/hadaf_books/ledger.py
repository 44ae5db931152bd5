"""
Hadaf Books - Ledger Repository

CRUD and filtered listing over ``transactions``, the dated entries of the
books. An entry is either a plain one-off transaction (status ``done`` by
default) or an installment of a recurring template (``recurring_id`` set,
created ``pending``).

Closing the current installment of a template is the one update with a side
effect: moving it out of ``pending`` while its date equals the template's
``next_due_date`` hands the template to the installment-closed hook, which
advances it and queues the next installment. The hook is injected after
construction (see ``engine.BooksEngine``) so this module depends on the
template repository but never on the advancer.

Default reads hide everything but ``done`` rows: pending installments and
cancelled entries are only listed when a status is asked for explicitly.
"""

import logging
import sqlite3

from .database import Repository
from .errors import DuplicateInstallment, InvalidCategory, NotFound

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("done", "cancelled")

LEDGER_SELECT = """
    SELECT
        t.id, t.category_id, t.recurring_id, c.name AS category_name,
        t.amount, t.currency, t.type, t.status, t.date, t.name, t.description,
        t.created_at, t.updated_at
    FROM transactions t
    JOIN categories c ON c.id = t.category_id
"""

UPDATABLE_FIELDS = (
    "category_id", "recurring_id", "amount", "currency", "type",
    "status", "date", "name", "description",
)

# Fields that keep their stored value when an update passes None
_KEEP_ON_NONE = ("category_id", "amount", "currency", "type", "status", "date", "name")


class LedgerRepository(Repository):
    """
    Ledger storage.

    Args:
        db (Database): shared database handle
        categories (CategoryRepository): validates ``category_id``
        templates (RecurringRepository): read to decide whether a closure
            should advance its template
    """

    def __init__(self, db, categories, templates):
        super().__init__(db)
        self._categories = categories
        self._templates = templates
        # Called as on_installment_closed(template, cursor) inside the
        # closing transaction; wired by the engine.
        self.on_installment_closed = None

    def _row_to_dict(self, row):
        if row is None:
            return None
        entry = dict(row)
        entry["amount"] = self._from_money_str(entry["amount"])
        return entry

    @staticmethod
    def _write(cursor, sql, params):
        try:
            cursor.execute(sql, params)
        except sqlite3.IntegrityError as e:
            if "ux_transactions_pending_installment" in str(e) or "transactions.recurring_id, transactions.date" in str(e):
                raise DuplicateInstallment() from e
            raise

    @staticmethod
    def _build_where(filters):
        clauses = []
        params = []

        status = filters.get("status")
        if status == "all":
            pass
        elif status:
            clauses.append("t.status = ?")
            params.append(status)
        else:
            clauses.append("t.status = 'done'")

        if filters.get("category_id"):
            clauses.append("t.category_id = ?")
            params.append(filters["category_id"])
        if filters.get("type"):
            clauses.append("t.type = ?")
            params.append(filters["type"])
        if filters.get("currency"):
            clauses.append("t.currency = ?")
            params.append(filters["currency"])
        if filters.get("recurring_only"):
            clauses.append("t.recurring_id IS NOT NULL")
        if filters.get("start_date"):
            clauses.append("t.date >= ?")
            params.append(filters["start_date"])
        if filters.get("end_date"):
            clauses.append("t.date <= ?")
            params.append(filters["end_date"])

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where_sql, params

    def list(self, filters=None):
        """
        List ledger entries, newest first.

        Args:
            filters (dict, optional): any of category_id, type, currency,
                start_date, end_date, recurring_only and status. ``status``
                defaults to ``done``; ``"all"`` removes the status filter.

        Returns:
            list: entries ordered by date DESC, id DESC, each with
                  ``category_name``
        """
        where_sql, params = self._build_where(filters or {})
        with self._db.reader() as cursor:
            cursor.execute(f"{LEDGER_SELECT} {where_sql} ORDER BY t.date DESC, t.id DESC", params)
            return self._rows_to_dicts(cursor.fetchall())

    def get_by_id(self, entry_id, cursor=None):
        with self._db.reader(cursor) as cursor:
            cursor.execute(f"{LEDGER_SELECT} WHERE t.id = ?", (entry_id,))
            return self._row_to_dict(cursor.fetchone())

    def find_by_template_and_date(self, template_id, date, status=None, cursor=None):
        """
        Return the installment of ``template_id`` dated ``date``, or None.

        If several rows match, the most recently created one wins.
        """
        sql = f"{LEDGER_SELECT} WHERE t.recurring_id = ? AND t.date = ?"
        params = [template_id, date]
        if status:
            sql += " AND t.status = ?"
            params.append(status)
        with self._db.reader(cursor) as cursor:
            cursor.execute(sql + " ORDER BY t.id DESC LIMIT 1", params)
            return self._row_to_dict(cursor.fetchone())

    def create(self, data, cursor=None):
        """
        Insert a ledger entry.

        Args:
            data (dict): category_id, amount, currency, type, date, name and
                optionally status (default ``done``), recurring_id and
                description
            cursor: join the caller's transaction when given

        Raises:
            InvalidCategory: when ``category_id`` does not exist
        """
        with self._db.transaction(cursor) as cursor:
            if not self._categories.category_exists(data["category_id"], cursor=cursor):
                raise InvalidCategory()
            if data.get("recurring_id") and not self._templates.get_by_id(data["recurring_id"], cursor=cursor):
                raise NotFound("Recurring transaction not found")

            self._write(
                cursor,
                """
                INSERT INTO transactions
                    (category_id, recurring_id, amount, currency, type, status, date, name, description)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data["category_id"],
                    data.get("recurring_id"),
                    self._to_money_str(data["amount"]),
                    data["currency"],
                    data["type"],
                    data.get("status") or "done",
                    data["date"],
                    data["name"],
                    data.get("description"),
                ),
            )
            entry = self.get_by_id(cursor.lastrowid, cursor=cursor)

        logger.info(
            "Transaction created: id=%s category_id=%s amount=%s %s type=%s status=%s",
            entry["id"], entry["category_id"], entry["amount"], entry["currency"], entry["type"], entry["status"],
        )
        return entry

    def update(self, entry_id, data, cursor=None):
        """
        Merge ``data`` over a stored entry and refresh ``updated_at``.

        The whole update, including any template advancement it triggers,
        runs in one write transaction: the row is re-read after the lock is
        taken, so a second concurrent closure of the same installment sees it
        already closed and does not advance the template again.

        Raises:
            NotFound: when the entry does not exist
            InvalidCategory: when a new ``category_id`` does not exist
        """
        with self._db.transaction(cursor) as cursor:
            existing = self.get_by_id(entry_id, cursor=cursor)
            if not existing:
                raise NotFound("Transaction not found")
            if data.get("category_id") and not self._categories.category_exists(data["category_id"], cursor=cursor):
                raise InvalidCategory()
            if data.get("recurring_id") and not self._templates.get_by_id(data["recurring_id"], cursor=cursor):
                raise NotFound("Recurring transaction not found")

            merged = {}
            for name in UPDATABLE_FIELDS:
                if name not in data or (data[name] is None and name in _KEEP_ON_NONE):
                    merged[name] = existing[name]
                else:
                    merged[name] = data[name]

            self._write(
                cursor,
                """
                UPDATE transactions
                SET category_id = ?, recurring_id = ?, amount = ?, currency = ?, type = ?,
                    status = ?, date = ?, name = ?, description = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (
                    merged["category_id"],
                    merged["recurring_id"],
                    self._to_money_str(merged["amount"]),
                    merged["currency"],
                    merged["type"],
                    merged["status"],
                    merged["date"],
                    merged["name"],
                    merged["description"],
                    entry_id,
                ),
            )

            self.close_installment_and_maybe_advance(existing, merged, cursor)
            entry = self.get_by_id(entry_id, cursor=cursor)

        logger.info("Transaction updated: id=%s status=%s", entry_id, entry["status"])
        return entry

    def close_installment_and_maybe_advance(self, before, after, cursor):
        """
        Fire the installment-closed hook if this update settled the template's
        current installment.

        All of the following must hold:
            - status moved from ``pending`` to ``done`` or ``cancelled``
            - the entry belongs to a recurring template
            - the template exists and is active
            - the entry's date (before the update) equals the template's
              current ``next_due_date``

        Closing an older, stale installment leaves the template alone.

        Returns:
            bool: True if the hook was invoked
        """
        if before["status"] != "pending" or after["status"] not in CLOSED_STATUSES:
            return False

        template_id = after.get("recurring_id")
        if not template_id:
            return False

        template = self._templates.get_by_id(template_id, cursor=cursor)
        if not template or not template["is_active"]:
            return False
        if before["date"] != template["next_due_date"]:
            logger.info(
                "Closed stale installment: transaction_id=%s date=%s recurring_id=%s next_due_date=%s",
                before["id"], before["date"], template_id, template["next_due_date"],
            )
            return False

        if self.on_installment_closed is None:
            return False
        self.on_installment_closed(template, cursor)
        return True

    def delete(self, entry_id):
        with self._db.transaction() as cursor:
            if not self.get_by_id(entry_id, cursor=cursor):
                raise NotFound("Transaction not found")
            cursor.execute("DELETE FROM transactions WHERE id = ?", (entry_id,))
        logger.info("Transaction deleted: id=%s", entry_id)
        return True
