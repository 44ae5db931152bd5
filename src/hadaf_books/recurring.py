"""
Hadaf Books - Recurring Template Repository

CRUD over ``recurring_transactions``, the definitions of repeating payments
(rent, salaries, class fees). A template knows its amount, frequency and the
date of its next installment; it never reads or writes the ledger. Creating
installments and advancing ``next_due_date`` after a closure is the job of
``advancer.RecurrenceAdvancer``.
"""

import logging

from .database import Repository
from .errors import InvalidCategory, NotFound

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = (
    "id, category_id, amount, currency, type, name, description, "
    "frequency, next_due_date, is_active, created_at"
)

UPDATABLE_FIELDS = (
    "category_id", "amount", "currency", "type", "name",
    "description", "frequency", "next_due_date", "is_active",
)


class RecurringRepository(Repository):
    """
    Recurring template storage.

    Args:
        db (Database): shared database handle
        categories (CategoryRepository): used to validate ``category_id``
    """

    def __init__(self, db, categories):
        super().__init__(db)
        self._categories = categories

    def _row_to_dict(self, row):
        if row is None:
            return None
        template = dict(row)
        template["amount"] = self._from_money_str(template["amount"])
        template["is_active"] = bool(template["is_active"])
        return template

    def list(self):
        """Return every template, soonest due first."""
        with self._db.reader() as cursor:
            cursor.execute(
                f"SELECT {TEMPLATE_COLUMNS} FROM recurring_transactions "
                "ORDER BY next_due_date ASC, id ASC"
            )
            return self._rows_to_dicts(cursor.fetchall())

    def get_by_id(self, template_id, cursor=None):
        with self._db.reader(cursor) as cursor:
            cursor.execute(
                f"SELECT {TEMPLATE_COLUMNS} FROM recurring_transactions WHERE id = ?",
                (template_id,),
            )
            return self._row_to_dict(cursor.fetchone())

    def list_due(self, as_of):
        """
        Active templates whose next installment falls on or before ``as_of``.

        This is a reminder signal only; nothing is created or advanced.

        Args:
            as_of (str): ``YYYY-MM-DD``
        """
        with self._db.reader() as cursor:
            cursor.execute(
                f"SELECT {TEMPLATE_COLUMNS} FROM recurring_transactions "
                "WHERE is_active = 1 AND next_due_date <= ? "
                "ORDER BY next_due_date ASC, id ASC",
                (as_of,),
            )
            return self._rows_to_dicts(cursor.fetchall())

    def create(self, data, cursor=None):
        """
        Insert a template.

        Args:
            data (dict): category_id, amount, currency, type, name, frequency,
                next_due_date, and optionally description and is_active
            cursor: join the caller's transaction when given

        Raises:
            InvalidCategory: when ``category_id`` does not exist
        """
        with self._db.transaction(cursor) as cursor:
            if not self._categories.category_exists(data["category_id"], cursor=cursor):
                raise InvalidCategory()

            cursor.execute(
                """
                INSERT INTO recurring_transactions
                    (category_id, amount, currency, type, name, description, frequency, next_due_date, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data["category_id"],
                    self._to_money_str(data["amount"]),
                    data["currency"],
                    data["type"],
                    data["name"],
                    data.get("description"),
                    data["frequency"],
                    data["next_due_date"],
                    0 if data.get("is_active") is False else 1,
                ),
            )
            template = self.get_by_id(cursor.lastrowid, cursor=cursor)

        logger.info(
            "Recurring created: id=%s category_id=%s frequency=%s next_due_date=%s",
            template["id"], template["category_id"], template["frequency"], template["next_due_date"],
        )
        return template

    def update(self, template_id, data, cursor=None):
        """
        Merge ``data`` over the stored template.

        Keys absent from ``data`` keep their stored value. ``description`` may
        be cleared by passing ``None`` explicitly.

        Raises:
            NotFound: when the template does not exist
            InvalidCategory: when a new ``category_id`` does not exist
        """
        with self._db.transaction(cursor) as cursor:
            existing = self.get_by_id(template_id, cursor=cursor)
            if not existing:
                raise NotFound("Recurring transaction not found")
            if data.get("category_id") and not self._categories.category_exists(data["category_id"], cursor=cursor):
                raise InvalidCategory()

            merged = {
                name: (data[name] if name in data and (data[name] is not None or name == "description") else existing[name])
                for name in UPDATABLE_FIELDS
            }
            cursor.execute(
                """
                UPDATE recurring_transactions
                SET category_id = ?, amount = ?, currency = ?, type = ?, name = ?,
                    description = ?, frequency = ?, next_due_date = ?, is_active = ?
                WHERE id = ?
                """,
                (
                    merged["category_id"],
                    self._to_money_str(merged["amount"]),
                    merged["currency"],
                    merged["type"],
                    merged["name"],
                    merged["description"],
                    merged["frequency"],
                    merged["next_due_date"],
                    1 if merged["is_active"] else 0,
                    template_id,
                ),
            )
            template = self.get_by_id(template_id, cursor=cursor)

        logger.info("Recurring updated: id=%s category_id=%s", template_id, template["category_id"])
        return template

    def delete(self, template_id):
        """Hard delete; installments keep their rows with recurring_id cleared."""
        with self._db.transaction() as cursor:
            if not self.get_by_id(template_id, cursor=cursor):
                raise NotFound("Recurring transaction not found")
            cursor.execute("DELETE FROM recurring_transactions WHERE id = ?", (template_id,))
        logger.info("Recurring deleted: id=%s", template_id)
        return True

    def advance_next_due_date(self, template_id, new_date, cursor=None):
        """
        Overwrite ``next_due_date`` unconditionally.

        The caller computes ``new_date`` with ``dates.advance`` and is
        responsible for it being later than the current value.
        """
        with self._db.transaction(cursor) as cursor:
            cursor.execute(
                "UPDATE recurring_transactions SET next_due_date = ? WHERE id = ?",
                (new_date, template_id),
            )
            return self.get_by_id(template_id, cursor=cursor)
