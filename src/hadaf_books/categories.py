"""
Hadaf Books - Category Store

Categories group transactions and recurring templates. The ledger and the
template repository only need ``category_exists``; the rest of this module
backs the category screens of the dashboard (nested list, CRUD and per-category
totals).

Deleting a category is a hard delete and SQLite cascades it to child
categories, transactions and recurring templates.
"""

import logging
from decimal import Decimal

from .database import Repository
from .errors import DuplicateName, InvalidParent, NotFound

logger = logging.getLogger(__name__)

CATEGORY_COLUMNS = "id, name, parent_id, type, created_at"


class CategoryRepository(Repository):

    def category_exists(self, category_id, cursor=None):
        with self._db.reader(cursor) as cursor:
            cursor.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,))
            return cursor.fetchone() is not None

    def get_by_id(self, category_id, cursor=None):
        with self._db.reader(cursor) as cursor:
            cursor.execute(f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE id = ?", (category_id,))
            return self._row_to_dict(cursor.fetchone())

    def list_tree(self):
        """
        Return all categories as a forest ordered by name.

        Each node carries a ``children`` list; a category whose parent is
        missing is promoted to a root.
        """
        with self._db.reader() as cursor:
            cursor.execute(f"SELECT {CATEGORY_COLUMNS} FROM categories ORDER BY name ASC")
            rows = self._rows_to_dicts(cursor.fetchall())

        nodes = {row["id"]: {**row, "children": []} for row in rows}
        roots = []
        for node in nodes.values():
            parent = nodes.get(node["parent_id"]) if node["parent_id"] else None
            if parent is not None:
                parent["children"].append(node)
            else:
                roots.append(node)
        return roots

    def create(self, name, parent_id=None, type_=None):
        with self._db.transaction() as cursor:
            cursor.execute("SELECT id FROM categories WHERE name = ?", (name,))
            if cursor.fetchone():
                raise DuplicateName()
            if parent_id and not self.category_exists(parent_id, cursor=cursor):
                raise InvalidParent()

            cursor.execute(
                "INSERT INTO categories (name, parent_id, type) VALUES (?, ?, ?)",
                (name, parent_id, type_ or "custom"),
            )
            category = self.get_by_id(cursor.lastrowid, cursor=cursor)

        logger.info("Category created: id=%s name=%r", category["id"], category["name"])
        return category

    @staticmethod
    def _ancestor_ids(category_id, cursor):
        """Ids on the parent chain starting at ``category_id`` (inclusive)."""
        seen = []
        current = category_id
        while current is not None and current not in seen:
            seen.append(current)
            cursor.execute("SELECT parent_id FROM categories WHERE id = ?", (current,))
            row = cursor.fetchone()
            current = row["parent_id"] if row else None
        return seen

    def update(self, category_id, name=None, parent_id=..., cursor=None):
        """
        Rename and/or re-parent a category.

        ``parent_id`` uses Ellipsis as "not supplied" so that ``None`` can
        move a category back to the top level.
        """
        with self._db.transaction(cursor) as cursor:
            existing = self.get_by_id(category_id, cursor=cursor)
            if not existing:
                raise NotFound("Category not found")
            if parent_id is not ... and parent_id == category_id:
                raise InvalidParent("Category cannot be its own parent")
            if parent_id not in (None, ...):
                if not self.category_exists(parent_id, cursor=cursor):
                    raise InvalidParent()
                if category_id in self._ancestor_ids(parent_id, cursor):
                    raise InvalidParent("Category cannot be moved under its own descendant")
            if name and name != existing["name"]:
                cursor.execute("SELECT id FROM categories WHERE name = ? AND id != ?", (name, category_id))
                if cursor.fetchone():
                    raise DuplicateName()

            cursor.execute(
                "UPDATE categories SET name = ?, parent_id = ? WHERE id = ?",
                (
                    name or existing["name"],
                    existing["parent_id"] if parent_id is ... else parent_id,
                    category_id,
                ),
            )
            return self.get_by_id(category_id, cursor=cursor)

    def delete(self, category_id):
        with self._db.transaction() as cursor:
            if not self.get_by_id(category_id, cursor=cursor):
                raise NotFound("Category not found")
            cursor.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        logger.info("Category deleted: id=%s", category_id)
        return True

    def stats(self, category_id):
        """
        Income, expenses and profit per currency for one category.

        Only settled (``done``) transactions count; pending installments are
        promises, not money.
        """
        with self._db.reader() as cursor:
            category = self.get_by_id(category_id, cursor=cursor)
            if not category:
                raise NotFound("Category not found")
            cursor.execute(
                "SELECT type, currency, amount FROM transactions WHERE category_id = ? AND status = 'done'",
                (category_id,),
            )
            rows = cursor.fetchall()

        income, expenses = {}, {}
        for row in rows:
            bucket = income if row["type"] == "in" else expenses
            bucket[row["currency"]] = bucket.get(row["currency"], Decimal("0")) + self._from_money_str(row["amount"])

        profit = {
            currency: income.get(currency, Decimal("0")) - expenses.get(currency, Decimal("0"))
            for currency in sorted(set(income) | set(expenses))
        }
        return {"category": category, "income": income, "expenses": expenses, "profit": profit}
