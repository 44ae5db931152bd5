"""
Hadaf Books - Bookkeeping Engine

``BooksEngine`` bundles the repositories, the recurrence advancer and the
dashboard queries over one SQLite file. It keeps no state of its own between
calls: everything lives in the database and is read on demand, so the API, the
console and the tests can each build their own engine.

Example:
    engine = BooksEngine.open("data/hadaf.db")
    result = engine.advancer.create_template({...})
    engine.ledger.update(result["transaction"]["id"], {"status": "done"})
"""

import logging

from .advancer import RecurrenceAdvancer
from .categories import CategoryRepository
from .database import Database
from .ledger import LedgerRepository
from .recurring import RecurringRepository
from .reports import Reports

logger = logging.getLogger(__name__)


class BooksEngine:
    """
    Stateless bookkeeping engine.

    Components:
        categories (CategoryRepository)
        templates (RecurringRepository)
        ledger (LedgerRepository)
        advancer (RecurrenceAdvancer)
        reports (Reports)
    """

    def __init__(self, db):
        self.db = db
        self.categories = CategoryRepository(db)
        self.templates = RecurringRepository(db, self.categories)
        self.ledger = LedgerRepository(db, self.categories, self.templates)
        self.advancer = RecurrenceAdvancer(db, self.templates, self.ledger)
        self.reports = Reports(self.ledger, self.templates)

        # Closing a template's current installment advances it in the same transaction
        self.ledger.on_installment_closed = self.advancer.advance_after_close

    @classmethod
    def open(cls, db_path):
        """Create (if needed) the database at ``db_path`` and return an engine over it."""
        db = Database(db_path).initialize()
        logger.info("Database ready: %s", db.db_path)
        return cls(db)

    @classmethod
    def from_config(cls, config):
        return cls.open(config.database_path)

    # =============================================================================
    # CONVENIENCE SHORTCUTS (console and API)
    # =============================================================================

    def close_installment(self, transaction_id, status="done"):
        """Settle (``done``) or drop (``cancelled``) a ledger entry."""
        return self.ledger.update(transaction_id, {"status": status})

    def is_empty(self):
        """True when the ledger holds no transactions at all."""
        return not self.ledger.list({"status": "all"})
