"""
Hadaf Books - Recurrence Advancer

The business rules that tie recurring templates to the ledger:

- A new template starts life with one ``pending`` installment dated at its
  ``next_due_date`` (both rows are written in one transaction).
- Closing that installment (``done`` or ``cancelled``) moves the template one
  period forward and queues the installment for the new date, unless one is
  already waiting there. One closure, one step: a template that is several
  periods behind catches up one installment at a time.
- Executing a due template only makes sure its current installment exists.
  It never moves the due date.

Dates never advance on a timer; everything here runs inside a request.
"""

import logging

from .dates import advance
from .errors import InactiveTemplate, NotFound

logger = logging.getLogger(__name__)

# Ledger fields an installment copies verbatim from its template
INSTALLMENT_FIELDS = ("category_id", "amount", "currency", "type", "name", "description")


class RecurrenceAdvancer:
    """
    Args:
        db (Database): shared database handle
        templates (RecurringRepository)
        ledger (LedgerRepository)
    """

    def __init__(self, db, templates, ledger):
        self._db = db
        self._templates = templates
        self._ledger = ledger

    def _installment_data(self, template, date):
        data = {field: template[field] for field in INSTALLMENT_FIELDS}
        data.update(recurring_id=template["id"], status="pending", date=date)
        return data

    def ensure_pending_installment(self, template, date, cursor):
        """
        Return ``(installment, created)`` for ``template`` on ``date``.

        An existing pending row is reused; otherwise one is created.
        """
        existing = self._ledger.find_by_template_and_date(template["id"], date, status="pending", cursor=cursor)
        if existing:
            return existing, False
        return self._ledger.create(self._installment_data(template, date), cursor=cursor), True

    def advance_after_close(self, template, cursor):
        """
        Step ``template`` forward after its current installment was closed.

        Runs inside the caller's transaction (the ledger update that closed
        the installment).

        Returns:
            tuple: (updated template, next installment)
        """
        next_date = advance(template["next_due_date"], template["frequency"])
        updated = self._templates.advance_next_due_date(template["id"], next_date, cursor=cursor)
        installment, created = self.ensure_pending_installment(template, next_date, cursor)

        logger.info(
            "Recurring advanced: id=%s from=%s to=%s installment_id=%s created=%s",
            template["id"], template["next_due_date"], next_date, installment["id"], created,
        )
        return updated, installment

    def create_template(self, data, create_installment=True):
        """
        Create a template and, by default, its first pending installment.

        Both rows commit together or not at all.

        Returns:
            dict: {"recurring": template, "transaction": installment or None}
        """
        with self._db.transaction() as cursor:
            template = self._templates.create(data, cursor=cursor)
            installment = None
            if create_installment and template["is_active"]:
                installment, _ = self.ensure_pending_installment(template, template["next_due_date"], cursor)
        return {"recurring": template, "transaction": installment}

    def create_transaction(self, data, recurring=None):
        """
        Record a transaction, optionally marking it as the start of a
        recurring series.

        Args:
            data (dict): ledger fields as accepted by LedgerRepository.create
            recurring (dict, optional): ``frequency`` and optionally
                ``next_due_date``. Without an explicit due date a pending
                transaction becomes the template's current installment and a
                settled one is followed by an installment one period later.

        Returns:
            dict: {"transaction": entry, "recurring": template or None,
                   "next_transaction": queued installment or None}
        """
        if not recurring:
            return {"transaction": self._ledger.create(data), "recurring": None, "next_transaction": None}

        status = data.get("status") or "done"
        with self._db.transaction() as cursor:
            if recurring.get("next_due_date"):
                next_due_date = recurring["next_due_date"]
            elif status == "pending":
                next_due_date = data["date"]
            else:
                next_due_date = advance(data["date"], recurring["frequency"])

            template = self._templates.create(
                {
                    **{field: data.get(field) for field in INSTALLMENT_FIELDS},
                    "frequency": recurring["frequency"],
                    "next_due_date": next_due_date,
                },
                cursor=cursor,
            )
            entry = self._ledger.create({**data, "recurring_id": template["id"]}, cursor=cursor)

            next_entry = None
            if not (status == "pending" and entry["date"] == next_due_date):
                next_entry, _ = self.ensure_pending_installment(template, next_due_date, cursor)

        logger.info(
            "Transaction marked recurring: transaction_id=%s recurring_id=%s next_due_date=%s",
            entry["id"], template["id"], next_due_date,
        )
        return {"transaction": entry, "recurring": template, "next_transaction": next_entry}

    def execute(self, template_id):
        """
        Make sure the installment for the template's current due date exists.

        An existing pending installment is returned as is; ``next_due_date``
        is left untouched either way.

        Raises:
            NotFound: unknown template
            InactiveTemplate: template is switched off

        Returns:
            dict: {"transaction": installment, "recurring": template,
                   "created": bool}
        """
        with self._db.transaction() as cursor:
            template = self._templates.get_by_id(template_id, cursor=cursor)
            if not template:
                raise NotFound("Recurring transaction not found")
            if not template["is_active"]:
                raise InactiveTemplate()
            installment, created = self.ensure_pending_installment(template, template["next_due_date"], cursor)

        logger.info(
            "Recurring executed: id=%s transaction_id=%s due=%s created=%s",
            template_id, installment["id"], template["next_due_date"], created,
        )
        return {"transaction": installment, "recurring": template, "created": created}
