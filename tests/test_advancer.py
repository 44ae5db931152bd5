import threading
from decimal import Decimal

import pytest

from hadaf_books.errors import DuplicateInstallment, InactiveTemplate, NotFound


def pending_for(engine, template_id):
    return [
        e for e in engine.ledger.list({"status": "pending"})
        if e["recurring_id"] == template_id
    ]


# =============================================================================
# TEMPLATE CREATION
# =============================================================================

def test_create_template_queues_first_installment(engine, template_data):
    result = engine.advancer.create_template(template_data())
    template, installment = result["recurring"], result["transaction"]

    assert installment["status"] == "pending"
    assert installment["date"] == "2026-01-15"
    assert installment["recurring_id"] == template["id"]
    assert installment["amount"] == Decimal("3000")
    assert installment["currency"] == "AFN"
    assert installment["type"] == "in"
    assert installment["name"] == "Ghulaam"
    assert installment["description"] == "German class fee"


def test_create_template_without_installment(engine, template_data):
    result = engine.advancer.create_template(template_data(), create_installment=False)
    assert result["transaction"] is None
    assert pending_for(engine, result["recurring"]["id"]) == []


def test_inactive_template_gets_no_installment(engine, template_data):
    result = engine.advancer.create_template(template_data(is_active=False))
    assert result["transaction"] is None


def test_create_template_is_atomic(engine, template_data, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(engine.advancer, "ensure_pending_installment", boom)
    with pytest.raises(RuntimeError):
        engine.advancer.create_template(template_data())
    assert engine.templates.list() == []


# =============================================================================
# CLOSING INSTALLMENTS
# =============================================================================

def test_marking_installment_done_advances_template(engine, template_data):
    result = engine.advancer.create_template(template_data())
    template_id = result["recurring"]["id"]

    closed = engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    assert closed["status"] == "done"
    assert engine.templates.get_by_id(template_id)["next_due_date"] == "2026-02-15"
    pending = pending_for(engine, template_id)
    assert [e["date"] for e in pending] == ["2026-02-15"]
    assert pending[0]["amount"] == Decimal("3000")


def test_cancelling_installment_also_advances(engine, template_data):
    result = engine.advancer.create_template(template_data(frequency="weekly"))
    engine.ledger.update(result["transaction"]["id"], {"status": "cancelled"})

    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-01-22"


def test_end_of_month_template_clamps(engine, template_data):
    result = engine.advancer.create_template(template_data(next_due_date="2026-01-31"))
    engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-02-28"


def test_one_step_per_closure_even_when_far_behind(engine, template_data):
    result = engine.advancer.create_template(template_data(next_due_date="2025-06-15"))
    engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2025-07-15"
    assert [e["date"] for e in pending_for(engine, result["recurring"]["id"])] == ["2025-07-15"]


def test_closing_same_installment_twice_advances_once(engine, template_data):
    result = engine.advancer.create_template(template_data())
    installment_id = result["transaction"]["id"]
    template_id = result["recurring"]["id"]

    engine.ledger.update(installment_id, {"status": "done"})
    engine.ledger.update(installment_id, {"status": "done"})
    engine.ledger.update(installment_id, {"status": "cancelled"})

    assert engine.templates.get_by_id(template_id)["next_due_date"] == "2026-02-15"
    assert len(pending_for(engine, template_id)) == 1


def test_closing_stale_installment_does_not_advance(engine, template_data):
    result = engine.advancer.create_template(template_data())
    template_id = result["recurring"]["id"]
    engine.templates.update(template_id, {"next_due_date": "2026-03-15"})

    engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    assert engine.templates.get_by_id(template_id)["next_due_date"] == "2026-03-15"
    assert pending_for(engine, template_id) == []


def test_out_of_order_closure_only_current_installment_advances(engine, template_data):
    result = engine.advancer.create_template(template_data())
    template_id = result["recurring"]["id"]
    january = result["transaction"]["id"]

    # Reopen January after it already moved the template to February
    engine.ledger.update(january, {"status": "done"})
    engine.ledger.update(january, {"status": "pending"})
    engine.ledger.update(january, {"status": "done"})

    assert engine.templates.get_by_id(template_id)["next_due_date"] == "2026-02-15"

    february = pending_for(engine, template_id)[0]
    engine.ledger.update(february["id"], {"status": "done"})
    assert engine.templates.get_by_id(template_id)["next_due_date"] == "2026-03-15"


def test_inactive_template_does_not_advance(engine, template_data):
    result = engine.advancer.create_template(template_data())
    template_id = result["recurring"]["id"]
    engine.templates.update(template_id, {"is_active": False})

    engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    assert engine.templates.get_by_id(template_id)["next_due_date"] == "2026-01-15"


def test_non_status_edits_do_not_advance(engine, template_data):
    result = engine.advancer.create_template(template_data())
    engine.ledger.update(result["transaction"]["id"], {"amount": "3200"})

    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-01-15"


def test_existing_pending_installment_is_reused(engine, template_data):
    result = engine.advancer.create_template(template_data())
    template_id = result["recurring"]["id"]
    # Queue February by hand before January is closed
    with engine.db.transaction() as cursor:
        feb, created = engine.advancer.ensure_pending_installment(result["recurring"], "2026-02-15", cursor)
    assert created is True

    engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    pending = pending_for(engine, template_id)
    assert [e["id"] for e in pending] == [feb["id"]]


def test_failed_advancement_rolls_back_the_closure(engine, template_data, monkeypatch):
    result = engine.advancer.create_template(template_data())

    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine.advancer, "ensure_pending_installment", boom)
    with pytest.raises(RuntimeError):
        engine.ledger.update(result["transaction"]["id"], {"status": "done"})

    assert engine.ledger.get_by_id(result["transaction"]["id"])["status"] == "pending"
    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-01-15"


def test_concurrent_closures_advance_once(engine, template_data):
    result = engine.advancer.create_template(template_data())
    installment_id = result["transaction"]["id"]
    barrier = threading.Barrier(2)
    errors = []

    def close():
        barrier.wait()
        try:
            engine.ledger.update(installment_id, {"status": "done"})
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=close) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-02-15"
    assert len(pending_for(engine, result["recurring"]["id"])) == 1


# =============================================================================
# EXECUTE
# =============================================================================

def test_execute_reuses_pending_installment(engine, template_data):
    result = engine.advancer.create_template(template_data())

    executed = engine.advancer.execute(result["recurring"]["id"])

    assert executed["created"] is False
    assert executed["transaction"]["id"] == result["transaction"]["id"]
    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-01-15"


def test_execute_creates_missing_installment_without_advancing(engine, template_data):
    result = engine.advancer.create_template(template_data(), create_installment=False)

    first = engine.advancer.execute(result["recurring"]["id"])
    second = engine.advancer.execute(result["recurring"]["id"])

    assert first["created"] is True
    assert first["transaction"]["status"] == "pending"
    assert first["transaction"]["date"] == "2026-01-15"
    assert second["created"] is False
    assert second["transaction"]["id"] == first["transaction"]["id"]
    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-01-15"


def test_execute_errors(engine, template_data):
    with pytest.raises(NotFound):
        engine.advancer.execute(9999)

    inactive = engine.advancer.create_template(template_data(is_active=False))["recurring"]
    with pytest.raises(InactiveTemplate) as exc:
        engine.advancer.execute(inactive["id"])
    assert exc.value.code == "INACTIVE"
    assert exc.value.status == 400


def test_unique_index_blocks_duplicate_pending(engine, template_data):
    result = engine.advancer.create_template(template_data())
    duplicate = {k: result["transaction"][k] for k in ("category_id", "amount", "currency", "type", "name", "date")}

    with pytest.raises(DuplicateInstallment):
        engine.ledger.create({**duplicate, "recurring_id": result["recurring"]["id"], "status": "pending"})

    # Settled rows on the same date are fine
    engine.ledger.create({**duplicate, "recurring_id": result["recurring"]["id"], "status": "done"})


# =============================================================================
# MARKING A NEW TRANSACTION AS RECURRING
# =============================================================================

def test_done_transaction_marked_recurring(engine, transaction_data):
    result = engine.advancer.create_transaction(
        transaction_data(type="in", amount="3000"), {"frequency": "monthly"}
    )

    template = result["recurring"]
    assert result["transaction"]["recurring_id"] == template["id"]
    assert result["transaction"]["status"] == "done"
    assert template["next_due_date"] == "2026-02-15"
    assert result["next_transaction"]["date"] == "2026-02-15"
    assert result["next_transaction"]["status"] == "pending"


def test_pending_transaction_becomes_current_installment(engine, transaction_data):
    result = engine.advancer.create_transaction(
        transaction_data(status="pending"), {"frequency": "weekly"}
    )

    assert result["recurring"]["next_due_date"] == "2026-01-15"
    assert result["next_transaction"] is None

    engine.ledger.update(result["transaction"]["id"], {"status": "done"})
    assert engine.templates.get_by_id(result["recurring"]["id"])["next_due_date"] == "2026-01-22"


def test_explicit_next_due_date(engine, transaction_data):
    result = engine.advancer.create_transaction(
        transaction_data(), {"frequency": "monthly", "next_due_date": "2026-03-01"}
    )
    assert result["recurring"]["next_due_date"] == "2026-03-01"
    assert result["next_transaction"]["date"] == "2026-03-01"


def test_plain_transaction_has_no_template(engine, transaction_data):
    result = engine.advancer.create_transaction(transaction_data())
    assert result["recurring"] is None
    assert engine.templates.list() == []
