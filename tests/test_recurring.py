from decimal import Decimal

import pytest

from hadaf_books.errors import InvalidCategory, NotFound


def test_create_and_read(engine, template_data):
    template = engine.templates.create(template_data())

    assert template["amount"] == Decimal("3000")
    assert template["is_active"] is True
    assert engine.templates.get_by_id(template["id"]) == template


def test_create_inactive(engine, template_data):
    assert engine.templates.create(template_data(is_active=False))["is_active"] is False


def test_create_rejects_unknown_category(engine, template_data):
    with pytest.raises(InvalidCategory):
        engine.templates.create(template_data(category_id=9999))


def test_list_orders_by_due_date_then_id(engine, template_data):
    late = engine.templates.create(template_data(next_due_date="2026-03-01"))
    early = engine.templates.create(template_data(next_due_date="2026-01-01"))
    early_too = engine.templates.create(template_data(next_due_date="2026-01-01"))

    assert [t["id"] for t in engine.templates.list()] == [early["id"], early_too["id"], late["id"]]


def test_list_due_only_active_and_due(engine, template_data):
    due = engine.templates.create(template_data(next_due_date="2026-01-10"))
    on_the_day = engine.templates.create(template_data(next_due_date="2026-01-15"))
    engine.templates.create(template_data(next_due_date="2026-01-16"))
    engine.templates.create(template_data(next_due_date="2026-01-01", is_active=False))

    assert [t["id"] for t in engine.templates.list_due("2026-01-15")] == [due["id"], on_the_day["id"]]


def test_list_due_does_not_write(engine, template_data):
    engine.templates.create(template_data(next_due_date="2026-01-10"))
    before = engine.ledger.list({"status": "all"})
    engine.templates.list_due("2026-12-31")
    assert engine.ledger.list({"status": "all"}) == before
    assert engine.templates.list()[0]["next_due_date"] == "2026-01-10"


def test_update_merges_fields(engine, template_data, other_category_id):
    template = engine.templates.create(template_data())
    updated = engine.templates.update(template["id"], {
        "amount": Decimal("3500"),
        "category_id": other_category_id,
        "is_active": False,
        "name": None,
    })

    assert updated["amount"] == Decimal("3500")
    assert updated["category_id"] == other_category_id
    assert updated["is_active"] is False
    assert updated["name"] == "Ghulaam"
    assert updated["frequency"] == "monthly"


def test_update_errors(engine, template_data):
    template = engine.templates.create(template_data())
    with pytest.raises(NotFound):
        engine.templates.update(9999, {"name": "x"})
    with pytest.raises(InvalidCategory):
        engine.templates.update(template["id"], {"category_id": 9999})


def test_advance_next_due_date_overwrites(engine, template_data):
    template = engine.templates.create(template_data())
    assert engine.templates.advance_next_due_date(template["id"], "2026-02-15")["next_due_date"] == "2026-02-15"


def test_delete_keeps_installments_unlinked(engine, template_data):
    result = engine.advancer.create_template(template_data())
    engine.templates.delete(result["recurring"]["id"])

    installment = engine.ledger.get_by_id(result["transaction"]["id"])
    assert installment is not None
    assert installment["recurring_id"] is None
    with pytest.raises(NotFound):
        engine.templates.delete(result["recurring"]["id"])
