from decimal import Decimal

import pytest

from hadaf_books.errors import DuplicateName, InvalidParent, NotFound
from hadaf_books.setup_sqlite import DEFAULT_CATEGORIES


def test_default_categories_seeded(engine):
    names = {c["name"] for c in engine.categories.list_tree()}
    assert names == set(DEFAULT_CATEGORIES)


def test_create_nested_category(engine, category_id):
    child = engine.categories.create("German A1", parent_id=category_id)

    assert child["type"] == "custom"
    german = next(c for c in engine.categories.list_tree() if c["id"] == category_id)
    assert [c["name"] for c in german["children"]] == ["German A1"]


def test_create_errors(engine):
    with pytest.raises(DuplicateName):
        engine.categories.create("German Class")
    with pytest.raises(InvalidParent):
        engine.categories.create("Orphan", parent_id=9999)


def test_update(engine, category_id, other_category_id):
    moved = engine.categories.update(category_id, name="German Courses", parent_id=other_category_id)
    assert moved["name"] == "German Courses"
    assert moved["parent_id"] == other_category_id

    renamed = engine.categories.update(category_id, name="German")
    assert renamed["parent_id"] == other_category_id

    assert engine.categories.update(category_id, parent_id=None)["parent_id"] is None


def test_update_errors(engine, category_id):
    with pytest.raises(InvalidParent):
        engine.categories.update(category_id, parent_id=category_id)
    with pytest.raises(DuplicateName):
        engine.categories.update(category_id, name="Other Income")
    with pytest.raises(NotFound):
        engine.categories.update(9999, name="x")


def test_delete_cascades(engine, category_id, template_data, transaction_data):
    engine.ledger.create(transaction_data())
    engine.advancer.create_template(template_data())
    child = engine.categories.create("German A1", parent_id=category_id)

    engine.categories.delete(category_id)

    assert engine.categories.get_by_id(child["id"]) is None
    assert engine.ledger.list({"status": "all"}) == []
    assert engine.templates.list() == []
    with pytest.raises(NotFound):
        engine.categories.delete(category_id)


def test_stats_count_only_settled(engine, category_id, transaction_data):
    engine.ledger.create(transaction_data(type="in", amount="3000"))
    engine.ledger.create(transaction_data(type="out", amount="1500"))
    engine.ledger.create(transaction_data(type="in", amount="700", status="pending"))

    stats = engine.categories.stats(category_id)

    assert stats["income"] == {"AFN": Decimal("3000")}
    assert stats["expenses"] == {"AFN": Decimal("1500")}
    assert stats["profit"] == {"AFN": Decimal("1500")}


def test_update_rejects_moving_under_descendant(engine, category_id, other_category_id):
    engine.categories.update(category_id, parent_id=other_category_id)
    grandchild = engine.categories.create("German A1", parent_id=category_id)

    with pytest.raises(InvalidParent):
        engine.categories.update(other_category_id, parent_id=category_id)
    with pytest.raises(InvalidParent):
        engine.categories.update(other_category_id, parent_id=grandchild["id"])

    roots = {c["name"]: c for c in engine.categories.list_tree()}
    assert "General Costs" in roots
    assert [c["name"] for c in roots["General Costs"]["children"]] == ["German Class"]
