from hadaf_books.demo_data import seed_sample_data


def test_seed_sample_data_once(engine):
    summary = seed_sample_data(engine, seed=7)

    assert summary["transactions"] >= 6
    assert len(engine.ledger.list()) == summary["transactions"]
    template = engine.templates.get_by_id(summary["recurring_id"])
    assert template["next_due_date"] == summary["first_due"]
    assert len(engine.reports.follow_ups(recurring_only=True)) == 1

    assert seed_sample_data(engine) is None
