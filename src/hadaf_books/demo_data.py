"""
Hadaf Books - Demo Data Generator

Fills an empty ledger with a believable language-school month or three:
class fees and teacher payments, a few running costs, and one monthly
recurring class fee with its pending installment. Student names come from
Faker so every demo database looks a little different.

Only runs when the ledger has no transactions at all.
"""

import logging
import random
from datetime import timedelta
from decimal import Decimal

from faker import Faker

from .dates import today

logger = logging.getLogger(__name__)

fake = Faker()

# Fixed rows every demo starts with: (category, amount, currency, type, days_ago, name, description)
BASE_ROWS = [
    ("German Class", 3000, "AFN", "in", 30, "Ghulaam", "German class fee"),
    ("German Class", 1500, "AFN", "out", 30, "Teacher Payment", "Ghulaam teacher cost 50%"),
    ("Turkish Class", 2500, "AFN", "in", 25, "Aisha", "Turkish class fee"),
    ("Turkish Class", 1250, "AFN", "out", 25, "Teacher Payment", "Aisha teacher cost"),
    ("Marketing/Ads", 500, "USD", "out", 35, "Facebook Ads", "Monthly marketing campaign"),
    ("General Costs", 200, "USD", "out", 40, "Office Rent", "Monthly office expense"),
]

CLASS_FEES = {
    "German Class": (2500, 3500),
    "Turkish Class": (2000, 3000),
    "English Class": (1500, 2500),
}


def _category_ids(engine):
    ids = {}
    for root in engine.categories.list_tree():
        stack = [root]
        while stack:
            node = stack.pop()
            ids[node["name"]] = node["id"]
            stack.extend(node["children"])
    return ids


def _category_id(engine, ids, name):
    if name not in ids:
        ids[name] = engine.categories.create(name, type_="default")["id"]
    return ids[name]


def seed_sample_data(engine, months=3, seed=None):
    """
    Generate demo data through the engine.

    Args:
        engine (BooksEngine)
        months (int): how far back the generated class fees go
        seed (int, optional): make the random part reproducible

    Returns:
        dict: counts of what was created, or None if the ledger was not empty
    """
    if not engine.is_empty():
        logger.info("Demo data skipped: ledger already has transactions")
        return None

    rng = random.Random(seed)
    if seed is not None:
        Faker.seed(seed)

    ids = _category_ids(engine)
    current = today()
    created = 0

    for category, amount, currency, type_, days_ago, name, description in BASE_ROWS:
        engine.ledger.create({
            "category_id": _category_id(engine, ids, category),
            "amount": Decimal(amount),
            "currency": currency,
            "type": type_,
            "date": (current - timedelta(days=days_ago)).isoformat(),
            "name": name,
            "description": description,
        })
        created += 1

    # A handful of class fees per month, each with the teacher's 50% share
    day = current - timedelta(days=30 * months)
    while day <= current:
        if rng.random() < 0.15:
            category = rng.choice(list(CLASS_FEES))
            low, high = CLASS_FEES[category]
            fee = Decimal(rng.randrange(low, high + 1, 100))
            student = fake.first_name()
            for type_, amount, name, description in (
                ("in", fee, student, f"{category} fee"),
                ("out", fee / 2, "Teacher Payment", f"{student} teacher cost 50%"),
            ):
                engine.ledger.create({
                    "category_id": _category_id(engine, ids, category),
                    "amount": amount,
                    "currency": "AFN",
                    "type": type_,
                    "date": day.isoformat(),
                    "name": name,
                    "description": description,
                })
                created += 1
        day += timedelta(days=1)

    # One recurring student, due a week from today
    recurring = engine.advancer.create_template({
        "category_id": _category_id(engine, ids, "German Class"),
        "amount": Decimal("3000"),
        "currency": "AFN",
        "type": "in",
        "name": fake.first_name(),
        "description": "Monthly German class fee",
        "frequency": "monthly",
        "next_due_date": (current + timedelta(days=7)).isoformat(),
    })

    summary = {
        "transactions": created,
        "recurring_id": recurring["recurring"]["id"],
        "first_due": recurring["recurring"]["next_due_date"],
    }
    logger.info("Demo data generated: %s", summary)
    return summary
