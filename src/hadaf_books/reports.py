"""
Hadaf Books - Dashboard Queries & Export

Read-only views over the books:

- ``due_templates``: which recurring templates are due (reminder signal)
- ``follow_ups``: pending installments waiting to be settled, oldest first
- ``summary``: per-currency income/expense/profit totals, by category and by
  month, over settled transactions
- ``transactions_to_csv``: CSV rendering of ledger rows

Totals are always kept per currency; the books never convert between them.
"""

import csv
import io
from decimal import Decimal

CSV_HEADERS = (
    "id", "date", "type", "currency", "amount", "name",
    "description", "category_id", "category_name",
)


class Reports:

    def __init__(self, ledger, templates):
        self._ledger = ledger
        self._templates = templates

    def due_templates(self, today):
        return self._templates.list_due(today)

    def follow_ups(self, start_date=None, end_date=None, type_=None, recurring_only=False):
        """
        Pending ledger entries, oldest due date first.

        This is a reminder queue, so it is ordered the opposite way from the
        ledger history.
        """
        rows = self._ledger.list({
            "status": "pending",
            "type": type_,
            "start_date": start_date,
            "end_date": end_date,
            "recurring_only": recurring_only,
        })
        return sorted(rows, key=lambda row: (row["date"], row["id"]))

    def summary(self, start_date=None, end_date=None):
        rows = self._ledger.list({"start_date": start_date, "end_date": end_date})
        income = sum_by_currency(r for r in rows if r["type"] == "in")
        expenses = sum_by_currency(r for r in rows if r["type"] == "out")
        return {
            "totalIncome": income,
            "totalExpenses": expenses,
            "netProfit": _profit(income, expenses),
            "profitByCategory": group_profit_by_category(rows),
            "monthlyBreakdown": group_monthly_breakdown(rows),
        }


def sum_by_currency(rows):
    totals = {}
    for row in rows:
        totals[row["currency"]] = totals.get(row["currency"], Decimal("0")) + Decimal(row["amount"])
    return totals


def _profit(income, expenses):
    return {
        currency: income.get(currency, Decimal("0")) - expenses.get(currency, Decimal("0"))
        for currency in sorted(set(income) | set(expenses))
    }


def _add_to_bucket(group, row):
    bucket = group["income"] if row["type"] == "in" else group["expenses"]
    bucket[row["currency"]] = bucket.get(row["currency"], Decimal("0")) + Decimal(row["amount"])


def group_profit_by_category(rows):
    """Per-category totals sorted by category name."""
    by_category = {}
    for row in rows:
        group = by_category.setdefault(row["category_id"], {
            "categoryId": row["category_id"],
            "categoryName": row.get("category_name") or str(row["category_id"]),
            "income": {},
            "expenses": {},
        })
        _add_to_bucket(group, row)

    for group in by_category.values():
        group["profit"] = _profit(group["income"], group["expenses"])
    return sorted(by_category.values(), key=lambda g: g["categoryName"])


def group_monthly_breakdown(rows):
    """Per-month (``YYYY-MM``) totals in calendar order."""
    by_month = {}
    for row in rows:
        month = row["date"][:7]
        group = by_month.setdefault(month, {"month": month, "income": {}, "expenses": {}})
        _add_to_bucket(group, row)

    for group in by_month.values():
        group["profit"] = _profit(group["income"], group["expenses"])
    return [by_month[month] for month in sorted(by_month)]


def transactions_to_csv(rows):
    """Render ledger rows as CSV text (header line included)."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow([
            row["id"],
            row["date"],
            row["type"],
            row["currency"],
            row["amount"],
            row["name"],
            row.get("description") or "",
            row["category_id"],
            row.get("category_name") or "",
        ])
    return out.getvalue()
