"""
Hadaf Books - Request Validation

Turns raw JSON bodies and query strings into the clean dicts the repositories
expect. Every validator collects all field problems before failing, then
raises a single ``ValidationError`` whose ``details`` lists one entry per bad
field:

    {"field": "amount", "message": "must be greater than 0", "value": -5}

Dates are strict ``YYYY-MM-DD``; a full timestamp is accepted and cut down to
its date part. Amounts come back as ``Decimal``.
"""

from decimal import Decimal, InvalidOperation

from .dates import FREQUENCIES, to_iso_date
from .errors import ValidationError

CURRENCIES = ("AFN", "USD", "TRY", "EUR")
TYPES = ("in", "out")
STATUSES = ("pending", "done", "cancelled")

_MISSING = object()


class _Checker:
    """Accumulates per-field errors for one request."""

    def __init__(self, payload):
        self.payload = payload if isinstance(payload, dict) else {}
        self.errors = []
        self.clean = {}

    def fail(self, field, message, value=None):
        self.errors.append({"field": field, "message": message, "value": value})

    def get(self, field, required):
        value = self.payload.get(field, _MISSING)
        if value is _MISSING:
            if required:
                self.fail(field, "is required")
            return _MISSING
        return value

    def positive_int(self, field, required=True, nullable=False):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if value is None and nullable:
            self.clean[field] = None
            return
        parsed = parse_positive_int(value)
        if parsed is None:
            self.fail(field, "must be a positive integer", value)
        else:
            self.clean[field] = parsed

    def amount(self, field="amount", required=True):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if isinstance(value, bool):
            self.fail(field, "must be a number", value)
            return
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            self.fail(field, "must be a number", value)
            return
        if not parsed.is_finite() or parsed <= 0:
            self.fail(field, "must be greater than 0", value)
        else:
            self.clean[field] = parsed

    def choice(self, field, choices, required=True):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if not isinstance(value, str) or value not in choices:
            self.fail(field, f"must be one of: {', '.join(choices)}", value)
        else:
            self.clean[field] = value

    def date(self, field, required=True):
        value = self.get(field, required)
        if value is _MISSING:
            return
        try:
            self.clean[field] = to_iso_date(value)
        except ValueError:
            self.fail(field, "must be a date in YYYY-MM-DD format", value)

    def text(self, field, required=True, nullable=False):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if value is None and nullable:
            self.clean[field] = None
            return
        if not isinstance(value, str):
            self.fail(field, "must be a string", value)
            return
        if not nullable:
            value = value.strip()
            if not value:
                self.fail(field, "must not be empty", value)
                return
        self.clean[field] = value

    def boolean(self, field, required=False):
        value = self.get(field, required)
        if value is _MISSING:
            return
        parsed = parse_bool(value)
        if parsed is None:
            self.fail(field, "must be a boolean", value)
        else:
            self.clean[field] = parsed

    def result(self):
        if self.errors:
            raise ValidationError(details=self.errors)
        return self.clean


def parse_positive_int(value):
    """Return ``value`` as an int >= 1, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed >= 1 else None
    return None


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
    return None


def validate_id(value):
    parsed = parse_positive_int(value)
    if parsed is None:
        raise ValidationError(details=[{"field": "id", "message": "must be a positive integer", "value": value}])
    return parsed


# =============================================================================
# CATEGORIES
# =============================================================================

def category_create(payload):
    check = _Checker(payload)
    check.text("name")
    check.positive_int("parentId", required=False, nullable=True)
    check.text("type", required=False)
    return check.result()


def category_update(payload):
    check = _Checker(payload)
    check.text("name", required=False)
    check.positive_int("parentId", required=False, nullable=True)
    return check.result()


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _ledger_fields(check, required):
    check.positive_int("category_id", required=required)
    check.amount(required=required)
    check.choice("currency", CURRENCIES, required=required)
    check.choice("type", TYPES, required=required)
    check.choice("status", STATUSES, required=False)
    check.date("date", required=required)
    check.text("name", required=required)
    check.text("description", required=False, nullable=True)


def transaction_create(payload):
    """
    Validate a new transaction.

    An optional ``recurring`` object (``frequency`` plus an optional
    ``next_due_date``) marks the transaction as the start of a series; it is
    returned under the ``recurring`` key, or None.
    """
    check = _Checker(payload)
    _ledger_fields(check, required=True)

    recurring = check.payload.get("recurring")
    if recurring is not None:
        if not isinstance(recurring, dict):
            check.fail("recurring", "must be an object", recurring)
        else:
            nested = _Checker(recurring)
            nested.choice("frequency", FREQUENCIES)
            nested.date("next_due_date", required=False)
            for error in nested.errors:
                error["field"] = f"recurring.{error['field']}"
            check.errors.extend(nested.errors)
            recurring = nested.clean

    data = check.result()
    return data, recurring or None


def transaction_update(payload):
    check = _Checker(payload)
    _ledger_fields(check, required=False)
    check.positive_int("recurring_id", required=False, nullable=True)
    return check.result()


# =============================================================================
# RECURRING TEMPLATES
# =============================================================================

def _template_fields(check, required):
    check.positive_int("category_id", required=required)
    check.amount(required=required)
    check.choice("currency", CURRENCIES, required=required)
    check.choice("type", TYPES, required=required)
    check.text("name", required=required)
    check.text("description", required=False, nullable=True)
    check.choice("frequency", FREQUENCIES, required=required)
    check.date("next_due_date", required=required)
    check.boolean("is_active")


def recurring_create(payload):
    check = _Checker(payload)
    _template_fields(check, required=True)
    return check.result()


def recurring_update(payload):
    check = _Checker(payload)
    _template_fields(check, required=False)
    return check.result()


# =============================================================================
# QUERY STRINGS
# =============================================================================

def date_range(args):
    """``startDate``/``endDate`` query parameters as ``start_date``/``end_date``."""
    check = _Checker({k: v for k, v in args.items() if v not in (None, "")})
    check.date("startDate", required=False)
    check.date("endDate", required=False)
    clean = check.result()
    return {"start_date": clean.get("startDate"), "end_date": clean.get("endDate")}


def list_filters(args):
    """
    Ledger list filters from a query string.

    Unknown ``type`` or ``status`` values are ignored rather than rejected,
    matching how the dashboard sends empty selects.
    """
    filters = date_range(args)

    category_id = parse_positive_int(args.get("categoryId") or args.get("category_id") or "")
    if category_id:
        filters["category_id"] = category_id
    if args.get("type") in TYPES:
        filters["type"] = args["type"]
    if args.get("currency"):
        filters["currency"] = args["currency"]
    status = args.get("status")
    if status in STATUSES or status == "all":
        filters["status"] = status
    if parse_bool(args.get("recurringOnly") or args.get("recurring_only") or "false"):
        filters["recurring_only"] = True
    return filters
