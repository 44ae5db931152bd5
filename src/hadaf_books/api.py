"""
Hadaf Books - Flask REST API

JSON API behind the Hadaf dashboard. Endpoints:

Categories:
- Nested category list, CRUD, per-category totals

Transactions:
- Filtered ledger listing (``status`` defaults to ``done``)
- CRUD; closing a recurring installment advances its template
- Optional ``recurring`` object on create to start a series

Recurring:
- Template CRUD (creating one queues its first pending installment)
- Due templates and manual execution

Dashboard & Export:
- Summary totals, follow-ups, CSV export, database backup download

Every response uses the same envelope:
    {"success": true, "data": ..., "message": "..."}
    {"success": false, "error": {"code": "...", "message": "...", "details": [...]}}
"""

import datetime
import logging
from decimal import Decimal

from flask import Flask, Response, jsonify, request, send_file
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from . import validators
from .config import load_config
from .dates import today_iso
from .engine import BooksEngine
from .errors import BooksError, NotFound
from .reports import transactions_to_csv

logger = logging.getLogger(__name__)


class CustomJSONProvider(DefaultJSONProvider):
    """Serialize Decimal amounts as numbers and dates as ISO strings."""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime.date, datetime.datetime)):
            return obj.isoformat()
        return super().default(obj)


def success(data=None, message="OK", status=200):
    return jsonify({"success": True, "data": data, "message": message}), status


def failure(code, message, status, details=None):
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return jsonify({"success": False, "error": error}), status


def create_app(config=None, engine=None):
    """
    Build the Flask application.

    Args:
        config (Config, optional): defaults to ``load_config()``
        engine (BooksEngine, optional): defaults to an engine over
            ``config.database_path``

    Returns:
        Flask
    """
    config = config or load_config()
    engine = engine or BooksEngine.from_config(config)

    app = Flask(__name__)
    app.json = CustomJSONProvider(app)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["BOOKS_CONFIG"] = config
    app.extensions["hadaf_books"] = engine

    CORS(
        app,
        origins=list(config.cors_origins),
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    if config.seed_sample_data and engine.is_empty():
        from .demo_data import seed_sample_data
        seed_sample_data(engine)

    # =============================================================================
    # ERROR HANDLERS
    # =============================================================================

    @app.errorhandler(BooksError)
    def handle_books_error(error):
        logger.warning("%s %s -> %s %s: %s", request.method, request.path, error.status, error.code, error.message)
        return jsonify({"success": False, "error": error.to_dict()}), error.status

    @app.errorhandler(404)
    def handle_not_found(error):
        return failure("NOT_FOUND", f"Route not found: {request.method} {request.path}", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return failure("METHOD_NOT_ALLOWED", f"Method not allowed: {request.method} {request.path}", 405)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return failure(error.name.upper().replace(" ", "_"), error.description, error.code)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return failure("INTERNAL_ERROR", "Internal server error", 500)

    def body():
        return request.get_json(silent=True) or {}

    # --- HEALTH ---

    @app.route("/api/health", methods=["GET"])
    def health():
        return success({"status": "ok"}, "OK")

    # --- CATEGORY ROUTES ---

    @app.route("/api/categories", methods=["GET"])
    def list_categories():
        return success(engine.categories.list_tree(), "Categories fetched")

    @app.route("/api/categories/<category_id>", methods=["GET"])
    def get_category(category_id):
        category = engine.categories.get_by_id(validators.validate_id(category_id))
        if not category:
            raise NotFound("Category not found")
        return success(category, "Category fetched")

    @app.route("/api/categories/<category_id>/stats", methods=["GET"])
    def category_stats(category_id):
        stats = engine.categories.stats(validators.validate_id(category_id))
        return success(stats, "Category stats fetched")

    @app.route("/api/categories", methods=["POST"])
    def create_category():
        data = validators.category_create(body())
        category = engine.categories.create(data["name"], data.get("parentId"), data.get("type"))
        return success(category, "Category created", 201)

    @app.route("/api/categories/<category_id>", methods=["PUT"])
    def update_category(category_id):
        data = validators.category_update(body())
        category = engine.categories.update(
            validators.validate_id(category_id),
            name=data.get("name"),
            parent_id=data.get("parentId", ...),
        )
        return success(category, "Category updated")

    @app.route("/api/categories/<category_id>", methods=["DELETE"])
    def delete_category(category_id):
        engine.categories.delete(validators.validate_id(category_id))
        return success(True, "Category deleted")

    # --- TRANSACTION ROUTES ---

    @app.route("/api/transactions", methods=["GET"])
    def list_transactions():
        rows = engine.ledger.list(validators.list_filters(request.args))
        return success(rows, "Transactions fetched")

    @app.route("/api/transactions/<transaction_id>", methods=["GET"])
    def get_transaction(transaction_id):
        entry = engine.ledger.get_by_id(validators.validate_id(transaction_id))
        if not entry:
            raise NotFound("Transaction not found")
        return success(entry, "Transaction fetched")

    @app.route("/api/transactions", methods=["POST"])
    def create_transaction():
        data, recurring = validators.transaction_create(body())
        if recurring:
            result = engine.advancer.create_transaction(data, recurring)
            return success(result, "Recurring transaction created", 201)
        return success(engine.ledger.create(data), "Transaction created", 201)

    @app.route("/api/transactions/<transaction_id>", methods=["PUT"])
    def update_transaction(transaction_id):
        data = validators.transaction_update(body())
        entry = engine.ledger.update(validators.validate_id(transaction_id), data)
        return success(entry, "Transaction updated")

    @app.route("/api/transactions/<transaction_id>", methods=["DELETE"])
    def delete_transaction(transaction_id):
        engine.ledger.delete(validators.validate_id(transaction_id))
        return success(True, "Transaction deleted")

    # --- RECURRING ROUTES ---

    @app.route("/api/recurring", methods=["GET"])
    def list_recurring():
        return success(engine.templates.list(), "Recurring transactions fetched")

    @app.route("/api/recurring/due", methods=["GET"])
    def list_due_recurring():
        as_of = validators.date_range({"endDate": request.args.get("date")})["end_date"] or today_iso()
        return success(engine.reports.due_templates(as_of), "Due recurring transactions fetched")

    @app.route("/api/recurring/<template_id>", methods=["GET"])
    def get_recurring(template_id):
        template = engine.templates.get_by_id(validators.validate_id(template_id))
        if not template:
            raise NotFound("Recurring transaction not found")
        return success(template, "Recurring transaction fetched")

    @app.route("/api/recurring", methods=["POST"])
    def create_recurring():
        data = validators.recurring_create(body())
        result = engine.advancer.create_template(data)
        return success(result, "Recurring transaction created", 201)

    @app.route("/api/recurring/<template_id>", methods=["PUT"])
    def update_recurring(template_id):
        data = validators.recurring_update(body())
        template = engine.templates.update(validators.validate_id(template_id), data)
        return success(template, "Recurring transaction updated")

    @app.route("/api/recurring/<template_id>", methods=["DELETE"])
    def delete_recurring(template_id):
        engine.templates.delete(validators.validate_id(template_id))
        return success(True, "Recurring transaction deleted")

    @app.route("/api/recurring/<template_id>/execute", methods=["POST"])
    def execute_recurring(template_id):
        result = engine.advancer.execute(validators.validate_id(template_id))
        if result["created"]:
            return success(result, "Pending installment created", 201)
        return success(result, "Pending installment already exists")

    # --- DASHBOARD ROUTES ---

    @app.route("/api/dashboard/summary", methods=["GET"])
    def dashboard_summary():
        window = validators.date_range(request.args)
        return success(engine.reports.summary(window["start_date"], window["end_date"]), "Dashboard summary fetched")

    @app.route("/api/dashboard/follow-ups", methods=["GET"])
    def dashboard_follow_ups():
        window = validators.date_range(request.args)
        type_ = request.args.get("type", "in")
        rows = engine.reports.follow_ups(
            start_date=window["start_date"],
            end_date=window["end_date"],
            type_=type_ if type_ in validators.TYPES else None,
            recurring_only=bool(validators.parse_bool(request.args.get("recurringOnly", "false"))),
        )
        return success(rows, "Follow-ups fetched")

    # --- EXPORT ROUTES ---

    @app.route("/api/export/csv", methods=["GET"])
    def export_csv():
        rows = engine.ledger.list(validators.list_filters(request.args))
        return Response(
            transactions_to_csv(rows),
            mimetype="text/csv",
            headers={"Content-Disposition": 'attachment; filename="transactions.csv"'},
        )

    @app.route("/api/export/backup", methods=["GET"])
    def export_backup():
        db_path = engine.db.db_path
        if not db_path.exists():
            raise NotFound("Database file not found")
        return send_file(db_path, as_attachment=True, download_name=db_path.name)

    return app


if __name__ == "__main__":
    from .config import configure_logging

    settings = load_config()
    configure_logging(settings.log_level)
    create_app(settings).run(host=settings.host, port=settings.port, debug=True, use_reloader=False)
