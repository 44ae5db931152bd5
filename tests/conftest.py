import pytest

from hadaf_books.api import create_app
from hadaf_books.config import Config
from hadaf_books.engine import BooksEngine


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "hadaf_test.db"


@pytest.fixture
def engine(db_path):
    return BooksEngine.open(db_path)


@pytest.fixture
def category_id(engine):
    """Id of the seeded "German Class" category."""
    roots = engine.categories.list_tree()
    return next(c["id"] for c in roots if c["name"] == "German Class")


@pytest.fixture
def other_category_id(engine):
    roots = engine.categories.list_tree()
    return next(c["id"] for c in roots if c["name"] == "General Costs")


@pytest.fixture
def template_data(category_id):
    def build(**overrides):
        data = {
            "category_id": category_id,
            "amount": "3000",
            "currency": "AFN",
            "type": "in",
            "name": "Ghulaam",
            "description": "German class fee",
            "frequency": "monthly",
            "next_due_date": "2026-01-15",
        }
        data.update(overrides)
        return data
    return build


@pytest.fixture
def transaction_data(category_id):
    def build(**overrides):
        data = {
            "category_id": category_id,
            "amount": "1500",
            "currency": "AFN",
            "type": "out",
            "date": "2026-01-15",
            "name": "Teacher Payment",
            "description": None,
        }
        data.update(overrides)
        return data
    return build


@pytest.fixture
def app(engine, db_path):
    app = create_app(Config(database_path=db_path), engine=engine)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
