"""
Pytest fixtures for the shopledger backend tests.

Provides an in-memory database shared by the whole session, a per-test
table wipe, the Flask test client and factories for catalog rows.
"""

import pytest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.services import catalog_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_category(db_session):
    """Factory: make_category("Drinks")."""
    def _make(name="Drinks"):
        return catalog_service.create_category(patch={"name": name})
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for products; prices are cents."""
    counter = {"n": 0}

    def _make(name=None, initial_price_cents=1000, selling_price_cents=1500, quantity=100, category_id=None):
        counter["n"] += 1
        return catalog_service.create_product(patch={
            "name": name or f"Product {counter['n']}",
            "initial_price_cents": initial_price_cents,
            "selling_price_cents": selling_price_cents,
            "quantity": quantity,
            "category_id": category_id,
        })
    return _make


@pytest.fixture(scope='function')
def make_service(db_session):
    """Factory for services; default price is cents."""
    counter = {"n": 0}

    def _make(name=None, default_price_cents=500, description=None):
        counter["n"] += 1
        return catalog_service.create_service(patch={
            "name": name or f"Service {counter['n']}",
            "default_price_cents": default_price_cents,
            "description": description,
        })
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product(initial=1000, selling=1500, quantity=100)."""
    return make_product(name="Widget")
