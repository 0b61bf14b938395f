"""
Pytest fixtures for the POS backend tests.

Provides an in-memory application, a per-test clean database, sample
catalog data and a test client that sends an acting principal.
"""

import pytest
from pos_app import create_app
from pos_app.extensions import db
from pos_app.models import Category
from pos_app.services import catalog_service

CASHIER = "cashier-1"
ADMIN = "admin-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_BASE': 0,
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
def beverages(db_session):
    category = Category(name="Beverages", description="Hot and cold drinks")
    db_session.add(category)
    db_session.commit()
    return category


def make_product(sku, price, tax_rate="0", quantity=0, cost="0", reorder_level=5, category=None):
    """Create a product through the catalog so opening stock is in the ledger."""
    return catalog_service.create_product(
        patch={
            "sku": sku,
            "name": sku.title(),
            "price": price,
            "cost": cost,
            "tax_rate": tax_rate,
            "reorder_level": reorder_level,
            "category_id": category.id if category is not None else None,
        },
        principal_id=ADMIN,
        opening_quantity=quantity,
    )


@pytest.fixture(scope='function')
def coffee(db_session, beverages):
    """COFFEE-001: 12.99, 10% tax, 20 on hand."""
    return make_product("COFFEE-001", "12.99", tax_rate="10", quantity=20, cost="6.50", category=beverages)


@pytest.fixture(scope='function')
def croissant(db_session):
    """BAK-001: 2.75, 8.25% tax, 10 on hand."""
    return make_product("BAK-001", "2.75", tax_rate="8.25", quantity=10, cost="0.90")


def principal_headers(principal_id: str = CASHIER) -> dict:
    """Helper to create X-Principal-Id headers."""
    return {'X-Principal-Id': principal_id}
