"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, owner/staff accounts, auth headers and a
product factory.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Product, User
from stockledger.permissions import Role
from stockledger.services.auth_service import hash_password
from stockledger.services.movement_service import create_stock_adjustment


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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


def _make_user(db_session, email: str, role: str) -> User:
    user = User(
        email=email,
        name=email.split("@")[0].title(),
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    return _make_user(db_session, "owner@shop.test", Role.OWNER)


@pytest.fixture(scope='function')
def staff(db_session):
    return _make_user(db_session, "staff@shop.test", Role.STAFF)


@pytest.fixture(scope='function')
def make_product(db_session, owner):
    """
    Factory: make_product(name="...", stock=10, price_cents=500, ...).

    Opening stock is written through the ledger as an ADJUSTMENT, so the
    product starts consistent with its movements.
    """
    counter = {"n": 0}

    def _make(name=None, *, stock=0, price_cents=1000, sku=None, is_active=True):
        counter["n"] += 1
        product = Product(
            sku=sku or f"SKU-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
        )
        db_session.add(product)
        db_session.commit()

        if stock:
            create_stock_adjustment(
                product.id, stock, "Initial stock",
                actor_id=owner.id, actor_role=owner.role,
            )

        if not is_active:
            product.is_active = False
            db_session.commit()
        return product

    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff):
    return auth_headers(get_auth_token(client, staff.email))
