"""
Pytest fixtures for Fabric Store backend tests.

Provides test database setup, users for each role, products, and test client.
"""

from decimal import Decimal

import pytest
from fabricpos import create_app
from fabricpos.extensions import db
from fabricpos.models import User, Product, Sale
from fabricpos.services.auth_service import hash_password

PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
        # Clear all data but keep schema (Core deletes skip the ledger's ORM guards)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt at cost 12 is slow; hash the shared test password once."""
    return hash_password(PASSWORD)


def _make_user(session, password_hash, *, name, email, role, is_active=True) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=is_active,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, name="Admin", email="admin@fabric.test", role="admin")


@pytest.fixture(scope='function')
def staff_user(db_session, password_hash):
    return _make_user(db_session, password_hash, name="Sola Staff", email="staff@fabric.test", role="staff")


@pytest.fixture(scope='function')
def other_staff_user(db_session, password_hash):
    return _make_user(db_session, password_hash, name="Tunde Staff", email="tunde@fabric.test", role="staff")


@pytest.fixture(scope='function')
def pending_user(db_session, password_hash):
    """Signed up but not yet approved."""
    return _make_user(
        db_session, password_hash,
        name="Pending Person", email="pending@fabric.test", role="staff", is_active=False,
    )


@pytest.fixture(scope='function')
def make_product(db_session, admin_user):
    """Factory: make_product(name=..., current_stock=..., price_per_unit=...)."""
    def _make(
        name="Ankara Print",
        *,
        category="ankara",
        current_stock="10",
        total_stock=None,
        price_per_unit="500",
        unit="yards",
        min_stock_level="10",
        is_active=True,
    ) -> Product:
        product = Product(
            name=name,
            category=category,
            total_stock=Decimal(total_stock if total_stock is not None else current_stock),
            current_stock=Decimal(current_stock),
            unit=unit,
            price_per_unit=Decimal(price_per_unit),
            min_stock_level=Decimal(min_stock_level),
            is_active=is_active,
            added_by_user_id=admin_user.id,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """10 yards of Ankara at 500 per yard."""
    return make_product()


@pytest.fixture(scope='function')
def make_sale(db_session):
    """Factory for a bare sale header (no stock movement), for listing/report tests."""
    def _make(user, *, sale_number, final_amount="1000", status="completed", sale_date=None, **kwargs) -> Sale:
        sale = Sale(
            sale_number=sale_number,
            customer_name=kwargs.pop("customer_name", "Walk-in Customer"),
            total_amount=Decimal(final_amount),
            discount=Decimal("0"),
            final_amount=Decimal(final_amount),
            payment_method="cash",
            status=status,
            sold_by_user_id=user.id,
            **kwargs,
        )
        if sale_date is not None:
            sale.sale_date = sale_date
            sale.created_at = sale_date
        db_session.add(sale)
        db_session.commit()
        return sale

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
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))


@pytest.fixture(scope='function')
def other_staff_headers(client, other_staff_user):
    return auth_headers(get_auth_token(client, other_staff_user.email))
