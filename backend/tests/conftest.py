"""
Pytest fixtures for posboard backend tests.

Provides test database setup, staff users, catalog products, and test client.
"""

import pytest
from posboard import create_app
from posboard.extensions import db
from posboard.models import Product
from posboard.models.auth import ROLE_ADMIN, ROLE_CASHIER
from posboard.services.auth_service import create_user


PASSWORD = "Password123!"

# Low bcrypt cost keeps the suite fast
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'Asia/Tokyo',
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
def admin_user(db_session):
    """Admin with a display name."""
    return create_user(
        username="admin",
        email="admin@injapanpos.local",
        password=PASSWORD,
        role=ROLE_ADMIN,
        display_name="Admin",
        rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture(scope='function')
def cashier_user(db_session):
    """Cashier without a display name (receipts fall back to the email local part)."""
    return create_user(
        username="cashier",
        email="hanako@injapanpos.local",
        password=PASSWORD,
        role=ROLE_CASHIER,
        rounds=TEST_BCRYPT_ROUNDS,
    )


def make_product(db_session, name="Matcha Kit Kat", category="Snacks", price=1000, stock=10, **kwargs):
    product = Product(name=name, category=category, price=price, stock=stock, **kwargs)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_factory(db_session):
    """Callable that adds and commits one product."""
    def _make(**kwargs):
        return make_product(db_session, **kwargs)
    return _make


@pytest.fixture(scope='function')
def product(db_session):
    """Single in-stock product priced at 1000 Yen."""
    return make_product(db_session)


@pytest.fixture(scope='function')
def products(db_session):
    """A small catalog across categories."""
    return [
        make_product(db_session, "Matcha Kit Kat", "Snacks", 1000, 10, description="Green tea wafer"),
        make_product(db_session, "Pocky Strawberry", "Snacks", 250, 3),
        make_product(db_session, "Uji Sencha", "Tea", 1800, 0),
        make_product(db_session, "Tenugui Towel", "Goods", 1200, 5, description="Cotton hand towel"),
    ]


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
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
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, "cashier"))
