"""
Pytest fixtures for sales ledger backend tests.

Provides an in-memory database per test, two tenants (user_a, user_b) with
products, an admin, and helpers to log in through the API.
"""

import pytest

from salesledger import create_app
from salesledger.extensions import db, query_cache
from salesledger.models import Product
from salesledger.permissions import Role
from salesledger.services import auth_service, session_service
from salesledger.time_utils import utcnow

PASSWORD = "Password123!"

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "SQLALCHEMY_TRACK_MODIFICATIONS": False,
    "BCRYPT_ROUNDS": 4,
    "CACHE_BACKEND": "memory",
    "CACHE_DEFAULT_TTL": 60,
}


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh schema for each test."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        query_cache.clear()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


def make_user(username: str, role: Role = Role.USER, name: str | None = None):
    return auth_service.create_user(
        username=username,
        name=name or username.replace("_", " ").title(),
        email=f"{username}@example.com",
        password=PASSWORD,
        role=role,
    )


def make_product(owner, name: str, price: str, unit_cost: str | None = None, brand: str | None = None):
    now = utcnow()
    product = Product(
        owner_user_id=owner.id,
        name=name,
        brand=brand,
        price=price,
        unit_cost=unit_cost,
        created_at=now,
        updated_at=now,
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def user_a(db_session):
    """Tenant A (role user)."""
    return make_user("user_a")


@pytest.fixture(scope='function')
def user_b(db_session):
    """Tenant B (role user)."""
    return make_user("user_b")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user("admin", role=Role.ADMIN)


@pytest.fixture(scope='function')
def actor_a(user_a):
    return session_service.actor_for(user_a)


@pytest.fixture(scope='function')
def actor_b(user_b):
    return session_service.actor_for(user_b)


@pytest.fixture(scope='function')
def admin_actor(admin_user):
    return session_service.actor_for(admin_user)


@pytest.fixture(scope='function')
def product_a(user_a):
    """Owned by A: price 29.99, unit cost 15.00."""
    return make_product(user_a, "Widget", "29.99", "15.00", brand="Acme")


@pytest.fixture(scope='function')
def product_a2(user_a):
    """Owned by A: price 19.99, unit cost 8.00."""
    return make_product(user_a, "Gadget", "19.99", "8.00", brand="Globex")


@pytest.fixture(scope='function')
def product_b(user_b):
    """Owned by B."""
    return make_product(user_b, "Foreign Thing", "10.00", "4.00", brand="Initech")


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
def headers_a(client, user_a):
    return auth_headers(get_auth_token(client, "user_a"))


@pytest.fixture(scope='function')
def headers_b(client, user_b):
    return auth_headers(get_auth_token(client, "user_b"))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))
