"""
Pytest fixtures for warehouse backend tests.

Provides the test app (in-memory SQLite), a per-test clean database,
user/session-context fixtures, and auth header helpers.
"""

import pytest
from warehouse import create_app
from warehouse.extensions import db
from warehouse.models import User
from warehouse.services.auth_service import hash_password
from warehouse.services import session_service

ADMIN_EMAIL = "admin@warehouse.test"
PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_EMAIL': ADMIN_EMAIL,
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


@pytest.fixture(scope='session')
def password_hash():
    """Bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    """Factory: make_user("a@b.c", can_add_products=True, ...)."""
    def _make(email, **flags):
        user = User(email=email, password_hash=password_hash, **flags)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    """The configured admin identity. Stored flags are all false on purpose."""
    return make_user(ADMIN_EMAIL)


@pytest.fixture(scope='function')
def staff_user(make_user):
    """Non-admin user with every flag that grants something."""
    return make_user(
        "staff@warehouse.test",
        can_add_products=True,
        can_delete_products=True,
        can_manage_transactions=True,
        can_view_reports=True,
    )


@pytest.fixture(scope='function')
def viewer_user(make_user):
    """Non-admin user with no flags."""
    return make_user("viewer@warehouse.test")


@pytest.fixture(scope='function')
def admin_ctx(admin_user):
    return session_service.build_context(admin_user)


@pytest.fixture(scope='function')
def staff_ctx(staff_user):
    return session_service.build_context(staff_user)


@pytest.fixture(scope='function')
def viewer_ctx(viewer_user):
    return session_service.build_context(viewer_user)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def token_for(user) -> str:
    """Session token without the bcrypt round-trip of a real login."""
    _, token = session_service.create_session(user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(token_for(admin_user))


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return auth_headers(token_for(staff_user))


@pytest.fixture(scope='function')
def viewer_headers(viewer_user):
    return auth_headers(token_for(viewer_user))
