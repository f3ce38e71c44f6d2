"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, location/user fixtures, and test client.
"""

import pytest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import ActionDefinition
from shopledger.models.tenancy import ROLE_OPERATOR, ROLE_READER
from shopledger.services import action_config_service, auth_service, location_service

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


@pytest.fixture(scope='function')
def catalog(db_session):
    """Built-in action catalog, keyed by action name."""
    action_config_service.seed_action_catalog()
    db_session.commit()
    return {a.name: a for a in db_session.query(ActionDefinition).all()}


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user("admin@centro.local", PASSWORD)


@pytest.fixture(scope='function')
def operator_user(db_session):
    return auth_service.create_user("operator@centro.local", PASSWORD)


@pytest.fixture(scope='function')
def reader_user(db_session):
    return auth_service.create_user("reader@centro.local", PASSWORD)


@pytest.fixture(scope='function')
def location(db_session, catalog, admin_user, operator_user, reader_user):
    """Location 'Centro' with one user per role and its override rows."""
    loc = location_service.create_location("Centro", admin_user.id)
    location_service.assign_user(loc.id, operator_user.id, ROLE_OPERATOR)
    location_service.assign_user(loc.id, reader_user.id, ROLE_READER)
    return loc


@pytest.fixture(scope='function')
def other_admin(db_session):
    return auth_service.create_user("admin@norte.local", PASSWORD)


@pytest.fixture(scope='function')
def other_location(db_session, catalog, other_admin):
    """Second tenant, administered by a different user."""
    return location_service.create_location("Norte", other_admin.id)


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


def login_at(client, email: str, location_id: int) -> dict:
    """Log in and select a location; returns headers for the session."""
    token = get_auth_token(client, email)
    assert token, f"login failed for {email}"
    headers = auth_headers(token)
    response = client.post('/api/auth/location', json={'location_id': location_id}, headers=headers)
    assert response.status_code == 200, response.json
    return headers
