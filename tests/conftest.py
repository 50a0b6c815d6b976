"""Shared fixtures: an isolated application per test on a temporary SQLite file."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from labtrack import create_app
from labtrack.modules.database_manager import DatabaseManager
from labtrack.modules.session_store import SessionStore, UsageEntry


@pytest.fixture
def app(tmp_path):
    app = create_app('testing', {'DATABASE_PATH': str(tmp_path / 'labtrack-test.db')})
    yield app
    app.extensions['labtrack']['db'].close_all_connections()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(str(tmp_path / 'store.db'))
    yield manager
    manager.close_all_connections()


@pytest.fixture
def store(db_manager):
    return SessionStore(db_manager)


def provider_token(app, email, nonce, name=None, key=None, audience=None, expires_in=300):
    """Build an ID token the way the identity provider signs it."""
    claims = {
        'sub': email,
        'email': email,
        'name': name,
        'nonce': nonce,
        'aud': audience or app.config['IDENTITY_PROVIDER_CLIENT_ID'],
        'exp': datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, key or app.config['IDENTITY_PROVIDER_KEY'], algorithm='HS256')


def session_nonce(client, app):
    with client.session_transaction() as sess:
        return sess.get(app.config['AUTH_NONCE_SESSION_KEY'])


def sign_in(client, email, name=None, role=None):
    """Go through /auth/login and post a signed provider token to the callback."""
    client.get(f'/auth/login?role={role}' if role else '/auth/login')
    app = client.application
    token = provider_token(app, email, session_nonce(client, app), name=name)
    return client.post('/auth/callback', json={'credential': token})


def make_entry(teacher_id='T-1001', building='IS', room='101', start=None, end=None,
               num_students=10, purpose='Lab practical', equipment=None, teacher_name='Dr. Smith'):
    return UsageEntry(
        teacher_id=teacher_id,
        teacher_name=teacher_name,
        building_number=building,
        room_number=room,
        start_time=start or datetime(2025, 3, 10, 9, 0, 0),
        end_time=end,
        num_students=num_students,
        purpose=purpose,
        equipment=equipment or [],
    )
