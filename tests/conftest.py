"""
Shared fixtures for the EduSync test suite.

Every test gets its own in-memory SQLite database, a Flask app built with
TestingConfig on top of it, and a fake AI transport instead of OpenRouter.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from config import TestingConfig
from db_single import init_database
from models import ROLE_CREATOR, ROLE_ADMIN, ROLE_HEAD, ROLE_TEACHER
from user_helpers import create_user
from chat_models import AISettings


PASSWORD = 'secret123'

VALID_KEY_1 = 'sk-or-v1-aaaaaaaaaaaaaaaa'
VALID_KEY_2 = 'sk-or-v1-bbbbbbbbbbbbbbbb'


# =============================================================================
# APP & DATABASE
# =============================================================================

@pytest.fixture
def database():
    database = init_database(TestingConfig)
    yield database
    database.dispose()


@pytest.fixture
def fake_transport():
    """Stands in for call_openrouter_api: (api_key, model, messages) -> str"""
    return MagicMock(return_value='Hello from the assistant')


@pytest.fixture
def app(database, fake_transport):
    from main import create_app

    app = create_app('testing', database=database, ai_transport=fake_transport)
    yield app


@pytest.fixture
def db(app, database):
    """A session on the app's database (tables already created and seeded)"""
    session = database.session()
    yield session
    session.close()


# =============================================================================
# USERS
# =============================================================================

def _make_user(db, name, email, role):
    success, message, user = create_user(db, name, email, PASSWORD, role)
    assert success, message
    return user


@pytest.fixture
def creator(db):
    return _make_user(db, 'Shan', 'shan@edusync.test', ROLE_CREATOR)


@pytest.fixture
def admin(db):
    return _make_user(db, 'Ada Admin', 'admin@edusync.test', ROLE_ADMIN)


@pytest.fixture
def head(db):
    return _make_user(db, 'Harriet Head', 'head@edusync.test', ROLE_HEAD)


@pytest.fixture
def teacher(db):
    return _make_user(db, 'Tom Teacher', 'tom@edusync.test', ROLE_TEACHER)


@pytest.fixture
def second_teacher(db):
    return _make_user(db, 'Tina Tutor', 'tina@edusync.test', ROLE_TEACHER)


@pytest.fixture
def ai_settings(db):
    """The seeded AISettings row, configured with two valid keys and a model"""
    settings = db.query(AISettings).first()
    settings.api_keys = [VALID_KEY_1, VALID_KEY_2]
    settings.model = 'openai/gpt-4o-mini'
    settings.current_index = 0
    db.commit()
    return settings


# =============================================================================
# LOGGED-IN CLIENTS
# =============================================================================

def login(client, email, password=PASSWORD, path='/login'):
    response = client.post(path, json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def creator_client(app, creator):
    client = app.test_client()
    login(client, creator.email, path='/creator-login')
    return client


@pytest.fixture
def admin_client(app, admin):
    client = app.test_client()
    login(client, admin.email)
    return client


@pytest.fixture
def head_client(app, head):
    client = app.test_client()
    login(client, head.email)
    return client


@pytest.fixture
def teacher_client(app, teacher):
    client = app.test_client()
    login(client, teacher.email)
    return client
