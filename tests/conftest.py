"""
Pytest configuration and fixtures
"""
import os
import sys
import tempfile
from datetime import datetime

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Must be set before config.TestingConfig is imported
os.environ.setdefault('TEST_DATA_FOLDER', tempfile.mkdtemp(prefix='finomik-test-'))


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with every table created"""
    from database.connection import configure_engine, init_db, drop_db

    engine = configure_engine('sqlite://')
    init_db()
    yield engine
    drop_db()


@pytest.fixture
def db_session(db_engine):
    """Session bound to the test database, rolled back after each test"""
    from database.connection import get_session_factory

    session = get_session_factory()()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def app():
    """Flask app built with the testing config"""
    from app_init import create_app

    application = create_app('testing')
    yield application


@pytest.fixture
def client(app):
    """Test client for the Flask app"""
    return app.test_client()


@pytest.fixture
def school_factory(db_session):
    """Create schools through the repository"""
    from services.school_repository import SchoolRepository

    repo = SchoolRepository(db_session)

    def _create(**overrides):
        data = {'name': 'Colegio San José', 'city': 'Madrid', 'email': 'info@sanjose.es'}
        data.update(overrides)
        return repo.create_school(data)

    return _create


@pytest.fixture
def fixed_now():
    """Reference time used by the reminder tests"""
    return datetime(2024, 5, 10, 10, 0)


@pytest.fixture(autouse=True)
def reset_globals():
    """Forget the global poller and scheduler between tests"""
    yield
    import services.reminder_service as reminder_service
    import services.scheduler as scheduler

    reminder_service._poller = None
    if scheduler._scheduler is not None:
        scheduler._scheduler.stop()
    scheduler._scheduler = None
