"""
Central pytest configuration for the diving platform tests.

Environment is pinned before anything imports ``dive_platform`` so the
lazy engine, the notification providers and the limiter all see test
settings.
"""

import os

# Test database configuration (set early so the lazy engine uses it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "0"  # Disable rate limiting in tests
os.environ["LOG_TO_FILE"] = "0"
os.environ["HEALTH_CHECK_TOKEN"] = "test-health-token"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["EMAIL_MOCK_MODE"] = "true"
os.environ["SMS_MOCK_MODE"] = "true"
os.environ["PUSH_MOCK_MODE"] = "true"
os.environ["HYPERPAY_WEBHOOK_SECRET"] = "test_webhook_secret"

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from dive_platform.core.security import create_access_token  # noqa: E402
from dive_platform.db.session import SessionLocal, create_tables, drop_tables  # noqa: E402
from dive_platform.domain.enums import UserRole  # noqa: E402
from tests.config.markers import (  # noqa: E402,F401
    pytest_collection_modifyitems,
    pytest_configure,
    response_helper,
)
from tests.factories.mock_factories import make_actor  # noqa: E402


# =====================================================
# APPLICATION FIXTURES
# =====================================================


@pytest.fixture
def app():
    """Flask app wired for tests (in-memory SQLite, limiter off)."""
    from dive_platform.main import create_app

    flask_app = create_app()
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api_prefix(app):
    return app.config["API_PREFIX"]


# =====================================================
# DATABASE FIXTURES
# =====================================================


@pytest.fixture
def db_session():
    """Fresh schema per test on the shared in-memory database."""
    drop_tables()
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_tables()
        create_tables()


# =====================================================
# AUTH HELPERS
# =====================================================


def auth_headers_for(user) -> dict:
    """Bearer header carrying a fresh access token for ``user``."""
    token = create_access_token({"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return auth_headers_for


# =====================================================
# BASIC MOCK FIXTURES
# =====================================================


@pytest.fixture
def diver_actor():
    return make_actor(UserRole.DIVER.value, "diver-1")


@pytest.fixture
def owner_actor():
    return make_actor(UserRole.CENTER_OWNER.value, "owner-1")


@pytest.fixture
def admin_actor():
    return make_actor(UserRole.ADMIN.value, "admin-1")


@pytest.fixture
def mock_db_session():
    """Create a mock database session for testing."""
    session = Mock()
    session.add = Mock()
    session.commit = Mock()
    session.refresh = Mock()
    session.rollback = Mock()
    session.close = Mock()
    return session
