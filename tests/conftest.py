"""
Pytest Configuration and Fixtures

Provides shared test fixtures for all tests.
"""

import os
import sys

# Settings are read once and cached, so the environment must be ready first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["REDIS_URL"] = "redis://localhost:6399/0"
os.environ["LOG_FILE"] = ""
os.environ["SENTRY_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-pytest-only"
os.environ["ADMIN_EMAIL"] = "admin@example.com"

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from core.config import get_settings
from core.security import get_password_hash

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPassword123!"

os.environ["ADMIN_PASSWORD_HASH"] = get_password_hash(ADMIN_PASSWORD)
get_settings.cache_clear()

from api.dependencies import get_presence, get_session_cache
from api.main import app
from api.middleware.rate_limit import limiter
from cache.memory import InMemoryPresenceTracker, InMemorySessionCache
from core.database import Base, enable_sqlite_foreign_keys, get_db
from repositories.memory_store import InMemoryAnalyticsStore
from repositories.sql_store import SQLAnalyticsStore
from services.aggregation_service import AnalyticsAggregationService
from services.tracking_service import TrackingService
import models  # noqa: F401

limiter.enabled = False

# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_cache() -> InMemorySessionCache:
    return InMemorySessionCache(ttl_seconds=1800)


@pytest.fixture(scope="function")
def presence() -> InMemoryPresenceTracker:
    return InMemoryPresenceTracker(visitor_ttl_seconds=300, slide_ttl_seconds=60)


@pytest.fixture(scope="function")
def memory_store() -> InMemoryAnalyticsStore:
    return InMemoryAnalyticsStore()


@pytest.fixture(scope="function")
def sql_store(db: Session) -> SQLAnalyticsStore:
    return SQLAnalyticsStore(db)


@pytest.fixture(scope="function")
def tracking_service(memory_store, session_cache, presence) -> TrackingService:
    """Tracking service over in-memory backends."""
    return TrackingService(memory_store, session_cache, presence)


@pytest.fixture(scope="function")
def aggregation_service(memory_store, presence) -> AnalyticsAggregationService:
    return AnalyticsAggregationService(memory_store, presence)


@pytest.fixture(scope="function")
def client(db: Session, session_cache, presence):
    """Create a test client with database and cache overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_cache] = lambda: session_cache
    app.dependency_overrides[get_presence] = lambda: presence

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def admin_token(client: TestClient) -> str:
    """Get an access token for the configured admin."""
    response = client.post(
        "/api/auth/login",
        json={
            "email": ADMIN_EMAIL,
            "password": ADMIN_PASSWORD
        }
    )

    assert response.status_code == 200
    return response.json()["access_token"]


@pytest.fixture(scope="function")
def auth_headers(admin_token: str) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}
