"""pytest configuration: in-memory database, services and API client."""
from __future__ import annotations

import os
import sys
from pathlib import Path

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests off any real Redis; the config cache fails open without it.
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.database import Base, get_db
from app.domain.personalization.config_service import ConfigRegistry
from app.domain.personalization.schemas import ConfigCreate
from app.domain.personalization.setup_service import ReusableSetupManager
from app.domain.personalization.snapshot_service import SnapshotEngine
from app.domain.personalization.submission_service import SubmissionStore

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

LISTING_ID = "listing-1"
CUSTOMER_ID = "customer-1"
PROVIDER_ID = "provider-1"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def registry(db) -> ConfigRegistry:
    return ConfigRegistry(db)


@pytest.fixture
def store(db) -> SubmissionStore:
    return SubmissionStore(db)


@pytest.fixture
def snapshots(db) -> SnapshotEngine:
    return SnapshotEngine(db)


@pytest.fixture
def setups(db) -> ReusableSetupManager:
    return ReusableSetupManager(db)


@pytest.fixture
def make_config(registry):
    """Create a config on the test listing from ConfigCreate keyword arguments."""

    def _make(listing_id: str = LISTING_ID, **fields):
        fields.setdefault("personalization_type", "text")
        return registry.create_config(listing_id, ConfigCreate(**fields))

    return _make
