"""
Pytest configuration and shared fixtures for link validator tests.

This module provides record stores for both backends, validation settings
and a job registry shared across the test modules.
"""

import mongomock
import pytest

from link_validator.config.pydantic_config import ValidationSettings
from link_validator.core.job_registry import ValidationJobRegistry
from link_validator.core.record_store import MongoRecordStore, SQLiteRecordStore
from tests.fixtures.test_data import ScriptedCoordinator

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Record Stores
# ============================================================================


@pytest.fixture
def mongo_collection():
    """An in-memory MongoDB collection."""
    client = mongomock.MongoClient()
    return client["LinksDb"]["links"]


@pytest.fixture
def mongo_store(mongo_collection):
    """MongoRecordStore over a mongomock collection."""
    return MongoRecordStore(mongo_collection)


@pytest.fixture
def sqlite_store(tmp_path):
    """SQLiteRecordStore in a temporary directory."""
    store = SQLiteRecordStore(tmp_path / "links.db")
    yield store
    store.close()


@pytest.fixture(params=["mongodb", "sqlite"])
def record_store(request, tmp_path):
    """Each record store backend in turn."""
    if request.param == "mongodb":
        yield MongoRecordStore(mongomock.MongoClient()["LinksDb"]["links"])
    else:
        store = SQLiteRecordStore(tmp_path / "links.db")
        yield store
        store.close()


# ============================================================================
# Settings, Registry and Doubles
# ============================================================================


@pytest.fixture
def validation_settings():
    """Small batches and no backoff so tests run fast."""
    return ValidationSettings(
        batch_size=2,
        max_parallelism=2,
        timeout_seconds=1,
        max_retries=2,
        retry_backoff_ms=0,
    )


@pytest.fixture
def job_registry():
    return ValidationJobRegistry()


@pytest.fixture
def scripted_coordinator():
    return ScriptedCoordinator()
