"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import Generator

import pytest
from sqlalchemy import Table

from cachestack.db.manager import DatabaseManager
from cachestack.db.models import key_value_table
from cachestack.factory import reset_cache_service


@pytest.fixture
def temp_db_path() -> Generator[str, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup, including WAL side files
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        try:
            os.unlink(path)
        except OSError:
            pass


@pytest.fixture
def db_manager(temp_db_path: str) -> Generator[DatabaseManager, None, None]:
    """Create a DatabaseManager with a temporary database."""
    manager = DatabaseManager(database_url=f"sqlite:///{temp_db_path}")
    yield manager
    manager.close()


@pytest.fixture
def kv_table(db_manager: DatabaseManager) -> Table:
    """Register the key/value table on the manager and create it."""
    table = key_value_table("key_value", db_manager.metadata)
    db_manager.init_db()
    return table


@pytest.fixture
def two_layer_config() -> dict:
    """Two array layers under the 'mx' namespace."""
    return {
        "namespace": "mx",
        "layers": [
            {"layer_name": "array", "layer_options": {}},
            {"layer_name": "array", "layer_options": {}},
        ],
    }


@pytest.fixture(autouse=True)
def clean_global_service() -> Generator[None, None, None]:
    """Make sure no test leaks the process-wide cache service."""
    reset_cache_service()
    yield
    reset_cache_service()
