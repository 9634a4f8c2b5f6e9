# Test configuration

import pytest
import os
import sys

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


@pytest.fixture
def test_settings(tmp_path):
    """Override settings for testing"""
    from schemaflow.config.settings import Settings
    return Settings(
        storage_backend="fs://",
        storage_path=str(tmp_path / "storage"),
        database_url="sqlite://",
        log_json=False,
    )


@pytest.fixture
def fs_store(tmp_path):
    """Filesystem collection store in a temporary directory."""
    from schemaflow.storage.filesystem import FilesystemCollectionStore
    return FilesystemCollectionStore(str(tmp_path / "storage"))


@pytest.fixture
def sqlite_engine():
    """Private in-memory SQLite engine."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sqlite_engine):
    """SQL collection store on an in-memory database."""
    from schemaflow.storage.sql import SqlCollectionStore
    return SqlCollectionStore(sqlite_engine)
