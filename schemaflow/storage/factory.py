"""
Storage factory for creating collection store instances.

Selects the store backend named in the settings.
"""

from schemaflow.config.settings import Settings
from schemaflow.storage.adapter import CollectionStore


def create_collection_store(settings: Settings) -> CollectionStore:
    """
    Build a store for the configured backend.

    Backends: 'fs://' (default), 'sql' and 'http'.
    """
    backend = settings.storage_backend.lower()

    if backend == "sql":
        from schemaflow.catalog.database import get_engine
        from schemaflow.storage.sql import SqlCollectionStore
        return SqlCollectionStore(get_engine(settings.database_url))

    if backend in ("http", "https"):
        from schemaflow.storage.remote import HttpCollectionStore
        return HttpCollectionStore(settings.remote_url, timeout=settings.remote_timeout)

    if backend.startswith("fs"):
        from schemaflow.storage.filesystem import FilesystemCollectionStore
        return FilesystemCollectionStore(base_path=settings.storage_path)

    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")

