"""
Collection store abstraction for the import pipeline.

Provides filesystem, SQL and remote HTTP collection stores.
"""

from schemaflow.storage.adapter import CollectionStore, Document, ErrorKind, StorageError
from schemaflow.storage.filesystem import FilesystemCollectionStore
from schemaflow.storage.factory import create_collection_store

__all__ = [
    "CollectionStore",
    "Document",
    "ErrorKind",
    "StorageError",
    "FilesystemCollectionStore",
    "create_collection_store",
]
