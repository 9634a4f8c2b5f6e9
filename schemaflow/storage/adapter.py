"""
Abstract base class for collection stores.

Defines the interface the import orchestrator uses to talk to the
storage layer: describe a collection, create or update its schema, and
insert documents.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List

Document = Dict[str, Any]


class ErrorKind(str, Enum):
    """Classes of storage failures the orchestrator branches on."""
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    OTHER = "other"


class StorageError(Exception):
    """Exception raised for storage-related errors."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.OTHER):
        super().__init__(message)
        self.kind = kind

    @property
    def is_not_found(self) -> bool:
        return self.kind == ErrorKind.NOT_FOUND


class CollectionStore(ABC):
    """
    Abstract base class for collection stores.

    All implementations (filesystem, SQL, remote HTTP) raise StorageError
    with an ErrorKind so callers never inspect driver-specific errors.
    """

    @abstractmethod
    def describe_collection(self, name: str) -> bytes:
        """
        Get the wire schema of a collection.

        Args:
            name: Collection name

        Returns:
            Schema bytes as stored

        Raises:
            StorageError: NOT_FOUND if the collection does not exist
        """
        pass

    @abstractmethod
    def create_or_update_collection(self, name: str, schema: bytes) -> None:
        """
        Create a collection or replace its schema.

        Args:
            name: Collection name
            schema: Wire schema bytes

        Raises:
            StorageError: INVALID_ARGUMENT if the schema is malformed
        """
        pass

    @abstractmethod
    def insert(self, name: str, documents: List[Document]) -> List[Document]:
        """
        Insert a batch of documents atomically.

        Args:
            name: Collection name
            documents: Decoded JSON objects

        Returns:
            Documents as stored, autogenerated fields filled in

        Raises:
            StorageError: NOT_FOUND if the collection does not exist,
                INVALID_ARGUMENT if a document does not match the schema
        """
        pass

    @abstractmethod
    def read_documents(self, name: str) -> List[Document]:
        """
        Read back all documents of a collection in insertion order.

        Raises:
            StorageError: NOT_FOUND if the collection does not exist
        """
        pass

    def close(self) -> None:
        """Release held resources."""
        pass
