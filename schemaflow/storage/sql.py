"""
SQL collection store.

Keeps collection schemas and documents in two tables through SQLAlchemy,
so any database SQLAlchemy supports (SQLite, PostgreSQL) can back an
import.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from schemaflow.catalog.database import get_engine, get_session_factory, init_db, session_scope
from schemaflow.catalog.models import CollectionDef, StoredDocument
from schemaflow.storage.adapter import CollectionStore, Document, ErrorKind, StorageError
from schemaflow.storage.validation import (
    check_collection_name,
    initial_sequences,
    parse_schema,
    prepare_documents,
)

logger = logging.getLogger(__name__)


class SqlCollectionStore(CollectionStore):
    """Collection store backed by a relational database."""

    def __init__(self, engine: Optional[Engine] = None):
        """
        Initialize SQL store.

        Args:
            engine: SQLAlchemy engine, defaults to the configured database
        """
        self.engine = engine or get_engine()
        init_db(self.engine)
        self._session_factory = get_session_factory(self.engine)
        self._sequences: Dict[str, Dict[str, int]] = {}

    def _get_collection(self, db, name: str) -> CollectionDef:
        collection = db.get(CollectionDef, check_collection_name(name))
        if collection is None:
            raise StorageError(f"Collection not found: {name}", ErrorKind.NOT_FOUND)
        return collection

    def describe_collection(self, name: str) -> bytes:
        try:
            with session_scope(self._session_factory) as db:
                return self._get_collection(db, name).schema_json.encode("utf-8")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to describe '{name}': {e}") from e

    def create_or_update_collection(self, name: str, schema: bytes) -> None:
        check_collection_name(name)
        parse_schema(name, schema)

        try:
            with session_scope(self._session_factory) as db:
                collection = db.get(CollectionDef, name)
                if collection is None:
                    db.add(CollectionDef(name=name, schema_json=schema.decode("utf-8")))
                    logger.info(f"Created collection '{name}'")
                else:
                    collection.schema_json = schema.decode("utf-8")
                    logger.info(f"Updated schema of collection '{name}'")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store schema of '{name}': {e}") from e

        self._sequences.pop(name, None)

    def insert(self, name: str, documents: List[Document]) -> List[Document]:
        try:
            with session_scope(self._session_factory) as db:
                collection = self._get_collection(db, name)
                schema = parse_schema(name, collection.schema_json)

                if name not in self._sequences:
                    self._sequences[name] = initial_sequences(
                        schema, self._stored_bodies(db, name))
                sequences = dict(self._sequences[name])

                prepared = prepare_documents(schema, documents, sequences)
                db.add_all(
                    StoredDocument(collection_name=name, body=document)
                    for document in prepared
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert into '{name}': {e}") from e

        self._sequences[name] = sequences
        return prepared

    def read_documents(self, name: str) -> List[Document]:
        try:
            with session_scope(self._session_factory) as db:
                self._get_collection(db, name)
                return self._stored_bodies(db, name)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read '{name}': {e}") from e

    @staticmethod
    def _stored_bodies(db, name: str) -> List[Document]:
        rows = db.execute(
            select(StoredDocument.body)
            .where(StoredDocument.collection_name == name)
            .order_by(StoredDocument.id)
        )
        return [row[0] for row in rows]

    def close(self) -> None:
        self.engine.dispose()
