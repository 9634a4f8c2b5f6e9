"""
Filesystem collection store.

Stores collections in a local directory structure:
- collections/{name}/schema.json - wire schema
- collections/{name}/documents.jsonl - one document per line
"""

import json
import os
from pathlib import Path
from typing import Dict, List

from schemaflow.storage.adapter import CollectionStore, Document, ErrorKind, StorageError
from schemaflow.storage.validation import (
    check_collection_name,
    initial_sequences,
    parse_schema,
    prepare_documents,
)


class FilesystemCollectionStore(CollectionStore):
    """
    Filesystem-based collection store.

    Keeps each collection in its own directory under the base path.
    """

    def __init__(self, base_path: str = "./storage"):
        """
        Initialize filesystem store.

        Args:
            base_path: Root directory for all collections
        """
        self.base_path = Path(base_path).resolve()
        self.collections_path = self.base_path / "collections"
        self.collections_path.mkdir(parents=True, exist_ok=True)
        self._sequences: Dict[str, Dict[str, int]] = {}

    def _collection_dir(self, name: str) -> Path:
        return self.collections_path / check_collection_name(name)

    def _schema_path(self, name: str) -> Path:
        path = self._collection_dir(name) / "schema.json"
        if not path.exists():
            raise StorageError(f"Collection not found: {name}", ErrorKind.NOT_FOUND)
        return path

    def describe_collection(self, name: str) -> bytes:
        return self._schema_path(name).read_bytes()

    def create_or_update_collection(self, name: str, schema: bytes) -> None:
        parse_schema(name, schema)

        directory = self._collection_dir(name)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            # Write then rename so readers never see a partial schema
            tmp_path = directory / "schema.json.tmp"
            tmp_path.write_bytes(schema)
            os.replace(tmp_path, directory / "schema.json")
        except OSError as e:
            raise StorageError(f"Failed to write schema of '{name}': {e}") from e

        # Autogenerated fields may have changed
        self._sequences.pop(name, None)

    def insert(self, name: str, documents: List[Document]) -> List[Document]:
        schema = parse_schema(name, self.describe_collection(name))

        if name not in self._sequences:
            self._sequences[name] = initial_sequences(schema, self.read_documents(name))
        sequences = dict(self._sequences[name])

        prepared = prepare_documents(schema, documents, sequences)

        try:
            with open(self._collection_dir(name) / "documents.jsonl", "a", encoding="utf-8") as f:
                for document in prepared:
                    f.write(json.dumps(document, ensure_ascii=False) + "\n")
        except OSError as e:
            raise StorageError(f"Failed to write documents of '{name}': {e}") from e

        self._sequences[name] = sequences
        return prepared

    def read_documents(self, name: str) -> List[Document]:
        self._schema_path(name)
        path = self._collection_dir(name) / "documents.jsonl"
        if not path.exists():
            return []

        with open(path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
