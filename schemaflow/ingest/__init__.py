"""
Ingest module for JSON document imports.

Provides input reading, document cleanup and the import orchestrator
that evolves collection schemas while documents are inserted.
"""

from schemaflow.ingest.cleanup import cleanup_null_values
from schemaflow.ingest.reader import (
    DocumentDecodeError,
    batched,
    decode_documents,
    iter_documents,
    iter_input,
)
from schemaflow.ingest.orchestrator import (
    BatchImportError,
    BatchResult,
    CollectionExistsError,
    CollectionNotFoundError,
    ImportOptions,
    ImportSession,
    ImportSummary,
    OrchestrationError,
)

__all__ = [  # ruff: noqa: RUF022
    # Input
    "DocumentDecodeError",
    "batched",
    "decode_documents",
    "iter_documents",
    "iter_input",
    "cleanup_null_values",
    # Orchestration
    "BatchImportError",
    "BatchResult",
    "CollectionExistsError",
    "CollectionNotFoundError",
    "ImportOptions",
    "ImportSession",
    "ImportSummary",
    "OrchestrationError",
]
