"""Import orchestrator driving document batches into a collection."""

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Optional

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_none

from schemaflow.common.logging_config import (
    PerformanceTracker,
    get_structured_logger,
    clear_session_id,
    get_session_id,
    set_session_id,
)
from schemaflow.common.metrics import (
    batches_processed_total,
    documents_imported_total,
    import_retries_total,
    insert_duration_seconds,
    schema_evolutions_skipped_total,
    schema_updates_total,
)
from schemaflow.config.settings import Settings
from schemaflow.inference.accumulator import SchemaAccumulator
from schemaflow.inference.classifier import DetectorConfig
from schemaflow.inference.merger import ConflictPolicy, coerce_to_string
from schemaflow.ingest.cleanup import cleanup_null_values
from schemaflow.ingest.reader import RawDocument, batched, decode_documents
from schemaflow.storage.adapter import CollectionStore, Document, ErrorKind, StorageError

logger = logging.getLogger(__name__)

CONFLICT_POLICIES = ("fail", "string")

DEFAULT_RETRY_ON = frozenset({ErrorKind.NOT_FOUND, ErrorKind.INVALID_ARGUMENT})


class OrchestrationError(Exception):
    pass


class CollectionExistsError(OrchestrationError):
    """The collection exists and appending was not requested."""
    pass


class CollectionNotFoundError(OrchestrationError):
    """The collection does not exist and creating it was disabled."""
    pass


class BatchImportError(OrchestrationError):
    """A batch was rejected by storage, after the retry if one applied."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.OTHER):
        super().__init__(message)
        self.kind = kind


@dataclass
class ImportOptions:
    """Per-session import behaviour."""
    batch_size: int = 100
    inference_depth: int = 0
    primary_key: List[str] = field(default_factory=list)
    auto_generate: List[str] = field(default_factory=list)
    update_schema: bool = False
    append: bool = False
    no_create: bool = False
    auto_evolve_on_failure: bool = True
    cleanup_null_values: bool = True
    retry_on: FrozenSet[ErrorKind] = DEFAULT_RETRY_ON
    conflict_policy: str = "fail"

    def __post_init__(self):
        if self.conflict_policy not in CONFLICT_POLICIES:
            raise ValueError(
                f"Unknown conflict policy {self.conflict_policy!r}, "
                f"expected one of {', '.join(CONFLICT_POLICIES)}")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ImportOptions":
        values = dict(
            batch_size=settings.batch_size,
            inference_depth=settings.inference_depth,
            primary_key=list(settings.primary_key),
            auto_generate=list(settings.auto_generate),
            update_schema=settings.update_schema,
            append=settings.append,
            no_create=settings.no_create,
            auto_evolve_on_failure=settings.auto_evolve_on_failure,
            cleanup_null_values=settings.cleanup_null_values,
            conflict_policy=settings.conflict_policy,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def on_conflict(self) -> Optional[ConflictPolicy]:
        return coerce_to_string if self.conflict_policy == "string" else None


@dataclass
class BatchResult:
    """Outcome of one imported batch."""
    inserted: int
    schema_changed: bool
    retried: bool
    documents: List[Document] = field(default_factory=list, repr=False)


@dataclass
class ImportSummary:
    """Totals of an import session."""
    collection: str
    batches: int = 0
    documents: int = 0
    schema_updates: int = 0
    retries: int = 0

    def add(self, result: BatchResult) -> None:
        self.batches += 1
        self.documents += result.inserted
        self.schema_updates += int(result.schema_changed)
        self.retries += int(result.retried)

    def to_dict(self):
        return {
            "collection": self.collection,
            "batches": self.batches,
            "documents": self.documents,
            "schema_updates": self.schema_updates,
            "retries": self.retries,
        }


@dataclass
class _PendingBatch:
    documents: List[Document]
    schema_changed: bool = False
    retried: bool = False


class ImportSession:
    """
    Imports a stream of document batches into one collection.

    Owns the collection's SchemaAccumulator; batches must be imported in
    order from a single thread. Run one session per collection to import
    several collections concurrently.
    """

    def __init__(
        self,
        store: CollectionStore,
        collection: str,
        options: Optional[ImportOptions] = None,
        detectors: Optional[DetectorConfig] = None,
    ):
        """
        Initialize import session.

        Args:
            store: Collection store receiving schemas and documents
            collection: Target collection name
            options: Import behaviour, defaults to ImportOptions()
            detectors: Enabled string/number detectors
        """
        self.store = store
        self.collection = collection
        self.options = options or ImportOptions()
        self.detectors = detectors
        self.accumulator = SchemaAccumulator(collection, detectors)
        self.found = False
        self.opened = False
        self.log = get_structured_logger(__name__)

    def open(self) -> None:
        """
        Look up the target collection and seed the schema from it.

        Raises:
            CollectionExistsError: If it exists and append is off
            CollectionNotFoundError: If it is missing and no_create is on
            StorageError: If the lookup fails otherwise
        """
        try:
            raw_schema = self.store.describe_collection(self.collection)
        except StorageError as e:
            if not e.is_not_found:
                raise
            if self.options.no_create:
                raise CollectionNotFoundError(
                    f"Collection '{self.collection}' does not exist "
                    f"and creating it is disabled") from e
            self.found = False
        else:
            if not self.options.append:
                raise CollectionExistsError(
                    f"Collection '{self.collection}' exists. "
                    f"Use append to add documents to an existing collection")
            self.accumulator = SchemaAccumulator.from_wire(
                self.collection, raw_schema, self.detectors)
            self.found = True

        self.opened = True
        self.log.info(
            "Import session opened",
            collection=self.collection,
            existing=self.found,
            fields=len(self.accumulator.schema.fields),
        )

    def import_batch(self, raw_documents: Iterable[RawDocument]) -> BatchResult:
        """
        Import one batch.

        Evolves the schema first when update_schema is on or the collection
        is new, inserts, and on a retryable storage failure evolves and/or
        strips NULL values and retries exactly once.

        Raises:
            BatchImportError: If storage rejects the batch for good
            SchemaConflictError: If documents conflict and policy is 'fail'
            DocumentDecodeError: If a document is not a JSON object
        """
        if not self.opened:
            self.open()

        batch = _PendingBatch(decode_documents(raw_documents))
        if not batch.documents:
            return BatchResult(inserted=0, schema_changed=False, retried=False)

        retrying = Retrying(
            stop=stop_after_attempt(2),
            wait=wait_none(),
            retry=retry_if_exception(self._is_retryable),
            before_sleep=lambda state: self._prepare_retry(batch, state.outcome.exception()),
            reraise=True,
        )

        try:
            if self.options.update_schema or not self.found:
                batch.schema_changed = self._evolve(batch.documents)
            stored = retrying(self._insert, batch)
        except StorageError as e:
            batches_processed_total.labels(collection=self.collection, status="failure").inc()
            self.log.error(
                "Batch import failed",
                collection=self.collection,
                documents=len(batch.documents),
                retried=batch.retried,
                error=str(e),
                error_kind=e.kind.value,
            )
            stage = "after schema update" if batch.retried else "initial"
            raise BatchImportError(
                f"Import into '{self.collection}' failed ({stage}): {e}", e.kind) from e

        status = "retried" if batch.retried else "success"
        batches_processed_total.labels(collection=self.collection, status=status).inc()
        documents_imported_total.labels(collection=self.collection).inc(len(stored))

        return BatchResult(
            inserted=len(stored),
            schema_changed=batch.schema_changed,
            retried=batch.retried,
            documents=stored,
        )

    def run(self, batches: Iterable[Iterable[RawDocument]]) -> ImportSummary:
        """
        Import batches strictly in order.

        Tags log records with a fresh session id unless the caller already set
        one. An id set here is cleared when the run ends.
        """
        owns_session_id = get_session_id() is None
        if owns_session_id:
            set_session_id()
        try:
            if not self.opened:
                self.open()

            summary = ImportSummary(collection=self.collection)
            for raw_documents in batches:
                summary.add(self.import_batch(raw_documents))

            self.log.info("Import finished", **summary.to_dict())
            return summary
        finally:
            if owns_session_id:
                clear_session_id()

    def import_documents(self, documents: Iterable[RawDocument]) -> ImportSummary:
        """Batch a document stream by options.batch_size and import it."""
        return self.run(batched(documents, self.options.batch_size))

    def _insert(self, batch: _PendingBatch) -> List[Document]:
        with insert_duration_seconds.labels(collection=self.collection).time():
            return self.store.insert(self.collection, batch.documents)

    def _evolve(self, documents: List[Document], inference_depth: Optional[int] = None) -> bool:
        """Merge documents into the schema and push it when it changed."""
        if inference_depth is None:
            inference_depth = self.options.inference_depth

        with PerformanceTracker("evolve_schema", logger, collection=self.collection):
            result = self.accumulator.evolve(
                documents,
                primary_key=self.options.primary_key,
                auto_generate=self.options.auto_generate,
                inference_depth=inference_depth,
                on_conflict=self.options.on_conflict,
            )

        if not result.changed:
            schema_evolutions_skipped_total.labels(collection=self.collection).inc()
            return False

        try:
            self.store.create_or_update_collection(self.collection, result.schema)
        except StorageError:
            # Push again on the next evolve
            self.accumulator.invalidate_snapshot()
            raise

        schema_updates_total.labels(collection=self.collection).inc()
        self.log.info(
            "Collection schema updated",
            collection=self.collection,
            fields=len(self.accumulator.schema.fields),
        )
        return True

    def _is_retryable(self, error: BaseException) -> bool:
        if not isinstance(error, StorageError) or error.kind not in self.options.retry_on:
            return False
        if error.kind == ErrorKind.NOT_FOUND and self.options.no_create:
            return False
        return self.options.auto_evolve_on_failure or self.options.cleanup_null_values

    def _prepare_retry(self, batch: _PendingBatch, error: BaseException) -> None:
        batch.retried = True
        kind = error.kind if isinstance(error, StorageError) else ErrorKind.OTHER
        import_retries_total.labels(collection=self.collection, reason=kind.value).inc()
        self.log.warning(
            "Batch rejected, retrying once",
            collection=self.collection,
            error=str(error),
            error_kind=kind.value,
        )

        if self.options.auto_evolve_on_failure:
            if kind == ErrorKind.NOT_FOUND:
                # Collection vanished, push the full schema again
                self.accumulator.invalidate_snapshot()
            # The rejected documents may lie past the inference depth
            changed = self._evolve(batch.documents, inference_depth=0)
            batch.schema_changed = changed or batch.schema_changed

        if self.options.cleanup_null_values:
            batch.documents = [cleanup_null_values(d) for d in batch.documents]
