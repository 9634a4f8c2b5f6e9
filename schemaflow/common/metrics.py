"""
Prometheus metrics for import monitoring.

Provides counters and histograms for tracking:
- Documents and batches imported per collection
- Schema pushes to the storage layer
- Retry-after-evolve attempts
- Schema evolution and insert latency
"""

import time
from functools import wraps
from typing import Callable

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CollectorRegistry,
)

REGISTRY = CollectorRegistry()

# ========== Counters ==========

documents_imported_total = Counter(
    "schemaflow_documents_imported_total",
    "Total number of documents accepted by the storage layer",
    ["collection"],
    registry=REGISTRY,
)

batches_processed_total = Counter(
    "schemaflow_batches_processed_total",
    "Total number of document batches processed",
    ["collection", "status"],  # success/retried/failure
    registry=REGISTRY,
)

schema_updates_total = Counter(
    "schemaflow_schema_updates_total",
    "Total number of schema create/update calls issued",
    ["collection"],
    registry=REGISTRY,
)

schema_evolutions_skipped_total = Counter(
    "schemaflow_schema_evolutions_skipped_total",
    "Schema evolutions that produced no change and skipped the remote call",
    ["collection"],
    registry=REGISTRY,
)

import_retries_total = Counter(
    "schemaflow_import_retries_total",
    "Total number of batch insert retries",
    ["collection", "reason"],  # not_found/invalid_argument
    registry=REGISTRY,
)

# ========== Histograms ==========

evolve_duration_seconds = Histogram(
    "schemaflow_evolve_duration_seconds",
    "Time to infer and merge the schema of one batch",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
    registry=REGISTRY,
)

insert_duration_seconds = Histogram(
    "schemaflow_insert_duration_seconds",
    "Time to submit one batch to storage",
    ["collection"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
    registry=REGISTRY,
)


# ========== Metric Decorators ==========

def track_evolve_time(func: Callable):
    """Decorator recording schema evolution latency."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            evolve_duration_seconds.observe(time.perf_counter() - start_time)

    return wrapper


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)

