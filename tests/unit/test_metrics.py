"""
Unit tests for Prometheus metrics.
"""

import pytest

from schemaflow.common.metrics import (
    REGISTRY,
    batches_processed_total,
    documents_imported_total,
    evolve_duration_seconds,
    get_metrics,
    import_retries_total,
    schema_updates_total,
    track_evolve_time,
)


def sample(name, **labels):
    """Current value of a sample in the schemaflow registry."""
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsCounters:
    """Tests for Prometheus counter metrics."""

    def test_documents_imported_increments(self):
        """Documents counter should increment."""
        initial = documents_imported_total.labels(collection="metrics_test")._value.get()

        documents_imported_total.labels(collection="metrics_test").inc(3)

        final = documents_imported_total.labels(collection="metrics_test")._value.get()
        assert final == initial + 3

    def test_batches_processed_by_status(self):
        """Batch counter is labelled by outcome."""
        initial = sample(
            "schemaflow_batches_processed_total", collection="metrics_test", status="retried")

        batches_processed_total.labels(collection="metrics_test", status="retried").inc()

        assert sample(
            "schemaflow_batches_processed_total",
            collection="metrics_test", status="retried") == initial + 1

    def test_labelled_counters(self):
        """Schema update and retry counters carry their labels."""
        schema_updates_total.labels(collection="metrics_test").inc()
        import_retries_total.labels(collection="metrics_test", reason="not_found").inc()

        assert sample("schemaflow_schema_updates_total", collection="metrics_test") >= 1
        assert sample(
            "schemaflow_import_retries_total",
            collection="metrics_test", reason="not_found") >= 1


class TestMetricDecorators:
    """Tests for metric decorators."""

    def test_track_evolve_time_observes(self):
        """Decorator records one observation per call."""
        initial = sample("schemaflow_evolve_duration_seconds_count")

        @track_evolve_time
        def evolve():
            return "done"

        assert evolve() == "done"
        assert sample("schemaflow_evolve_duration_seconds_count") == initial + 1

    def test_track_evolve_time_on_error(self):
        """Failed calls are still timed."""
        initial = sample("schemaflow_evolve_duration_seconds_count")

        @track_evolve_time
        def evolve():
            raise ValueError("conflict")

        with pytest.raises(ValueError):
            evolve()

        assert sample("schemaflow_evolve_duration_seconds_count") == initial + 1

    def test_decorator_preserves_name(self):
        """Decorator keeps the wrapped function name."""
        @track_evolve_time
        def evolve_batch():
            pass

        assert evolve_batch.__name__ == "evolve_batch"


class TestMetricsExport:
    """Tests for metrics export."""

    def test_get_metrics(self):
        """Exposition output contains registered metrics."""
        evolve_duration_seconds.observe(0.01)

        output = get_metrics()

        assert isinstance(output, bytes)
        assert b"schemaflow_evolve_duration_seconds" in output
