"""
Stats Store Tests

Validates the per-model ring buffer, counters, cumulative cost, and
consistency under concurrent recording.
"""

import threading

import pytest

from model_gateway.metrics import StatsSample, StatsStore
from model_gateway.metrics.reporter import StatsReporter


class TestRingBuffer:
    """Latency window behaviour."""

    def test_window_keeps_most_recent_samples(self):
        """After 25 samples into a capacity-20 buffer, only the last 20 count."""
        store = StatsStore(window_size=20)
        for i in range(1, 26):
            store.record("m", StatsSample(success=True, latency_ms=float(i)))

        snapshot = store.snapshot("m")

        # Samples 6..25 remain
        assert snapshot.sample_count == 20
        assert store.avg_latency("m") == pytest.approx(sum(range(6, 26)) / 20)
        assert snapshot.success_count == 25

    def test_avg_latency_none_without_samples(self):
        assert StatsStore().avg_latency("unseen") is None

    def test_failures_do_not_add_latency_samples(self):
        """Failed attempts count as failures but leave the window untouched."""
        store = StatsStore()
        store.record("m", StatsSample(success=True, latency_ms=100.0))
        store.record("m", StatsSample(success=False, latency_ms=5000.0))

        assert store.avg_latency("m") == 100.0
        assert store.snapshot("m").failure_count == 1

    def test_invalid_window_rejected(self):
        with pytest.raises(ValueError):
            StatsStore(window_size=0)


class TestCounters:
    """Error rate and cost accounting."""

    def test_error_rate(self):
        store = StatsStore()
        store.record("m", StatsSample(success=True, latency_ms=10.0))
        store.record("m", StatsSample(success=False, latency_ms=10.0))
        store.record("m", StatsSample(success=False, latency_ms=10.0))
        store.record("m", StatsSample(success=True, latency_ms=10.0))

        assert store.error_rate("m") == 0.5

    def test_error_rate_zero_for_unseen_model(self):
        assert StatsStore().error_rate("unseen") == 0.0

    def test_cumulative_cost(self):
        store = StatsStore()
        store.record("m", StatsSample(success=True, latency_ms=1.0, cost_delta=0.001))
        store.record("m", StatsSample(success=True, latency_ms=1.0, cost_delta=0.002))

        assert store.cumulative_cost("m") == pytest.approx(0.003)

    def test_snapshot_unseen_model_is_zero(self):
        snapshot = StatsStore().snapshot("unseen")

        assert snapshot.total_requests == 0
        assert snapshot.avg_latency_ms is None
        assert snapshot.cumulative_cost == 0.0

    def test_has_samples_and_reset(self):
        store = StatsStore()
        store.record("m", StatsSample(success=False, latency_ms=1.0))

        assert store.has_samples("m") is True
        assert store.has_samples("other") is False

        store.reset()

        assert store.has_samples("m") is False
        assert store.snapshot_all() == {}

    def test_snapshot_all(self):
        store = StatsStore()
        store.record("a", StatsSample(success=True, latency_ms=1.0))
        store.record("b", StatsSample(success=False, latency_ms=1.0))

        snapshots = store.snapshot_all()

        assert set(snapshots) == {"a", "b"}
        assert snapshots["b"].error_rate == 1.0


class TestConcurrency:
    """Recording from many threads never loses or tears updates."""

    def test_concurrent_records(self):
        store = StatsStore(window_size=20)
        per_thread = 500

        def worker(model_id: str):
            for _ in range(per_thread):
                store.record(model_id, StatsSample(success=True, latency_ms=10.0, cost_delta=0.5))
                store.record(model_id, StatsSample(success=False, latency_ms=10.0))

        threads = [
            threading.Thread(target=worker, args=(f"m{i % 2}",)) for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for model_id in ("m0", "m1"):
            snapshot = store.snapshot(model_id)
            assert snapshot.success_count == 4 * per_thread
            assert snapshot.failure_count == 4 * per_thread
            assert snapshot.sample_count == 20
            assert snapshot.avg_latency_ms == 10.0
            assert snapshot.cumulative_cost == pytest.approx(4 * per_thread * 0.5)


class TestStatsReporter:
    """Conversion of snapshots into the /stats response."""

    def test_report_includes_listed_models_without_samples(self):
        store = StatsStore(window_size=5)
        store.record("a", StatsSample(success=True, latency_ms=100.0, cost_delta=0.01))

        report = StatsReporter(store).generate_report(model_ids=["a", "b"])

        assert list(report.models) == ["a", "b"]
        assert report.window_size == 5
        assert report.total_requests == 1
        assert report.models["a"].avg_latency_ms == 100.0
        assert report.models["b"].avg_latency_ms is None
        assert report.total_cost_usd == pytest.approx(0.01)

    def test_report_keeps_removed_models(self):
        """Stats for models no longer listed still appear after listed ones."""
        store = StatsStore()
        store.record("gone", StatsSample(success=False, latency_ms=1.0))

        report = StatsReporter(store).generate_report(model_ids=["a"])

        assert list(report.models) == ["a", "gone"]
        assert report.models["gone"].error_rate == 1.0
