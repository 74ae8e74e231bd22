"""
Tests for execution/casefile_rag/metrics.py

Covers: SystemMetrics (aggregation properties), MetricsCollector singleton,
        SearchTracker context manager, ingestion / analysis recording and
        the get_metrics_collector factory.
"""

import pytest


# ---------------------------------------------------------------------------
# SystemMetrics aggregation properties
# ---------------------------------------------------------------------------

class TestSystemMetrics:
    """Tests for SystemMetrics computed properties."""

    def test_avg_latency_zero_searches(self):
        from execution.casefile_rag.metrics import SystemMetrics
        assert SystemMetrics().avg_latency_ms == 0

    def test_avg_latency(self):
        from execution.casefile_rag.metrics import SystemMetrics
        m = SystemMetrics(total_searches=4, total_latency_ms=400.0)
        assert m.avg_latency_ms == 100.0

    def test_percentiles(self):
        from execution.casefile_rag.metrics import SystemMetrics
        m = SystemMetrics(latencies=list(range(1, 101)))
        assert m.p95_latency_ms >= 95
        assert m.p99_latency_ms >= 99

    def test_percentile_empty(self):
        from execution.casefile_rag.metrics import SystemMetrics
        assert SystemMetrics().p95_latency_ms == 0

    def test_error_rate(self):
        from execution.casefile_rag.metrics import SystemMetrics
        m = SystemMetrics(total_searches=10, failed_searches=2)
        assert m.error_rate == pytest.approx(0.2)

    def test_embedding_coverage(self):
        from execution.casefile_rag.metrics import SystemMetrics
        assert SystemMetrics().embedding_coverage == 0
        m = SystemMetrics(chunks_created=8, chunks_embedded=6)
        assert m.embedding_coverage == pytest.approx(0.75)

    def test_to_dict_sections(self):
        from execution.casefile_rag.metrics import SystemMetrics
        d = SystemMetrics().to_dict()
        assert set(d) == {"searches", "latency_ms", "ingestion", "analysis", "errors"}
        assert d["latency_ms"]["min"] == 0


# ---------------------------------------------------------------------------
# MetricsCollector
# ---------------------------------------------------------------------------

class TestMetricsCollector:

    def test_singleton(self):
        from execution.casefile_rag.metrics import MetricsCollector, get_metrics_collector
        assert MetricsCollector() is get_metrics_collector()

    def test_track_successful_search(self):
        from execution.casefile_rag.metrics import get_metrics_collector

        collector = get_metrics_collector()
        with collector.track_search("client-1", "wet floor") as tracker:
            tracker.set_results(3)

        m = collector.get_metrics()
        assert m.total_searches == 1
        assert m.successful_searches == 1
        assert m.searches_by_client["client-1"] == 1
        assert collector.get_recent_searches()[0].results_count == 3

    def test_track_failed_search_propagates(self):
        from execution.casefile_rag.metrics import get_metrics_collector

        collector = get_metrics_collector()
        with pytest.raises(RuntimeError):
            with collector.track_search(None, "q"):
                raise RuntimeError("db down")

        m = collector.get_metrics()
        assert m.failed_searches == 1
        assert m.errors_by_type["RuntimeError"] == 1
        assert m.searches_by_client["anonymous"] == 1

    def test_keyword_fallback_counted(self):
        from execution.casefile_rag.metrics import get_metrics_collector

        collector = get_metrics_collector()
        with collector.track_search("c", "q") as tracker:
            tracker.set_results(1, keyword_fallback=True)
        assert collector.get_metrics().keyword_fallbacks == 1

    def test_record_ingestion(self):
        from execution.casefile_rag.metrics import get_metrics_collector

        collector = get_metrics_collector()
        collector.record_ingestion("client-1", "doc-1", chunks_count=5, embedded_count=4, duration_ms=120.0)
        collector.record_duplicate()

        m = collector.get_metrics()
        assert m.documents_ingested == 1
        assert m.chunks_created == 5
        assert m.embedding_failures == 1
        assert m.duplicates_skipped == 1
        assert m.documents_by_client["client-1"] == 1

    def test_record_analysis(self):
        from execution.casefile_rag.metrics import get_metrics_collector

        collector = get_metrics_collector()
        collector.record_analysis(True)
        collector.record_analysis(False, error_type="ValueError")

        m = collector.get_metrics()
        assert m.analyses_completed == 1
        assert m.analysis_failures == 1
        assert m.errors_by_type["ValueError"] == 1

    def test_reset(self):
        from execution.casefile_rag.metrics import get_metrics_collector

        collector = get_metrics_collector()
        collector.record_duplicate()
        collector.reset()
        assert collector.get_metrics().duplicates_skipped == 0
