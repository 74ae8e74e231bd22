"""
Metrics Collection for Case File RAG

Tracks search latency, ingestion volume, embedding coverage and analysis
failures for monitoring.
"""

import time
import logging
from dataclasses import dataclass, field
from collections import defaultdict
from typing import Optional
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


@dataclass
class SearchMetrics:
    """Metrics for a single search."""
    search_id: str
    client_id: str
    query_text: str
    start_time: float
    end_time: float = 0
    latency_ms: float = 0
    results_count: int = 0
    keyword_fallback: bool = False
    error: Optional[str] = None


@dataclass
class SystemMetrics:
    """Aggregated system metrics."""
    total_searches: int = 0
    successful_searches: int = 0
    failed_searches: int = 0
    keyword_fallbacks: int = 0

    # Latency tracking (in ms)
    total_latency_ms: float = 0
    min_latency_ms: float = float('inf')
    max_latency_ms: float = 0
    latencies: list = field(default_factory=list)

    # Ingestion
    documents_ingested: int = 0
    duplicates_skipped: int = 0
    chunks_created: int = 0
    chunks_embedded: int = 0
    embedding_failures: int = 0
    total_ingestion_time_ms: float = 0

    # Analysis
    analyses_completed: int = 0
    analysis_failures: int = 0

    errors_by_type: dict = field(default_factory=lambda: defaultdict(int))
    searches_by_client: dict = field(default_factory=lambda: defaultdict(int))
    documents_by_client: dict = field(default_factory=lambda: defaultdict(int))

    @property
    def avg_latency_ms(self) -> float:
        if self.total_searches == 0:
            return 0
        return self.total_latency_ms / self.total_searches

    def _percentile(self, fraction: float) -> float:
        if not self.latencies:
            return 0
        sorted_latencies = sorted(self.latencies)
        index = int(len(sorted_latencies) * fraction)
        return sorted_latencies[min(index, len(sorted_latencies) - 1)]

    @property
    def p95_latency_ms(self) -> float:
        return self._percentile(0.95)

    @property
    def p99_latency_ms(self) -> float:
        return self._percentile(0.99)

    @property
    def error_rate(self) -> float:
        if self.total_searches == 0:
            return 0
        return self.failed_searches / self.total_searches

    @property
    def embedding_coverage(self) -> float:
        """Share of stored chunks that have an embedding."""
        if self.chunks_created == 0:
            return 0
        return self.chunks_embedded / self.chunks_created

    def to_dict(self) -> dict:
        """Convert to dictionary for display."""
        return {
            "searches": {
                "total": self.total_searches,
                "successful": self.successful_searches,
                "failed": self.failed_searches,
                "keyword_fallbacks": self.keyword_fallbacks,
                "error_rate": f"{self.error_rate:.2%}",
            },
            "latency_ms": {
                "avg": round(self.avg_latency_ms, 2),
                "min": round(self.min_latency_ms, 2) if self.min_latency_ms != float('inf') else 0,
                "max": round(self.max_latency_ms, 2),
                "p95": round(self.p95_latency_ms, 2),
                "p99": round(self.p99_latency_ms, 2),
            },
            "ingestion": {
                "documents": self.documents_ingested,
                "duplicates_skipped": self.duplicates_skipped,
                "chunks": self.chunks_created,
                "embedded": self.chunks_embedded,
                "embedding_failures": self.embedding_failures,
                "embedding_coverage": f"{self.embedding_coverage:.2%}",
                "avg_time_ms": round(
                    self.total_ingestion_time_ms / max(self.documents_ingested, 1), 2
                ),
            },
            "analysis": {
                "completed": self.analyses_completed,
                "failed": self.analysis_failures,
            },
            "errors": dict(self.errors_by_type),
        }


class MetricsCollector:
    """
    Collects and aggregates system metrics.

    Usage:
        collector = MetricsCollector()

        with collector.track_search(client_id, query_text) as tracker:
            results = retriever.retrieve(query_text)
            tracker.set_results(len(results))

        metrics = collector.get_metrics()
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern for global metrics collection."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.metrics = SystemMetrics()
        self._search_history: list[SearchMetrics] = []
        self._max_history = 1000
        self._start_time = datetime.now()
        self._initialized = True

    def reset(self):
        """Reset all metrics (for testing)."""
        self.metrics = SystemMetrics()
        self._search_history = []
        self._start_time = datetime.now()

    class SearchTracker:
        """Context manager for tracking search metrics."""

        def __init__(self, collector: 'MetricsCollector', client_id: str, query_text: str):
            self.collector = collector
            self.search = SearchMetrics(
                search_id=f"s_{int(time.time() * 1000)}",
                client_id=client_id or "anonymous",
                query_text=query_text[:200],
                start_time=time.time(),
            )

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            self.search.end_time = time.time()
            self.search.latency_ms = (self.search.end_time - self.search.start_time) * 1000

            if exc_type:
                self.search.error = str(exc_val)
                self.collector._record_error(exc_type.__name__)

            self.collector._record_search(self.search)
            return False

        def set_results(self, count: int, keyword_fallback: bool = False):
            """Set search result metadata."""
            self.search.results_count = count
            self.search.keyword_fallback = keyword_fallback

    def track_search(self, client_id: Optional[str], query_text: str) -> SearchTracker:
        """Create a search tracker context manager."""
        return self.SearchTracker(self, client_id, query_text)

    def _record_search(self, search: SearchMetrics):
        self.metrics.total_searches += 1

        if search.error:
            self.metrics.failed_searches += 1
        else:
            self.metrics.successful_searches += 1

        if search.keyword_fallback:
            self.metrics.keyword_fallbacks += 1

        self.metrics.total_latency_ms += search.latency_ms
        self.metrics.min_latency_ms = min(self.metrics.min_latency_ms, search.latency_ms)
        self.metrics.max_latency_ms = max(self.metrics.max_latency_ms, search.latency_ms)
        self.metrics.latencies.append(search.latency_ms)

        if len(self.metrics.latencies) > self._max_history:
            self.metrics.latencies = self.metrics.latencies[-self._max_history:]

        self.metrics.searches_by_client[search.client_id] += 1

        self._search_history.append(search)
        if len(self._search_history) > self._max_history:
            self._search_history = self._search_history[-self._max_history:]

    def _record_error(self, error_type: str):
        self.metrics.errors_by_type[error_type] += 1

    def record_ingestion(
        self,
        client_id: str,
        document_id: str,
        chunks_count: int,
        embedded_count: int,
        duration_ms: float
    ):
        """Record document ingestion metrics."""
        self.metrics.documents_ingested += 1
        self.metrics.chunks_created += chunks_count
        self.metrics.chunks_embedded += embedded_count
        self.metrics.embedding_failures += chunks_count - embedded_count
        self.metrics.total_ingestion_time_ms += duration_ms
        self.metrics.documents_by_client[client_id] += 1

    def record_duplicate(self):
        """Record an upload that matched an existing document."""
        self.metrics.duplicates_skipped += 1

    def record_analysis(self, success: bool, error_type: Optional[str] = None):
        """Record one per-document analysis outcome."""
        if success:
            self.metrics.analyses_completed += 1
        else:
            self.metrics.analysis_failures += 1
            if error_type:
                self._record_error(error_type)

    def get_metrics(self) -> SystemMetrics:
        return self.metrics

    def get_metrics_dict(self) -> dict:
        return self.metrics.to_dict()

    def get_recent_searches(self, limit: int = 10) -> list[SearchMetrics]:
        return self._search_history[-limit:]

    def get_uptime(self) -> timedelta:
        return datetime.now() - self._start_time


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return MetricsCollector()
