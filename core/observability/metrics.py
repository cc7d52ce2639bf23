"""
Metrics Collection for Customer Reconciliation

Collects and exposes metrics for:
- Batch analysis (batches, groups, rows)
- Mapping cache (hits, misses, lookup failures)
- Mapping writes by origin
- Processing times (average, p95)

Metrics are kept in memory for the lifetime of the process.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any
import statistics


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class BatchMetrics:
    """Metrics for batch analysis."""
    analyzed: int = 0
    groups: int = 0
    rows: int = 0
    verified_from_cache: int = 0
    unverified: int = 0


@dataclass
class MappingMetrics:
    """Metrics for the persistent mapping cache."""
    cache_hits: int = 0
    cache_misses: int = 0
    stale_hits: int = 0
    lookup_failures: int = 0
    writes: int = 0
    write_failures: int = 0

    # Writes by origin (user_mapped / auto_created)
    writes_by_origin: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str):
        """Add a timing sample."""
        samples = self.by_stage[stage]
        samples.append(duration_ms)
        if len(samples) > self.max_samples:
            self.by_stage[stage] = samples[-self.max_samples:]

    def get_average(self, stage: str) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, [])
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, [])
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for customer reconciliation.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_cache_hit()
        metrics.record_processing_time("save_mapping", 12.5)
    """

    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.batches = BatchMetrics()
        self.mappings = MappingMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def reset(self):
        """Drop all collected metrics."""
        with self._lock:
            self.batches = BatchMetrics()
            self.mappings = MappingMetrics()
            self.timings = TimingMetrics()

    # =========================================================================
    # Batch Metrics
    # =========================================================================

    def record_batch_analyzed(self, groups: int, rows: int, verified: int, duration_ms: float = None):
        """Record a completed batch analysis."""
        with self._lock:
            self.batches.analyzed += 1
            self.batches.groups += groups
            self.batches.rows += rows
            self.batches.verified_from_cache += verified
            self.batches.unverified += groups - verified

            if duration_ms is not None:
                self.timings.add_sample(duration_ms, "analyze_batch")

    # =========================================================================
    # Mapping Metrics
    # =========================================================================

    def record_cache_hit(self):
        with self._lock:
            self.mappings.cache_hits += 1

    def record_cache_miss(self):
        with self._lock:
            self.mappings.cache_misses += 1

    def record_stale_hit(self):
        """A mapping pointed at a customer that no longer exists."""
        with self._lock:
            self.mappings.stale_hits += 1

    def record_lookup_failure(self):
        with self._lock:
            self.mappings.lookup_failures += 1

    def record_mapping_written(self, origin: str):
        with self._lock:
            self.mappings.writes += 1
            self.mappings.writes_by_origin[origin] += 1

    def record_write_failure(self):
        with self._lock:
            self.mappings.write_failures += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, [])),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "batches": {
                    "analyzed": self.batches.analyzed,
                    "groups": self.batches.groups,
                    "rows": self.batches.rows,
                    "verified_from_cache": self.batches.verified_from_cache,
                    "unverified": self.batches.unverified,
                },
                "mappings": {
                    "cache_hits": self.mappings.cache_hits,
                    "cache_misses": self.mappings.cache_misses,
                    "stale_hits": self.mappings.stale_hits,
                    "lookup_failures": self.mappings.lookup_failures,
                    "writes": self.mappings.writes,
                    "write_failures": self.mappings.write_failures,
                    "writes_by_origin": dict(self.mappings.writes_by_origin),
                },
                "timings": {
                    stage: {
                        "average_ms": self.timings.get_average(stage),
                        "p95_ms": self.timings.get_p95(stage),
                    }
                    for stage in self.timings.by_stage.keys()
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()
