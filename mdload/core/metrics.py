from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST
from prometheus_client.utils import floatToGoString

from mdload.core.models import MetricsSnapshot, StepKind

LATENCY_BUCKETS = [0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]

EXPOSITION_CONTENT_TYPE = CONTENT_TYPE_LATEST

OPERATION_LATENCY = "mdload_operation_latency_seconds"
STORE_CALL_LATENCY = "mdload_store_call_latency_seconds"

SUMMARY_QUANTILES = (("p50_seconds", 0.50), ("p95_seconds", 0.95), ("p99_seconds", 0.99))


def bucket_quantile(q: float, buckets: list[tuple[float, float]]) -> float | None:
    """Estimate quantile ``q`` from cumulative ``(upper_bound, count)`` buckets.

    Interpolates linearly inside the bucket that holds the target rank, the
    way Prometheus' ``histogram_quantile`` does. A rank that falls in the
    ``+Inf`` bucket resolves to the largest finite bound.
    """

    if not buckets or buckets[-1][1] <= 0:
        return None

    rank = q * buckets[-1][1]
    lower_bound, lower_count = 0.0, 0.0
    for upper_bound, count in buckets:
        if count >= rank:
            if math.isinf(upper_bound):
                return lower_bound
            if count == lower_count:
                return upper_bound
            return lower_bound + (upper_bound - lower_bound) * (rank - lower_count) / (count - lower_count)
        lower_bound, lower_count = upper_bound, count
    return lower_bound


@dataclass
class _LatencyAgg:
    count: int = 0
    sum_seconds: float = 0.0
    min_seconds: float | None = None
    max_seconds: float | None = None

    def add(self, seconds: float) -> None:
        self.count += 1
        self.sum_seconds += seconds
        if self.min_seconds is None or seconds < self.min_seconds:
            self.min_seconds = seconds
        if self.max_seconds is None or seconds > self.max_seconds:
            self.max_seconds = seconds


class MetricsRecorder:
    """Operation counters and latency histograms.

    The Prometheus collectors live on a private registry so several recorders
    (one per test, say) never collide. All updates happen between suspension
    points of the event loop, and ``render`` never awaits, so a reader always
    sees a consistent snapshot without locking.

    The shutdown report reads its percentiles back out of the same histogram
    buckets the endpoint exposes, so memory stays flat however long the
    process runs.
    """

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self._started = Counter(
            "mdload_operations_started",
            "Operations launched",
            registry=self.registry,
        )
        self._done = Counter(
            "mdload_operations_done",
            "Operations completed, successfully or not",
            registry=self.registry,
        )
        self._failed = Counter(
            "mdload_operations_failed",
            "Operations that ended with a propagated store error",
            registry=self.registry,
        )
        self._operation_latency = Histogram(
            OPERATION_LATENCY,
            "End-to-end latency of one four-step operation",
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )
        self._store_latency = Histogram(
            STORE_CALL_LATENCY,
            "Latency of one live metadata-store write",
            ["operation"],
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )

        self.started = 0
        self.done = 0
        self.failed = 0

        self._operation_agg = _LatencyAgg()
        self._store_agg: dict[str, _LatencyAgg] = {}

    def record_started(self) -> None:
        self.started += 1
        self._started.inc()

    def record_done(self, elapsed_seconds: float, *, failed: bool) -> None:
        elapsed_seconds = max(0.0, elapsed_seconds)
        self.done += 1
        self._done.inc()
        if failed:
            self.failed += 1
            self._failed.inc()
        self._operation_latency.observe(elapsed_seconds)
        self._operation_agg.add(elapsed_seconds)

    def observe_store_call(self, operation: StepKind | str, elapsed_seconds: float) -> None:
        name = operation.value if isinstance(operation, StepKind) else operation
        elapsed_seconds = max(0.0, elapsed_seconds)
        self._store_latency.labels(operation=name).observe(elapsed_seconds)
        self._store_agg.setdefault(name, _LatencyAgg()).add(elapsed_seconds)

    def render(self) -> bytes:
        """Render the current state in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            started=self.started,
            done=self.done,
            failed=self.failed,
            operation_observations=self._operation_agg.count,
            store_call_observations=sum(agg.count for agg in self._store_agg.values()),
        )

    def build_report(self) -> dict[str, Any]:
        return {
            "operations": {
                "started": self.started,
                "done": self.done,
                "failed": self.failed,
                "error_rate_pct": round(self.failed / self.done * 100, 2) if self.done else 0.0,
                "latency": self._agg_to_report(self._operation_agg, OPERATION_LATENCY, {}),
            },
            "store_calls": {
                name: self._agg_to_report(agg, STORE_CALL_LATENCY, {"operation": name})
                for name, agg in self._store_agg.items()
            },
        }

    def _buckets(self, metric: str, labels: dict[str, str]) -> list[tuple[float, float]]:
        buckets = []
        for bound in [*LATENCY_BUCKETS, math.inf]:
            value = self.registry.get_sample_value(
                f"{metric}_bucket",
                {**labels, "le": floatToGoString(bound)},
            )
            buckets.append((bound, value or 0.0))
        return buckets

    def _agg_to_report(self, agg: _LatencyAgg, metric: str, labels: dict[str, str]) -> dict[str, Any]:
        report: dict[str, Any] = {
            "count": agg.count,
            "min_seconds": agg.min_seconds,
            "max_seconds": agg.max_seconds,
            "mean_seconds": (agg.sum_seconds / agg.count) if agg.count else None,
        }
        buckets = self._buckets(metric, labels) if agg.count else []
        for key, q in SUMMARY_QUANTILES:
            estimate = bucket_quantile(q, buckets)
            if estimate is not None:
                # Bucket interpolation can overshoot the observed range.
                estimate = min(max(estimate, agg.min_seconds or 0.0), agg.max_seconds or 0.0)
            report[key] = estimate
        return report
