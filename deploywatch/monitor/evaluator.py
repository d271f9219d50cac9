"""Threshold evaluator — pure aggregation and breach detection.

No clock reads and no randomness: the same samples and config always give
an identical Evaluation.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from .models import (
    Breach,
    Evaluation,
    KindStats,
    Metric,
    RunConfig,
    RunStatus,
    Sample,
)


def _percentile(sorted_values: Sequence[float], pct: float) -> float:
    """Nearest-rank percentile of an already sorted sequence."""
    if not sorted_values:
        return 0.0
    rank = max(1, math.ceil(pct * len(sorted_values) / 100))
    return sorted_values[rank - 1]


def _kind_stats(samples: Sequence[Sample]) -> dict[str, KindStats]:
    grouped: dict[str, list[Sample]] = {}
    for s in samples:
        grouped.setdefault(s.kind.value, []).append(s)
    return {
        kind: KindStats(
            total_count=len(group),
            failed_count=sum(1 for s in group if not s.success),
            avg_latency_ms=sum(s.latency_ms for s in group) / len(group),
        )
        for kind, group in sorted(grouped.items())
    }


def evaluate(samples: Sequence[Sample], config: RunConfig) -> Evaluation:
    """Aggregate ``samples`` and compare against the thresholds in ``config``.

    Latency aggregates cover every sample, failed ones included: a timed-out
    probe still spent its timeout. Both breaches are strict ``>`` comparisons
    and may fire together.
    """
    total = len(samples)
    if total == 0:
        return Evaluation(
            total_count=0,
            failed_count=0,
            error_rate_pct=0.0,
            avg_latency_ms=0.0,
            min_latency_ms=0.0,
            max_latency_ms=0.0,
            p95_latency_ms=0.0,
            breaches=(),
            status=RunStatus.STABLE,
        )

    failed = sum(1 for s in samples if not s.success)
    error_rate = 100 * failed / total
    latencies = sorted(s.latency_ms for s in samples)
    avg_latency = sum(s.latency_ms for s in samples) / total

    breaches: list[Breach] = []
    if error_rate > config.error_rate_threshold_pct:
        breaches.append(Breach(Metric.ERROR_RATE, error_rate, config.error_rate_threshold_pct))
    if avg_latency > config.latency_threshold_ms:
        breaches.append(Breach(Metric.LATENCY, avg_latency, config.latency_threshold_ms))

    return Evaluation(
        total_count=total,
        failed_count=failed,
        error_rate_pct=error_rate,
        avg_latency_ms=avg_latency,
        min_latency_ms=latencies[0],
        max_latency_ms=latencies[-1],
        p95_latency_ms=_percentile(latencies, 95),
        breaches=tuple(breaches),
        status=RunStatus.UNSTABLE if breaches else RunStatus.STABLE,
        by_kind=_kind_stats(samples),
    )
