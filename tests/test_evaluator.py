"""Tests for the threshold evaluator."""

from __future__ import annotations

import json

from deploywatch.monitor.evaluator import evaluate
from deploywatch.monitor.models import (
    Environment,
    Metric,
    ProbeKind,
    RunConfig,
    RunStatus,
)

from conftest import make_sample

THRESHOLDS = RunConfig(
    environment=Environment.PRODUCTION,
    duration_minutes=10,
    error_rate_threshold_pct=5,
    latency_threshold_ms=2000,
)


class TestAggregates:
    def test_empty_is_stable_and_zero(self) -> None:
        ev = evaluate([], THRESHOLDS)
        assert ev.total_count == 0
        assert ev.failed_count == 0
        assert ev.error_rate_pct == 0
        assert ev.avg_latency_ms == 0
        assert ev.min_latency_ms == 0
        assert ev.max_latency_ms == 0
        assert ev.breaches == ()
        assert ev.status == RunStatus.STABLE

    def test_two_successes(self) -> None:
        samples = [make_sample(latency_ms=100), make_sample(latency_ms=300)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.avg_latency_ms == 200
        assert ev.min_latency_ms == 100
        assert ev.max_latency_ms == 300
        assert ev.error_rate_pct == 0
        assert ev.status == RunStatus.STABLE

    def test_error_rate_exact(self) -> None:
        samples = [make_sample(success=False)] + [make_sample() for _ in range(2)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.failed_count == 1
        assert ev.error_rate_pct == 100 * 1 / 3

    def test_all_failed_is_100(self) -> None:
        samples = [make_sample(success=False, http_status=0) for _ in range(4)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.error_rate_pct == 100

    def test_failed_samples_count_toward_latency(self) -> None:
        samples = [make_sample(latency_ms=100), make_sample(success=False, http_status=0, latency_ms=10_000)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.avg_latency_ms == 5050
        assert ev.max_latency_ms == 10_000

    def test_p95_nearest_rank(self) -> None:
        samples = [make_sample(latency_ms=float(i)) for i in range(1, 21)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.p95_latency_ms == 19

    def test_by_kind(self) -> None:
        samples = [
            make_sample(kind=ProbeKind.HEALTH, latency_ms=100),
            make_sample(kind=ProbeKind.STATUS, success=False, latency_ms=300),
            make_sample(kind=ProbeKind.HEALTH, latency_ms=200),
        ]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.by_kind["health"].total_count == 2
        assert ev.by_kind["health"].failed_count == 0
        assert ev.by_kind["health"].avg_latency_ms == 150
        assert ev.by_kind["status"].failed_count == 1


class TestBreaches:
    def test_error_rate_breach(self) -> None:
        samples = [make_sample(success=False)] + [make_sample() for _ in range(9)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.error_rate_pct == 10
        assert len(ev.breaches) == 1
        assert ev.breaches[0].metric == Metric.ERROR_RATE
        assert ev.breaches[0].observed_value == 10
        assert ev.breaches[0].threshold_value == 5
        assert ev.status == RunStatus.UNSTABLE

    def test_latency_breach_independent_of_error_rate(self) -> None:
        samples = [make_sample(latency_ms=2000), make_sample(latency_ms=3000)]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.avg_latency_ms == 2500
        assert ev.error_rate_pct == 0
        assert [b.metric for b in ev.breaches] == [Metric.LATENCY]
        assert ev.status == RunStatus.UNSTABLE

    def test_both_breaches(self) -> None:
        samples = [make_sample(success=False, latency_ms=5000), make_sample(latency_ms=5000)]
        ev = evaluate(samples, THRESHOLDS)
        assert [b.metric for b in ev.breaches] == [Metric.ERROR_RATE, Metric.LATENCY]

    def test_threshold_is_strict(self) -> None:
        # exactly 5% errors and exactly 2000ms average: no breach
        samples = [make_sample(success=False, latency_ms=2000)] + [
            make_sample(latency_ms=2000) for _ in range(19)
        ]
        ev = evaluate(samples, THRESHOLDS)
        assert ev.error_rate_pct == 5
        assert ev.avg_latency_ms == 2000
        assert ev.breaches == ()
        assert ev.status == RunStatus.STABLE


class TestDeterminism:
    def test_identical_output(self) -> None:
        samples = [
            make_sample(latency_ms=123.4),
            make_sample(success=False, kind=ProbeKind.STATUS, latency_ms=9876.5),
            make_sample(latency_ms=55.5),
        ]
        first = evaluate(samples, THRESHOLDS)
        second = evaluate(samples, THRESHOLDS)
        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())
