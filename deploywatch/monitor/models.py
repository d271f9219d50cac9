"""Monitor data models — targets, samples, run config, breaches, reports.

All models are frozen dataclasses: a Sample never changes once probed and a
RunReport never changes once built.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

NO_RESPONSE = 0  # http_status sentinel when nothing came back


# ── Errors ───────────────────────────────────────────────────────────────────


class MonitorError(Exception):
    """Base class for monitor failures."""


class ConfigError(MonitorError):
    """Invalid environment, duration, interval, targets or thresholds."""


class ProbeError(MonitorError):
    """Transport-level probe failure. Recovered into a failed Sample."""


class ReportWriteError(MonitorError):
    """The report artifact could not be persisted."""


# ── Enums ────────────────────────────────────────────────────────────────────


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: str) -> Environment:
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(e.value for e in cls)
            raise ConfigError(f"Invalid environment: {value!r} (expected one of {choices})") from None


class ProbeKind(str, Enum):
    HEALTH = "health"
    STATUS = "status"


class Metric(str, Enum):
    ERROR_RATE = "error_rate"
    LATENCY = "latency"


class RunStatus(str, Enum):
    STABLE = "stable"
    UNSTABLE = "unstable"


class StopReason(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CIRCUIT_OPEN = "circuit_open"


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProbeTarget:
    kind: ProbeKind
    url: str


@dataclass(frozen=True)
class Sample:
    """One probe observation."""

    timestamp: datetime
    kind: ProbeKind
    http_status: int
    latency_ms: float
    error: str = ""

    @property
    def success(self) -> bool:
        return self.http_status == 200

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "http_status": self.http_status,
            "success": self.success,
            "latency_ms": self.latency_ms,
            "error": self.error,
        }


@dataclass(frozen=True)
class RunConfig:
    """Inputs fixed before the run starts."""

    environment: Environment
    duration_minutes: int
    tick_interval_seconds: float = 30.0
    error_rate_threshold_pct: float = 5.0
    latency_threshold_ms: float = 2000.0
    probe_timeout_ms: int = 10_000
    concurrent_probes: bool = False
    max_consecutive_failures: int | None = None  # None = circuit breaker off

    def validate(self) -> None:
        """Raise ConfigError if any field is out of range."""
        if self.duration_minutes < 1:
            raise ConfigError(f"Invalid duration: {self.duration_minutes}. Must be a positive integer (minutes)")
        if not math.isfinite(self.tick_interval_seconds) or self.tick_interval_seconds <= 0:
            raise ConfigError(f"Invalid tick interval: {self.tick_interval_seconds}s. Must be a finite number > 0")
        if self.probe_timeout_ms <= 0:
            raise ConfigError(f"Invalid probe timeout: {self.probe_timeout_ms}ms. Must be > 0")
        for label, value in (
            ("error rate threshold", self.error_rate_threshold_pct),
            ("latency threshold", self.latency_threshold_ms),
        ):
            if not math.isfinite(value) or value < 0:
                raise ConfigError(f"Invalid {label}: {value}. Must be a finite number >= 0")
        if self.max_consecutive_failures is not None and self.max_consecutive_failures < 1:
            raise ConfigError("max_consecutive_failures must be >= 1 when set")


@dataclass(frozen=True)
class Breach:
    metric: Metric
    observed_value: float
    threshold_value: float

    def describe(self) -> str:
        if self.metric is Metric.ERROR_RATE:
            return f"High error rate: {self.observed_value:.2f}% (threshold: {self.threshold_value:g}%)"
        return f"High latency: {self.observed_value:.0f}ms (threshold: {self.threshold_value:g}ms)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric.value,
            "observed_value": self.observed_value,
            "threshold_value": self.threshold_value,
        }


@dataclass(frozen=True)
class KindStats:
    """Aggregates for a single ProbeKind."""

    total_count: int
    failed_count: int
    avg_latency_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_count": self.total_count,
            "failed_count": self.failed_count,
            "avg_latency_ms": self.avg_latency_ms,
        }


@dataclass(frozen=True)
class Evaluation:
    """Aggregate statistics and verdict over a sample sequence."""

    total_count: int
    failed_count: int
    error_rate_pct: float
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    p95_latency_ms: float
    breaches: tuple[Breach, ...]
    status: RunStatus
    by_kind: dict[str, KindStats] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_count": self.total_count,
            "failed_count": self.failed_count,
            "error_rate_pct": self.error_rate_pct,
            "avg_latency_ms": self.avg_latency_ms,
            "min_latency_ms": self.min_latency_ms,
            "max_latency_ms": self.max_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "breaches": [b.to_dict() for b in self.breaches],
            "status": self.status.value,
            "by_kind": {k: v.to_dict() for k, v in self.by_kind.items()},
        }


@dataclass(frozen=True)
class RunReport:
    """The complete, immutable output of one monitoring run."""

    run_id: str
    environment: Environment
    service_name: str
    base_url: str
    config: RunConfig
    start_time: datetime
    end_time: datetime
    ticks: int
    stop_reason: StopReason
    samples: tuple[Sample, ...]
    evaluation: Evaluation

    @property
    def status(self) -> RunStatus:
        return self.evaluation.status

    @property
    def breaches(self) -> tuple[Breach, ...]:
        return self.evaluation.breaches

    @property
    def total_count(self) -> int:
        return self.evaluation.total_count

    @property
    def failed_count(self) -> int:
        return self.evaluation.failed_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "environment": self.environment.value,
            "service_name": self.service_name,
            "base_url": self.base_url,
            "duration_minutes": self.config.duration_minutes,
            "tick_interval_seconds": self.config.tick_interval_seconds,
            "thresholds": {
                "error_rate_pct": self.config.error_rate_threshold_pct,
                "latency_ms": self.config.latency_threshold_ms,
            },
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "ticks": self.ticks,
            "stop_reason": self.stop_reason.value,
            **self.evaluation.to_dict(),
            "samples": [s.to_dict() for s in self.samples],
        }
