"""Shared test fixtures."""

from __future__ import annotations

import textwrap
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from deploywatch.monitor.evaluator import evaluate
from deploywatch.monitor.models import (
    Environment,
    ProbeKind,
    ProbeTarget,
    RunConfig,
    RunReport,
    Sample,
    StopReason,
)

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic + wall clock that only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False

    def wall(self) -> datetime:
        return T0 + timedelta(seconds=self.now)


def make_sample(
    success: bool = True,
    latency_ms: float = 100.0,
    kind: ProbeKind = ProbeKind.HEALTH,
    http_status: int | None = None,
    offset_s: float = 0.0,
) -> Sample:
    if http_status is None:
        http_status = 200 if success else 503
    return Sample(
        timestamp=T0 + timedelta(seconds=offset_s),
        kind=kind,
        http_status=http_status,
        latency_ms=latency_ms,
    )


def make_report(
    samples: Iterable[Sample],
    config: RunConfig,
    run_id: str = "abc12345",
) -> RunReport:
    samples = tuple(samples)
    return RunReport(
        run_id=run_id,
        environment=config.environment,
        service_name="support-bot",
        base_url="https://support-bot.example.dev",
        config=config,
        start_time=T0,
        end_time=T0 + timedelta(minutes=config.duration_minutes),
        ticks=len(samples) // 2,
        stop_reason=StopReason.COMPLETED,
        samples=samples,
        evaluation=evaluate(samples, config),
    )


def fake_probe(
    status_for: Callable[[int], int] = lambda n: 200,
    latency_ms: float = 100.0,
) -> Callable[..., Sample]:
    """Probe stand-in; ``status_for`` maps the 0-based call number to a status."""
    calls: list[ProbeTarget] = []

    def _probe(target: ProbeTarget, timeout_ms: int, client=None, timestamp=None) -> Sample:
        status = status_for(len(calls))
        calls.append(target)
        return Sample(timestamp=timestamp, kind=target.kind, http_status=status, latency_ms=latency_ms)

    _probe.calls = calls  # type: ignore[attr-defined]
    return _probe


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> RunConfig:
    return RunConfig(environment=Environment.STAGING, duration_minutes=1)


@pytest.fixture
def targets() -> list[ProbeTarget]:
    return [
        ProbeTarget(kind=ProbeKind.HEALTH, url="https://support-bot.example.dev/health"),
        ProbeTarget(kind=ProbeKind.STATUS, url="https://support-bot.example.dev/api/status"),
    ]


@pytest.fixture
def deployment_config(tmp_path: Path) -> Path:
    """A deployment-config.yaml shaped like the one the deploy scripts use."""
    path = tmp_path / "deployment-config.yaml"
    path.write_text(textwrap.dedent("""\
        url_template: "https://{name}.example.workers.dev"
        environments:
          development:
            worker:
              name: support-bot-dev
          staging:
            worker:
              name: support-bot-staging
            monitoring:
              errorRateThreshold: 10
          production:
            worker:
              name: support-bot
            url: https://bot.example.com/
        monitoring:
          alerts:
            errorRate:
              threshold: 3
            latency:
              p95Threshold: 1500
    """), encoding="utf-8")
    return path
