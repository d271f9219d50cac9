"""Probe scheduler — drives fixed-interval ticks for a bounded duration.

Each tick probes every configured target (in configuration order) and
appends the samples to the run's MetricsStore, then sleeps for the tick
interval. Probe time is not subtracted from the sleep, so ticks drift under
slow probes.

Cancellation is observed between probes and interrupts the inter-tick
sleep. Whatever was collected up to that point still goes through the
evaluator, so a cancelled run always produces a report.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

from .evaluator import evaluate
from .models import (
    ConfigError,
    ProbeTarget,
    RunConfig,
    RunReport,
    Sample,
    StopReason,
)
from .probe import make_client, probe
from .store import MetricsStore

logger = logging.getLogger(__name__)

ProbeFn = Callable[..., Sample]
TickCallback = Callable[["RunState", float], Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class RunState:
    """Counters for one run, replaced (never mutated) after every tick."""

    ticks: int = 0
    samples: int = 0
    failures: int = 0
    consecutive_failures: int = 0

    def advance(self, tick_samples: Sequence[Sample]) -> RunState:
        consecutive = self.consecutive_failures
        failures = self.failures
        for s in tick_samples:
            if s.success:
                consecutive = 0
            else:
                consecutive += 1
                failures += 1
        return replace(
            self,
            ticks=self.ticks + 1,
            samples=self.samples + len(tick_samples),
            failures=failures,
            consecutive_failures=consecutive,
        )


class ProbeScheduler:
    """Runs one bounded monitoring loop against a fixed set of targets.

    ``clock`` (monotonic seconds), ``wall_clock`` and ``sleep`` are
    injectable so the loop can be driven without real waiting. ``sleep``
    must return early when the run is cancelled; the default waits on the
    internal stop event.
    """

    def __init__(
        self,
        probe_fn: ProbeFn = probe,
        on_tick: TickCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Any] | None = None,
        client_factory: Callable[[int], httpx.Client] = make_client,
    ) -> None:
        self.probe_fn = probe_fn
        self.on_tick = on_tick
        self._clock = clock
        self._wall_clock = wall_clock
        self._stop = threading.Event()
        self._sleep = sleep or self._stop.wait
        self._client_factory = client_factory
        self.state = SchedulerState.IDLE
        self.store = MetricsStore()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self) -> None:
        """Ask the loop to stop. Safe to call from signal handlers and other threads."""
        if not self._stop.is_set():
            logger.info("Cancellation requested")
        self._stop.set()

    def run(
        self,
        config: RunConfig,
        targets: Sequence[ProbeTarget],
        service_name: str = "",
        base_url: str = "",
        run_id: str | None = None,
    ) -> RunReport:
        """Run the loop to completion (or cancellation) and return the report."""
        if self.state is not SchedulerState.IDLE:
            raise RuntimeError("ProbeScheduler instances are single-use")
        config.validate()
        if not targets:
            raise ConfigError("No probe targets configured")
        targets = tuple(targets)

        run_id = run_id or new_run_id()
        self.state = SchedulerState.RUNNING
        start_time = self._wall_clock()
        deadline = self._clock() + config.duration_minutes * 60
        run_state = RunState()
        stop_reason = StopReason.COMPLETED
        logger.info(
            "Run %s started: %d targets, %d min, every %gs",
            run_id, len(targets), config.duration_minutes, config.tick_interval_seconds,
        )

        pool = ThreadPoolExecutor(max_workers=len(targets)) if config.concurrent_probes else None
        try:
            with self._client_factory(config.probe_timeout_ms) as client:
                while True:
                    if self.cancelled:
                        stop_reason = StopReason.CANCELLED
                        break
                    if self._clock() >= deadline:
                        break

                    tick_samples = self._run_tick(config, targets, client, pool)
                    for s in tick_samples:
                        self.store.append(s)
                    run_state = run_state.advance(tick_samples)
                    logger.info(
                        "Tick %d: %s",
                        run_state.ticks,
                        ", ".join(f"{s.kind.value} {s.http_status:03d} ({s.latency_ms:.0f}ms)" for s in tick_samples),
                    )

                    remaining = max(0.0, deadline - self._clock())
                    if self.on_tick:
                        self.on_tick(run_state, remaining)

                    if (
                        config.max_consecutive_failures is not None
                        and run_state.consecutive_failures >= config.max_consecutive_failures
                    ):
                        logger.warning(
                            "Circuit open after %d consecutive failed probes",
                            run_state.consecutive_failures,
                        )
                        stop_reason = StopReason.CIRCUIT_OPEN
                        break

                    if self.cancelled:
                        stop_reason = StopReason.CANCELLED
                        break
                    self._sleep(config.tick_interval_seconds)
        finally:
            if pool:
                pool.shutdown(wait=True)
            self.state = SchedulerState.COMPLETED

        samples = self.store.snapshot()
        report = RunReport(
            run_id=run_id,
            environment=config.environment,
            service_name=service_name,
            base_url=base_url,
            config=config,
            start_time=start_time,
            end_time=self._wall_clock(),
            ticks=run_state.ticks,
            stop_reason=stop_reason,
            samples=samples,
            evaluation=evaluate(samples, config),
        )
        logger.info(
            "Run %s %s after %d ticks: %d samples, %d failed, status=%s",
            run_id, stop_reason.value, run_state.ticks, report.total_count,
            report.failed_count, report.status.value,
        )
        return report

    def _tick_timestamp(self) -> datetime:
        ts = self._wall_clock()
        samples = self.store.snapshot()
        if samples and ts < samples[-1].timestamp:
            # Wall clock stepped backwards; keep the series ordered.
            return samples[-1].timestamp
        return ts

    def _run_tick(
        self,
        config: RunConfig,
        targets: tuple[ProbeTarget, ...],
        client: httpx.Client,
        pool: ThreadPoolExecutor | None,
    ) -> list[Sample]:
        ts = self._tick_timestamp()

        def one(target: ProbeTarget) -> Sample:
            return self.probe_fn(target, config.probe_timeout_ms, client=client, timestamp=ts)

        if pool is not None:
            # map() yields in submission order, so appends keep target order
            return list(pool.map(one, targets))

        results: list[Sample] = []
        for target in targets:
            if self.cancelled:
                break
            results.append(one(target))
        return results
