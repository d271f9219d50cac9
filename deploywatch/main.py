"""Entry point for deploywatch — monitor a deployment for a fixed window.

Usage: deploywatch [environment] [duration]

Exit codes: 0 stable, 1-2 number of breached metrics, 3 configuration error.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import NoReturn

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from deploywatch.config import settings
from deploywatch.environments.registry import DeploymentRegistry, DeploymentTarget
from deploywatch.monitor.models import ConfigError, Environment, RunConfig, RunReport
from deploywatch.monitor.reporter import EXIT_CONFIG_ERROR, RunReporter, run_log_filename
from deploywatch.monitor.scheduler import ProbeScheduler, RunState, new_run_id
from deploywatch.notifications import NotificationManager

console = Console()
logger = logging.getLogger("deploywatch")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with the config-error code, not argparse's 2."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_CONFIG_ERROR, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="deploywatch",
        description="Probe a deployed service for a fixed window and report whether it is stable.",
        epilog=(
            "examples:\n"
            "  deploywatch production 15   monitor production for 15 minutes\n"
            "  deploywatch staging         monitor staging for 10 minutes (default)"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "environment", nargs="?", default=Environment.PRODUCTION.value,
        help="target environment (development|staging|production)",
    )
    parser.add_argument(
        "duration", nargs="?", default="10",
        help="monitoring duration in minutes (default: 10)",
    )
    parser.add_argument("--interval", type=float, default=None, help="seconds between ticks")
    parser.add_argument("--config", default=None, help="deployment config file (YAML or JSON)")
    parser.add_argument("--reports-dir", default=None, help="directory for report files")
    parser.add_argument("--concurrent", action="store_true", help="probe all targets of a tick in parallel")
    parser.add_argument(
        "--max-consecutive-failures", type=int, default=None,
        help="stop early after this many consecutive failed probes",
    )
    parser.add_argument("--no-notify", action="store_true", help="never send Slack/Telegram alerts")
    return parser


def _parse_duration(raw: str) -> int:
    # isdigit() also accepts superscripts, which int() rejects
    if raw.isdecimal():
        try:
            value = int(raw)
        except ValueError:
            pass
        else:
            if value >= 1:
                return value
    raise ConfigError(f"Invalid duration: {raw}. Must be a positive integer (minutes)")


def build_run(args: argparse.Namespace) -> tuple[RunConfig, DeploymentTarget]:
    """Turn CLI arguments + settings + deployment config into a validated RunConfig."""
    environment = Environment.parse(args.environment)
    duration = _parse_duration(args.duration)

    registry = DeploymentRegistry(Path(args.config or settings.config_file))
    target = registry.resolve(environment)

    max_failures = args.max_consecutive_failures
    if max_failures is None:
        max_failures = settings.max_consecutive_failures

    config = RunConfig(
        environment=environment,
        duration_minutes=duration,
        tick_interval_seconds=args.interval if args.interval is not None else settings.tick_interval_seconds,
        error_rate_threshold_pct=target.error_rate_threshold_pct,
        latency_threshold_ms=target.latency_threshold_ms,
        probe_timeout_ms=settings.probe_timeout_ms,
        concurrent_probes=args.concurrent or settings.concurrent_probes,
        max_consecutive_failures=max_failures,
    )
    config.validate()
    return config, target


def _print_progress(state: RunState, remaining: float) -> None:
    minutes, seconds = divmod(int(remaining), 60)
    console.print(
        f"⏱️  Monitoring... {minutes:02d}:{seconds:02d} remaining "
        f"(Requests: {state.samples}, Failures: {state.failures})",
        highlight=False,
    )


def _open_run_log(reports_dir: Path, run_id: str) -> logging.FileHandler | None:
    if not settings.write_run_log:
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    try:
        reports_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(reports_dir / f"monitoring-{stamp}-{run_id}.log", encoding="utf-8")
    except OSError as e:
        logger.warning("Run log disabled: %s", e)
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return handler


def _close_run_log(handler: logging.FileHandler, report: RunReport) -> None:
    """Detach the run log and rename it to match the report's stamp and run id."""
    logger.removeHandler(handler)
    handler.close()
    current = Path(handler.baseFilename)
    target = current.with_name(run_log_filename(report))
    if current == target:
        return
    try:
        current.rename(target)
    except OSError as e:
        logger.warning("Could not rename run log %s: %s", current, e)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)

    try:
        config, target = build_run(args)
    except ConfigError as e:
        console.print(f"[red]❌ ERROR: {escape(str(e))}[/red]")
        return EXIT_CONFIG_ERROR

    console.print(
        Panel.fit(
            f"[bold]Monitoring {config.environment.value} for {config.duration_minutes} minutes[/bold]\n"
            f"Service:   {target.service_name or '-'}\n"
            f"URL:       {target.base_url}\n"
            f"Interval:  {config.tick_interval_seconds:g}s\n"
            f"Error threshold:   {config.error_rate_threshold_pct:g}%\n"
            f"Latency threshold: {config.latency_threshold_ms:g}ms",
            title="deploywatch",
            border_style="blue",
        )
    )

    reports_dir = Path(args.reports_dir or settings.reports_dir)
    run_id = new_run_id()
    run_log = _open_run_log(reports_dir, run_id)
    report: RunReport | None = None

    scheduler = ProbeScheduler(on_tick=_print_progress)
    previous = {
        sig: signal.signal(sig, lambda signum, frame: scheduler.cancel())
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        report = scheduler.run(
            config,
            target.probe_targets(),
            service_name=target.service_name,
            base_url=target.base_url,
            run_id=run_id,
        )
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        if run_log:
            if report is not None:
                _close_run_log(run_log, report)
            else:
                logger.removeHandler(run_log)
                run_log.close()

    notifier = None
    if not args.no_notify:
        notifier = NotificationManager()
        if not notifier.is_enabled:
            notifier = None

    return RunReporter(reports_dir, console=console, notifier=notifier).emit(report)


if __name__ == "__main__":
    sys.exit(main())
