"""Run reporter — persists the RunReport and turns the verdict into an exit code.

A failed write never changes the verdict: the summary is still printed and
the exit code still reflects the breaches.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .models import ReportWriteError, RunReport, RunStatus

if TYPE_CHECKING:
    from ..notifications import NotificationManager

logger = logging.getLogger(__name__)

EXIT_STABLE = 0
EXIT_CONFIG_ERROR = 3  # distinct from any breach count (at most 2)


def exit_code_for(report: RunReport) -> int:
    """0 when stable, otherwise the number of breached metric categories."""
    if report.status is RunStatus.STABLE:
        return EXIT_STABLE
    return len({b.metric for b in report.breaches})


def report_filename(report: RunReport) -> str:
    return f"metrics-{report.start_time:%Y%m%d-%H%M%S}-{report.run_id}.json"


def run_log_filename(report: RunReport) -> str:
    """Run log name paired with the report of the same run."""
    return f"monitoring-{report.start_time:%Y%m%d-%H%M%S}-{report.run_id}.log"


class RunReporter:
    """Writes the JSON artifact, prints the summary, fires alerts."""

    def __init__(
        self,
        reports_dir: Path,
        console: Console | None = None,
        notifier: NotificationManager | None = None,
    ) -> None:
        self.reports_dir = reports_dir
        self.console = console or Console()
        self.notifier = notifier

    def write(self, report: RunReport) -> Path:
        """Persist the report. Raises ReportWriteError on any filesystem failure."""
        path = self.reports_dir / report_filename(report)
        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            # "x" refuses to overwrite an existing report
            with path.open("x", encoding="utf-8") as fh:
                json.dump(report.to_dict(), fh, indent=2)
                fh.write("\n")
        except OSError as e:
            raise ReportWriteError(f"Could not write report {path}: {e}") from e
        logger.info("Report written: %s", path)
        return path

    def emit(self, report: RunReport) -> int:
        """Persist, summarize and alert; return the process exit code."""
        path: Path | None = None
        try:
            path = self.write(report)
        except ReportWriteError as e:
            logger.warning("%s", e)
            self.console.print(f"[yellow]⚠️  Report not saved: {escape(str(e))}[/yellow]")

        self.print_summary(report, path)

        if self.notifier and report.status is RunStatus.UNSTABLE:
            self.notifier.notify_unstable(report)

        return exit_code_for(report)

    def print_summary(self, report: RunReport, path: Path | None = None) -> None:
        ev = report.evaluation
        lines = [
            f"Environment:     {report.environment.value} ({report.service_name or '-'})",
            f"Ticks:           {report.ticks} ({report.stop_reason.value})",
            f"Total requests:  {ev.total_count}",
            f"Failed requests: {ev.failed_count}",
            f"Error rate:      {ev.error_rate_pct:.2f}%",
            f"Avg latency:     {ev.avg_latency_ms:.0f}ms "
            f"(min {ev.min_latency_ms:.0f}ms, max {ev.max_latency_ms:.0f}ms, p95 {ev.p95_latency_ms:.0f}ms)",
        ]
        for kind, stats in ev.by_kind.items():
            lines.append(
                f"  {kind:<7} {stats.total_count} probes, {stats.failed_count} failed, "
                f"avg {stats.avg_latency_ms:.0f}ms"
            )
        if path:
            lines.append(f"Report:          {path.name}")

        if report.breaches:
            lines.append("")
            lines.append("Alerts triggered:")
            lines.extend(f"  - {b.describe()}" for b in report.breaches)
            title, style = "Deployment may be unstable", "bold yellow"
        else:
            title, style = "Deployment is stable", "bold green"

        self.console.print(Panel(escape("\n".join(lines)), title=title, style=style))
