"""Monitor subsystem — probe executor, metrics store, scheduler, evaluator, reporter."""

from .evaluator import evaluate
from .models import (
    NO_RESPONSE,
    Breach,
    ConfigError,
    Environment,
    Evaluation,
    Metric,
    MonitorError,
    ProbeError,
    ProbeKind,
    ProbeTarget,
    ReportWriteError,
    RunConfig,
    RunReport,
    RunStatus,
    Sample,
    StopReason,
)
from .probe import probe
from .reporter import EXIT_CONFIG_ERROR, RunReporter, exit_code_for
from .scheduler import ProbeScheduler, RunState, SchedulerState
from .store import MetricsStore
