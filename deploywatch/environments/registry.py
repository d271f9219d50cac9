"""Deployment registry — loads deployment-config.yaml and resolves environments.

Turns an environment name into the service identity, base URL, the two
probe targets and the alert thresholds for that environment. JSON config
files are accepted too, since JSON parses as YAML.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..monitor.models import ConfigError, Environment, ProbeKind, ProbeTarget

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "https://{name}.workers.dev"
DEFAULT_ERROR_RATE_THRESHOLD_PCT = 5.0
DEFAULT_LATENCY_THRESHOLD_MS = 2000.0

# Probe kind -> path appended to the base URL
PROBE_PATHS = {
    ProbeKind.HEALTH: "/health",
    ProbeKind.STATUS: "/api/status",
}


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DeploymentTarget:
    """One resolved environment: who to probe and what counts as a breach."""

    environment: Environment
    service_name: str
    base_url: str
    error_rate_threshold_pct: float = DEFAULT_ERROR_RATE_THRESHOLD_PCT
    latency_threshold_ms: float = DEFAULT_LATENCY_THRESHOLD_MS

    def probe_targets(self) -> list[ProbeTarget]:
        base = self.base_url.rstrip("/")
        return [ProbeTarget(kind=kind, url=base + path) for kind, path in PROBE_PATHS.items()]


# ── Registry ─────────────────────────────────────────────────────────────────


class DeploymentRegistry:
    """Loads and caches the deployment config file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._raw: dict[str, Any] | None = None

    def load(self, force: bool = False) -> dict[str, Any]:
        """Parse the config file. Raises ConfigError if missing or malformed."""
        if self._raw is not None and not force:
            return self._raw

        if not self._path.exists():
            raise ConfigError(f"Configuration file not found: {self._path}")

        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to parse {self._path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"{self._path}: expected a mapping at the top level")

        self._raw = raw
        logger.info("Loaded deployment config from %s", self._path)
        return raw

    def environments(self) -> list[str]:
        return sorted(_section(self.load().get("environments"), "environments").keys())

    def resolve(self, environment: Environment) -> DeploymentTarget:
        """Build the DeploymentTarget for ``environment``."""
        raw = self.load()
        env_raw = _section(raw.get("environments"), "environments").get(environment.value)
        if not isinstance(env_raw, dict):
            raise ConfigError(f"Environment {environment.value!r} not defined in {self._path}")

        worker = env_raw.get("worker") or {}
        if not isinstance(worker, dict):
            raise ConfigError(f"Environment {environment.value!r}: 'worker' must be a mapping")
        name = str(worker.get("name") or env_raw.get("name") or "")

        base_url = env_raw.get("url") or ""
        if not isinstance(base_url, str):
            raise ConfigError(f"Environment {environment.value!r}: 'url' must be a string, got {base_url!r}")
        if not base_url:
            if not name:
                raise ConfigError(f"Environment {environment.value!r} has neither a worker name nor a url")
            template = raw.get("url_template") or DEFAULT_URL_TEMPLATE
            if not isinstance(template, str):
                raise ConfigError(f"'url_template' must be a string, got {template!r}")
            try:
                base_url = template.format(name=name, environment=environment.value)
            except (KeyError, IndexError, ValueError) as e:
                raise ConfigError(f"Invalid url_template {template!r}: {e!r}") from e

        alerts = _section(_section(raw.get("monitoring"), "monitoring").get("alerts"), "monitoring.alerts")
        overrides = _section(env_raw.get("monitoring"), f"environments.{environment.value}.monitoring")
        error_threshold = _number(
            overrides.get("errorRateThreshold", _section(alerts.get("errorRate"), "errorRate").get("threshold")),
            DEFAULT_ERROR_RATE_THRESHOLD_PCT,
            "errorRate threshold",
        )
        latency_threshold = _number(
            overrides.get("latencyThreshold", _section(alerts.get("latency"), "latency").get("p95Threshold")),
            DEFAULT_LATENCY_THRESHOLD_MS,
            "latency threshold",
        )

        return DeploymentTarget(
            environment=environment,
            service_name=name,
            base_url=base_url,
            error_rate_threshold_pct=error_threshold,
            latency_threshold_ms=latency_threshold,
        )


# ── Parsers ──────────────────────────────────────────────────────────────────


def _section(value: Any, label: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{label}' must be a mapping, got {value!r}")
    return value


def _number(value: Any, default: float, label: str) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Invalid {label}: {value!r}")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {label}: {value!r}") from None
    if not math.isfinite(result) or result < 0:
        raise ConfigError(f"Invalid {label}: {value!r} (must be >= 0)")
    return result
