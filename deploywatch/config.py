from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "DEPLOYWATCH_",
        "extra": "ignore",
    }

    # Deployment config (environments, worker names, alert thresholds)
    config_file: str = "deployment-config.yaml"

    # Where metrics-*.json reports and monitoring-*.log files land
    reports_dir: str = "."

    # Loop
    tick_interval_seconds: float = 30.0
    probe_timeout_ms: int = 10_000  # matches curl --max-time 10
    concurrent_probes: bool = False
    max_consecutive_failures: int | None = None  # unset = never stop early

    # Logging
    log_level: str = "INFO"
    write_run_log: bool = True

    # Alerts on unstable verdicts (optional)
    slack_webhook_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""


settings = Settings()
