"""Tests for environment-driven settings."""

from __future__ import annotations

from deploywatch.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)  # no stray .env
        s = Settings()
        assert s.tick_interval_seconds == 30
        assert s.probe_timeout_ms == 10_000
        assert s.max_consecutive_failures is None
        assert s.concurrent_probes is False

    def test_env_prefix(self, monkeypatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEPLOYWATCH_TICK_INTERVAL_SECONDS", "5")
        monkeypatch.setenv("DEPLOYWATCH_MAX_CONSECUTIVE_FAILURES", "6")
        monkeypatch.setenv("DEPLOYWATCH_CONCURRENT_PROBES", "true")
        s = Settings()
        assert s.tick_interval_seconds == 5
        assert s.max_consecutive_failures == 6
        assert s.concurrent_probes is True

    def test_dotenv_file(self, monkeypatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("DEPLOYWATCH_CONFIG_FILE=ops/deploy.yaml\n", encoding="utf-8")
        assert Settings().config_file == "ops/deploy.yaml"
