"""Proactive notifications — Slack and Telegram webhooks.

Fires when a monitoring run ends with an unstable verdict. Delivery
failures are logged and never affect the run's exit code.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings
from ..monitor.models import RunReport

logger = logging.getLogger(__name__)


class NotificationManager:
    """Central dispatcher for Slack / Telegram notifications."""

    def __init__(
        self,
        slack_webhook: str = "",
        telegram_token: str = "",
        telegram_chat_id: str = "",
        timeout: float = 10.0,
    ) -> None:
        self.slack_webhook = slack_webhook or settings.slack_webhook_url
        self.telegram_token = telegram_token or settings.telegram_bot_token
        self.telegram_chat_id = telegram_chat_id or settings.telegram_chat_id
        self.timeout = timeout
        self._enabled = bool(self.slack_webhook or (self.telegram_token and self.telegram_chat_id))

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self._enabled,
            "slack_configured": bool(self.slack_webhook),
            "telegram_configured": bool(self.telegram_token and self.telegram_chat_id),
        }

    # -- High-level notification methods ------------------------------------

    def notify_unstable(self, report: RunReport) -> None:
        """Alert that a deployment failed its monitoring window."""
        ev = report.evaluation
        text = (
            f"🔴 *Deployment unstable*\n"
            f"Environment: `{report.environment.value}` / Service: `{report.service_name or '-'}`\n"
            f"Requests: {ev.total_count}, failed: {ev.failed_count} "
            f"({ev.error_rate_pct:.2f}%), avg latency {ev.avg_latency_ms:.0f}ms\n"
        )
        text += "".join(f"• {b.describe()}\n" for b in report.breaches)
        self._send(text)

    # -- Low-level dispatch -------------------------------------------------

    def _send(self, text: str) -> None:
        if not self._enabled:
            logger.debug("Notifications disabled, skipping alert")
            return
        with httpx.Client(timeout=self.timeout) as client:
            if self.slack_webhook:
                self._send_slack(client, text)
            if self.telegram_token and self.telegram_chat_id:
                self._send_telegram(client, text)

    def _send_slack(self, client: httpx.Client, text: str) -> None:
        """POST to Slack incoming webhook."""
        try:
            resp = client.post(self.slack_webhook, json={"text": text, "mrkdwn": True})
            if resp.status_code != 200:
                logger.warning("Slack webhook returned %d: %s", resp.status_code, resp.text[:200])
        except httpx.HTTPError as exc:
            logger.warning("Slack notification failed: %s", exc)

    def _send_telegram(self, client: httpx.Client, text: str) -> None:
        """POST to Telegram Bot API."""
        url = f"https://api.telegram.org/bot{self.telegram_token}/sendMessage"
        try:
            resp = client.post(
                url,
                json={
                    "chat_id": self.telegram_chat_id,
                    "text": text,
                    "parse_mode": "Markdown",
                },
            )
            if resp.status_code != 200:
                logger.warning("Telegram API returned %d: %s", resp.status_code, resp.text[:200])
        except httpx.HTTPError as exc:
            logger.warning("Telegram notification failed: %s", exc)
