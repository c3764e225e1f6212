"""
Developer notification channels.

``LoggingNotificationService`` writes every notification to the stdlib
logger and keeps a history; it is the default when no alerting
integration is configured. ``WebhookNotificationService`` POSTs JSON
payloads to an HTTP endpoint (chat webhook, incident tool, issue bridge).
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any

import httpx

from ..exceptions import NotificationError
from .interfaces import DeveloperNotificationService
from .models import DeveloperNotification, ErrorEscalation, TrackingIssue

logger = logging.getLogger("dashboard-resilience.notifications")

DEFAULT_TIMEOUT = 10.0


class LoggingNotificationService(DeveloperNotificationService):
    """Notification channel that only logs.

    Attributes:
        history: (kind, payload) tuples for every notification sent
    """

    def __init__(self) -> None:
        self.history: list[tuple[str, dict[str, Any]]] = []
        self._lock = Lock()

    def _remember(self, kind: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self.history.append((kind, payload))

    async def notify_developer(self, notification: DeveloperNotification) -> None:
        payload = notification.to_payload()
        self._remember("notification", payload)
        logger.warning(
            f"Developer notification ({notification.urgency.value}, "
            f"{notification.severity.value}): {payload['error']}"
        )

    async def send_message(self, message: str, channel: str | None = None) -> None:
        self._remember("message", {"message": message, "channel": channel})
        logger.info(f"Message to {channel or 'default'}: {message}")

    async def create_issue(self, issue: TrackingIssue) -> None:
        self._remember("issue", issue.to_payload())
        logger.warning(f"Tracking issue created: {issue.title}")

    async def escalate_error(self, escalation: ErrorEscalation) -> None:
        self._remember("escalation", escalation.to_payload())
        logger.error(
            f"Error escalated to {escalation.escalation_level.value}: {escalation.error}"
        )


class WebhookNotificationService(DeveloperNotificationService):
    """POSTs notifications as ``{"type": ..., "payload": ...}`` JSON.

    Args:
        url: Webhook endpoint
        timeout: Request timeout in seconds
        headers: Extra request headers (e.g. an auth token)
        client: Optional shared httpx.AsyncClient; one is created per
            request otherwise
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self._client = client

    @classmethod
    def from_config(cls, config: Any) -> "WebhookNotificationService":
        """Build from a ``RecoveryConfig`` section with ``webhook_url`` set."""
        if not config.webhook_url:
            raise NotificationError("webhook_url is not configured", channel="webhook")
        return cls(config.webhook_url, timeout=config.webhook_timeout)

    async def _post(self, kind: str, payload: dict[str, Any]) -> None:
        body = {"type": kind, "payload": payload}
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=body, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=body, headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(
                f"Webhook delivery of {kind} failed: {e}",
                channel="webhook",
                details={"url": self.url, "type": kind},
            ) from e
        logger.debug(f"Delivered {kind} to {self.url}")

    async def notify_developer(self, notification: DeveloperNotification) -> None:
        await self._post("notification", notification.to_payload())

    async def send_message(self, message: str, channel: str | None = None) -> None:
        await self._post("message", {"message": message, "channel": channel})

    async def create_issue(self, issue: TrackingIssue) -> None:
        await self._post("issue", issue.to_payload())

    async def escalate_error(self, escalation: ErrorEscalation) -> None:
        await self._post("escalation", escalation.to_payload())


__all__ = [
    "LoggingNotificationService",
    "WebhookNotificationService",
]
