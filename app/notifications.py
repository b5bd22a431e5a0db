# app/notifications.py
from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger("tanda.notify")

NotificationEvent = Literal["contribution_received", "payout_released", "early_payout_denied"]

CONTRIBUTION_RECEIVED: NotificationEvent = "contribution_received"
PAYOUT_RELEASED: NotificationEvent = "payout_released"
EARLY_PAYOUT_DENIED: NotificationEvent = "early_payout_denied"


class NotificationSink(Protocol):
    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        logger.info("notify event=%s pool=%s round=%s", event, payload.get("pool_id"), payload.get("round_number"))


class WebhookNotificationSink:
    """POSTs {event, payload} to a delivery service."""

    def __init__(self, url: str, *, timeout_s: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout_s)

    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        r = self._client.post(self.url, json={"event": event, "payload": payload})
        r.raise_for_status()


class RecordingNotificationSink:
    """Keeps every event in memory (tests, local dev)."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        self.events.append((event, dict(payload)))

    def of(self, event: str) -> list[dict[str, Any]]:
        return [p for e, p in self.events if e == event]


def safe_notify(sink: NotificationSink | None, event: NotificationEvent, payload: dict[str, Any]) -> None:
    """Fire-and-forget: delivery failures never roll back financial state."""
    if sink is None:
        return
    try:
        sink.notify(event, payload)
    except Exception as exc:
        logger.warning("notification delivery failed event=%s pool=%s err=%s", event, payload.get("pool_id"), exc)


def get_notification_sink(settings) -> NotificationSink:
    url = (settings.NOTIFY_WEBHOOK_URL or "").strip()
    if url:
        return WebhookNotificationSink(url)
    return LoggingNotificationSink()
