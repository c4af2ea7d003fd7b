"""Module: notifications.

Listeners for deployment and approval domain events. Delivery is best-effort;
a failing webhook is logged and dropped.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from control_tower.core.config import settings
from control_tower.core.events import (
    APPROVAL_COMPLETED,
    DEPLOYMENT_CREATED,
    DEPLOYMENT_STATUS_CHANGED,
    EventBus,
)

logger = logging.getLogger(__name__)

NOTIFIED_EVENTS = (DEPLOYMENT_CREATED, DEPLOYMENT_STATUS_CHANGED, APPROVAL_COMPLETED)


def collect_recipients(payload: dict[str, Any]) -> list[str]:
    """Deployment addresses first, then the product's; lowercased, deduplicated."""
    seen: dict[str, None] = {}
    for source in ("deployment", "product"):
        for email in (payload.get(source) or {}).get("notification_emails") or []:
            seen.setdefault(email.lower(), None)
    return list(seen)


def log_event(event_name: str, payload: dict[str, Any]) -> None:
    if event_name == DEPLOYMENT_STATUS_CHANGED:
        deployment = payload.get("deployment") or {}
        logger.info(
            "Deployment %s moved %s -> %s (notify: %s)",
            deployment.get("id"),
            payload.get("fromStatus"),
            payload.get("toStatus"),
            ", ".join(collect_recipients(payload)) or "nobody",
        )
    elif event_name == APPROVAL_COMPLETED:
        approval = payload.get("approval") or {}
        logger.info("Approval %s completed: %s", approval.get("id"), payload.get("result"))
    else:
        logger.info("Domain event %s", event_name)


class WebhookNotifier:
    """POSTs ``{"event": ..., "payload": ...}`` to a configured URL."""

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    def __call__(self, event_name: str, payload: dict[str, Any]) -> None:
        body = {"event": event_name, "recipients": collect_recipients(payload), "payload": payload}
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=body, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery of %s to %s failed: %s", event_name, self.url, exc)


def register_default_listeners(bus: EventBus) -> None:
    for event_name in NOTIFIED_EVENTS:
        bus.subscribe(event_name, log_event)

    if settings.notification_webhook_url:
        notifier = WebhookNotifier(settings.notification_webhook_url, timeout=settings.notification_timeout_seconds)
        for event_name in (DEPLOYMENT_STATUS_CHANGED, APPROVAL_COMPLETED):
            bus.subscribe(event_name, notifier)
