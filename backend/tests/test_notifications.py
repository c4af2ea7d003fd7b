import json
import logging

import httpx

from control_tower.core.events import (
    APPROVAL_COMPLETED,
    DEPLOYMENT_CREATED,
    DEPLOYMENT_STATUS_CHANGED,
    EventBus,
)
from control_tower.services.notifications import (
    WebhookNotifier,
    collect_recipients,
    log_event,
    register_default_listeners,
)

PAYLOAD = {
    "deployment": {"id": "d-1", "notification_emails": ["Ops@Example.com", "ops@example.com", "pm@example.com"]},
    "product": {"id": "p-1", "name": "P1", "notification_emails": ["PM@example.com", "owner@example.com"]},
    "fromStatus": "Blocked",
    "toStatus": "Released",
    "author": "Bob",
}


def test_collect_recipients_dedupes_case_insensitively():
    assert collect_recipients(PAYLOAD) == ["ops@example.com", "pm@example.com", "owner@example.com"]
    assert collect_recipients({}) == []


def test_webhook_posts_event_body():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    WebhookNotifier("https://hooks.example.com/ct", client=client)(DEPLOYMENT_STATUS_CHANGED, PAYLOAD)

    [body] = seen
    assert body["event"] == DEPLOYMENT_STATUS_CHANGED
    assert body["recipients"] == ["ops@example.com", "pm@example.com", "owner@example.com"]
    assert body["payload"]["toStatus"] == "Released"


def test_webhook_failure_is_logged_not_raised(caplog):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    notifier = WebhookNotifier("https://hooks.example.com/ct", client=client)

    with caplog.at_level(logging.WARNING, logger="control_tower.services.notifications"):
        notifier(APPROVAL_COMPLETED, {"approval": {"id": "a-1"}, "result": "approved"})

    assert "Webhook delivery" in caplog.text


def test_log_event_describes_transition(caplog):
    with caplog.at_level(logging.INFO, logger="control_tower.services.notifications"):
        log_event(DEPLOYMENT_STATUS_CHANGED, PAYLOAD)
    assert "Blocked -> Released" in caplog.text


def test_register_default_listeners_is_idempotent():
    bus = EventBus()
    register_default_listeners(bus)
    register_default_listeners(bus)

    assert bus.listeners(DEPLOYMENT_CREATED) == [log_event]
    assert bus.listeners(DEPLOYMENT_STATUS_CHANGED) == [log_event]


def test_bus_isolates_failing_listeners(caplog):
    bus = EventBus()
    delivered = []

    def broken(name, payload):
        raise RuntimeError("boom")

    bus.subscribe(DEPLOYMENT_CREATED, broken)
    bus.subscribe(DEPLOYMENT_CREATED, lambda name, payload: delivered.append(payload))

    with caplog.at_level(logging.ERROR, logger="control_tower.core.events"):
        count = bus.publish(DEPLOYMENT_CREATED, {"deployment": {}})

    assert count == 1
    assert delivered == [{"deployment": {}}]
    assert "failed for deployment.created" in caplog.text
