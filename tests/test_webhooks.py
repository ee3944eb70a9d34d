"""
Tests for webhook notification of store changes.
"""
import hashlib
import hmac
import json
import logging
import pytest
from unittest.mock import MagicMock

import httpx

from clientdesk.app import create_registry
from clientdesk.config import Settings
from clientdesk.constants import StoreName
from clientdesk.storage import ChangeAction, MemoryArea
from clientdesk.webhooks import WebhookNotifier, sign_payload


def make_notifier(handler, sleep=None, **kwargs):
    """Helper building a notifier whose HTTP calls go to handler."""
    return WebhookNotifier(
        "https://hooks.example.com/clientdesk",
        client_factory=lambda: httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=sleep or MagicMock(),
        **kwargs
    )


def test_successful_delivery(clock):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    notifier = make_notifier(handler, clock=clock)
    record = {"id": "c1", "companyName": "Acme"}

    assert notifier.send("clients", ChangeAction.CREATE, record) is True
    assert len(requests) == 1

    request = requests[0]
    body = json.loads(request.content)
    assert request.method == "POST"
    assert str(request.url) == "https://hooks.example.com/clientdesk"
    assert body["event"] == "clients.create"
    assert body["store"] == "clients"
    assert body["action"] == "create"
    assert body["data"] == record
    assert request.headers["X-Webhook-Event"] == "clients.create"
    assert request.headers["X-Webhook-Timestamp"] == body["timestamp"]
    assert "X-Webhook-Signature" not in request.headers


def test_signature_header():
    captured = {}

    def handler(request):
        captured["request"] = request
        return httpx.Response(204)

    notifier = make_notifier(handler, secret="s3cret")
    notifier.send("projects", ChangeAction.UPDATE, {"id": "p1"})

    request = captured["request"]
    expected = hmac.new(b"s3cret", request.content, hashlib.sha256).hexdigest()
    assert request.headers["X-Webhook-Signature"] == f"sha256={expected}"
    assert sign_payload("s3cret", request.content.decode("utf-8")) == expected


def test_retries_with_backoff_then_fails():
    attempts = []
    sleep = MagicMock()

    def handler(request):
        attempts.append(request)
        return httpx.Response(503)

    notifier = make_notifier(handler, sleep=sleep, retry_count=4)

    assert notifier.send("clients", ChangeAction.DELETE, {"id": "c1"}) is False
    assert len(attempts) == 4
    assert [c.args[0] for c in sleep.call_args_list] == [1, 2, 4]


def test_recovers_after_transport_error():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200)

    sleep = MagicMock()
    notifier = make_notifier(handler, sleep=sleep)

    assert notifier.send("clients", ChangeAction.CLEAR, []) is True
    assert len(attempts) == 2
    sleep.assert_called_once_with(1)


def test_timeout_counts_as_failed_attempt():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    notifier = make_notifier(handler, retry_count=2)
    assert notifier.send("clients", ChangeAction.CREATE, {"id": "c1"}) is False


def test_notifier_as_registry_listener(registry):
    events = []

    def handler(request):
        events.append(json.loads(request.content))
        return httpx.Response(200)

    registry.subscribe(make_notifier(handler))
    quote = registry.get(StoreName.QUOTES).create({"projectId": "p1"})
    registry.get(StoreName.QUOTES).delete(quote["id"])

    assert [e["event"] for e in events] == ["quotes.create", "quotes.delete"]
    assert events[0]["data"] == quote


def test_app_factory_attaches_notifier(monkeypatch):
    sent = []
    monkeypatch.setattr(
        WebhookNotifier,
        "send",
        lambda self, store_name, action, data: sent.append((self.url, store_name, action)) or True
    )
    settings = Settings(
        storage_backend="memory",
        auto_save=False,
        webhook_url="https://hooks.example.com/x",
    )

    registry = create_registry(settings, area=MemoryArea())
    registry.get(StoreName.CONTRACTS).create({"projectId": "p1"})

    assert sent == [("https://hooks.example.com/x", "contracts", ChangeAction.CREATE)]


def test_app_factory_warns_about_blocking_delivery(caplog):
    settings = Settings(
        storage_backend="memory",
        auto_save=False,
        webhook_url="https://hooks.example.com/x",
        webhook_timeout=10.0,
        webhook_retries=3,
    )

    with caplog.at_level(logging.WARNING, logger="clientdesk.app"):
        create_registry(settings, area=MemoryArea())

    assert "up to 33s" in caplog.text


def test_app_factory_without_webhook(monkeypatch):
    send = MagicMock()
    monkeypatch.setattr(WebhookNotifier, "send", send)

    registry = create_registry(
        Settings(storage_backend="memory", auto_save=False, webhook_url=None),
        area=MemoryArea()
    )
    registry.get(StoreName.CONTRACTS).create({"projectId": "p1"})

    send.assert_not_called()
