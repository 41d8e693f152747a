import json

import httpx

from interface.notifiers.base import Notification, NotificationPriority
from interface.notifiers.log_notifier import LogNotifier
from interface.notifiers.webhook_notifier import WebhookNotifier


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_slack_payload():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200)

    notifier = WebhookNotifier({"webhook_url": "http://hooks.test/x", "type": "slack"}, client=_client(handler))
    assert notifier.send(Notification(title="Major goal achieved!", message="Health")) is True
    assert seen == [{"text": "*Major goal achieved!*\nHealth"}]


def test_generic_payload_carries_data():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    notifier = WebhookNotifier({"webhook_url": "http://hooks.test/x"}, client=_client(handler))
    notifier.send(Notification(title="t", message="m", priority=NotificationPriority.HIGH, node_id="major_1"))
    assert seen[0]["priority"] == "high"
    assert seen[0]["node_id"] == "major_1"


def test_http_errors_are_reported_as_failure():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    notifier = WebhookNotifier({"webhook_url": "http://hooks.test/x"}, client=_client(refuse))
    assert notifier.send(Notification(title="t", message="m")) is False

    notifier = WebhookNotifier(
        {"webhook_url": "http://hooks.test/x"}, client=_client(lambda request: httpx.Response(500))
    )
    assert notifier.send(Notification(title="t", message="m")) is False


def test_webhook_without_url_is_unavailable():
    assert WebhookNotifier({}).is_available() is False


def test_log_notifier(caplog):
    caplog.set_level("INFO", logger="mandala")
    assert LogNotifier().send(Notification(title="Goal achieved!", message="Health")) is True
    assert "Health" in caplog.text
    assert LogNotifier({"enabled": False}).send(Notification(title="x", message="y")) is False
