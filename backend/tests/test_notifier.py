import pytest
import requests

from medstore.adapters.notifier import (
    LogNotifier,
    NotificationError,
    WebhookNotifier,
    build_notifier,
)

PAYLOAD = {
    "prescription_id": 7,
    "buyer_id": "buyer-1",
    "decision": "rejected",
    "reviewer_name": "Pharmacist",
    "comments": None,
    "rejection_reason": "unreadable",
}


class FakeSession:
    def __init__(self, status_code=202, error=None):
        self.status_code = status_code
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        if self.error:
            raise self.error
        r = requests.Response()
        r.status_code = self.status_code
        r.url = url
        return r


def test_webhook_posts_json():
    session = FakeSession()
    WebhookNotifier("http://notify.local/rx", timeout=2, session=session).send_prescription_update(PAYLOAD)
    assert session.calls == [("http://notify.local/rx", PAYLOAD, 2)]


def test_webhook_error_status_raises():
    notifier = WebhookNotifier("http://notify.local/rx", session=FakeSession(status_code=500))
    with pytest.raises(NotificationError):
        notifier.send_prescription_update(PAYLOAD)


def test_webhook_connection_error_raises():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(NotificationError):
        WebhookNotifier("http://notify.local/rx", session=session).send_prescription_update(PAYLOAD)


def test_log_notifier_records_and_fails_on_demand():
    ok = LogNotifier()
    ok.send_prescription_update(PAYLOAD)
    assert ok.sent == [PAYLOAD]

    with pytest.raises(NotificationError):
        LogNotifier(fail=True).send_prescription_update(PAYLOAD)


def test_default_notifier_logs():
    assert isinstance(build_notifier(), LogNotifier)
