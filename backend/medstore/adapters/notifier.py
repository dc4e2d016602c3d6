import logging
from typing import Dict, List, Optional

import requests

from medstore.config import settings

log = logging.getLogger(__name__)


class NotificationError(Exception):
    pass


class LogNotifier:
    """
    Default notification sender: logs the prescription update and keeps it in
    `sent` (handy for inspection in tests and local runs).
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict] = []

    def send_prescription_update(self, payload: Dict):
        if self.fail:
            raise NotificationError("Simulated notification failure")
        self.sent.append(payload)
        log.info(
            "Prescription %s %s by %s (buyer %s)",
            payload.get("prescription_id"),
            payload.get("decision"),
            payload.get("reviewer_name"),
            payload.get("buyer_id"),
        )


class WebhookNotifier:
    """POSTs the prescription update to an email/notification service."""

    def __init__(
        self,
        url: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout or settings.NOTIFY_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def send_prescription_update(self, payload: Dict):
        try:
            r = self.session.post(self.url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise NotificationError(f"Notification webhook failed: {e}") from e


def build_notifier():
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(settings.NOTIFY_WEBHOOK_URL)
    return LogNotifier()
