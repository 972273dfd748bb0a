# app/notifications/dispatcher.py
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.notifications.http import HttpClient
from services.metrics import increment_notification
from services.observability import get_request_id
from services.redaction import redact_dict
from settings import settings

logger = logging.getLogger("affiliatehub.notify")

NEW_PAYOUT_REQUEST_ADMIN = "new_payout_request_admin"
PAYOUT_APPROVED = "payout_approved"
PAYOUT_REJECTED = "payout_rejected"
PAYOUT_COMPLETED = "payout_completed"
PAYOUT_CREATED = "payout_created"


class NotificationDispatcher:
    """
    Fire-and-forget webhook to the email/notification service.

    send() never raises and never retries: a lost notification is logged and
    counted, the payout it describes is already committed.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = (url if url is not None else settings.NOTIFY_URL or "").strip()
        self.api_key = api_key if api_key is not None else settings.NOTIFY_API_KEY
        self._timeout_s = float(timeout_s if timeout_s is not None else settings.NOTIFY_TIMEOUT_S)
        self._transport = transport
        self._http: HttpClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _client(self) -> HttpClient:
        if self._http is None:
            self._http = HttpClient(timeout_s=self._timeout_s, transport=self._transport)
        return self._http

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        rid = get_request_id()
        if rid:
            headers["X-Request-ID"] = rid
        return headers

    def send(self, event_type: str, payload: dict[str, Any]) -> bool:
        if not self.enabled:
            increment_notification(event_type, "disabled")
            return False

        body = {"type": event_type, **(payload or {})}
        try:
            resp = self._client().post(self.url, headers=self._headers(), json_body=body)
        except Exception:
            increment_notification(event_type, "error")
            logger.exception("notification failed type=%s", event_type)
            return False

        if not resp.ok:
            increment_notification(event_type, "error")
            logger.warning(
                "notification rejected type=%s status=%s payload=%s",
                event_type,
                resp.status_code,
                redact_dict(payload or {}),
            )
            return False

        increment_notification(event_type, "sent")
        logger.info("notification sent type=%s", event_type)
        return True


_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher
