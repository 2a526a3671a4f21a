"""Notification webhook client with exponential backoff retry logic"""

import asyncio
from dataclasses import asdict
from typing import Any, Dict

import httpx

from good4it_gateway.config import settings
from good4it_gateway.domain.exceptions import NotificationDeliveryError
from good4it_gateway.domain.models import Notice
from good4it_gateway.infrastructure.observability.metrics import (
    notification_latency_histogram,
    notification_retry_counter,
)


def notice_payload(notice: Notice) -> Dict[str, Any]:
    payload = asdict(notice)
    payload["event_type"] = notice.event_type.value
    for key in ("related_transaction_id", "related_request_id"):
        if payload[key] is not None:
            payload[key] = str(payload[key])
    return payload


class NotificationClient:
    """Client for posting user notices to the notification service"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds

    async def notify(self, notice: Notice) -> None:
        """
        Deliver one notice with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1), i.e. 1s, 2s, 4s, 8s
        - Retries on 5xx/4xx responses and network failures

        Raises:
            NotificationDeliveryError: All attempts failed
        """
        payload = notice_payload(notice)
        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload, timeout=self.timeout)
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_retry_counter.inc()

                    if attempt >= self.max_retries:
                        raise NotificationDeliveryError(
                            f"Notification to {notice.recipient_id} failed after {attempt} attempts: {e}"
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
