"""Unit tests for the notification webhook client"""

import uuid
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from good4it_gateway.domain.exceptions import NotificationDeliveryError
from good4it_gateway.domain.models import EventType, Notice
from good4it_gateway.infrastructure.clients.notifications import NotificationClient, notice_payload

WEBHOOK_URL = "http://notifications.test/notify"


@pytest.fixture
def notice() -> Notice:
    return Notice(
        recipient_id="alice",
        sender_id="bob",
        event_type=EventType.MONEY_REQUESTED,
        title="New Money Request",
        body="Bob wants to borrow $100.00 from you",
        amount_cents=10_000,
        related_request_id=uuid.UUID("12345678-1234-5678-1234-567812345678"),
    )


def response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", WEBHOOK_URL))


def test_notice_payload_is_json_ready(notice):
    payload = notice_payload(notice)

    assert payload["event_type"] == "money_request"
    assert payload["related_request_id"] == "12345678-1234-5678-1234-567812345678"
    assert payload["related_transaction_id"] is None


@patch("good4it_gateway.infrastructure.clients.notifications.asyncio.sleep", new_callable=AsyncMock)
@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_notify_retries_until_success(mock_post: AsyncMock, mock_sleep: AsyncMock, notice):
    mock_post.side_effect = [
        response(503),
        httpx.ConnectError("connection refused"),
        response(202),
    ]

    await NotificationClient(webhook_url=WEBHOOK_URL).notify(notice)

    assert mock_post.call_count == 3
    assert mock_post.call_args.kwargs["json"]["recipient_id"] == "alice"
    # exponential backoff between attempts
    client = NotificationClient(webhook_url=WEBHOOK_URL)
    assert [c.args[0] for c in mock_sleep.call_args_list] == [client.backoff_base, client.backoff_base * 2]


@patch("good4it_gateway.infrastructure.clients.notifications.asyncio.sleep", new_callable=AsyncMock)
@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_notify_gives_up(mock_post: AsyncMock, mock_sleep: AsyncMock, notice):
    mock_post.return_value = response(500)
    client = NotificationClient(webhook_url=WEBHOOK_URL)

    with pytest.raises(NotificationDeliveryError):
        await client.notify(notice)

    assert mock_post.call_count == client.max_retries
    assert mock_sleep.call_count == client.max_retries - 1
