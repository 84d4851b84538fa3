"""Tests for notification delivery channels."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from enrollq.services.notifications.channels import (
    LogChannel,
    NotificationDeliveryError,
    WebhookChannel,
)


@pytest.fixture
def message():
    return {
        "recipient": "5f1c2a4e-0000-4000-8000-000000000001",
        "email": "student@example.com",
        "type": "enrollment_confirmed",
        "title": "Enrollment Confirmed: Biology 101",
        "message": "You have been successfully enrolled in Biology 101.",
        "data": {"class_id": None, "response_deadline": None},
    }


def response(status_code: int) -> Mock:
    mock_response = Mock(spec=httpx.Response)
    mock_response.status_code = status_code
    if status_code >= 400:
        mock_response.raise_for_status = Mock(
            side_effect=httpx.HTTPStatusError("", request=Mock(), response=mock_response)
        )
    else:
        mock_response.raise_for_status = Mock()
    return mock_response


class TestLogChannel:
    @pytest.mark.asyncio
    async def test_deliver_does_not_raise(self, message):
        await LogChannel().deliver("email", message)


class TestWebhookChannel:
    @pytest.mark.asyncio
    async def test_deliver_success(self, message):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = response(200)

            channel = WebhookChannel("https://notify.example.com/send")
            await channel.deliver("email", message)

            assert mock_post.call_count == 1
            body = mock_post.call_args.kwargs["json"]
            assert body["channel"] == "email"
            assert body["recipient"] == message["recipient"]

    @pytest.mark.asyncio
    async def test_retry_eventual_success(self, message):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = [response(503), response(200)]

            channel = WebhookChannel("https://notify.example.com/send", max_retries=3)
            await channel.deliver("push", message)

            assert mock_post.call_count == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, message):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = response(422)

            channel = WebhookChannel("https://notify.example.com/send", max_retries=3)
            with pytest.raises(NotificationDeliveryError) as exc_info:
                await channel.deliver("email", message)

            assert "422" in str(exc_info.value)
            assert mock_post.call_count == 1

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, message):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = response(500)

            channel = WebhookChannel("https://notify.example.com/send", max_retries=3)
            with pytest.raises(NotificationDeliveryError):
                await channel.deliver("email", message)

            assert mock_post.call_count == 3

    @pytest.mark.asyncio
    async def test_timeout_exhausts_retries(self, message):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = httpx.TimeoutException("")

            channel = WebhookChannel("https://notify.example.com/send", max_retries=2)
            with pytest.raises(NotificationDeliveryError) as exc_info:
                await channel.deliver("email", message)

            assert "timeout" in str(exc_info.value).lower()
            assert mock_post.call_count == 2

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self, message):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = [httpx.ConnectError("refused"), response(200)]

            channel = WebhookChannel("https://notify.example.com/send", max_retries=2)
            await channel.deliver("email", message)

            assert mock_post.call_count == 2
