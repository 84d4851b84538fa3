"""Delivery channels for email/push notifications."""

from typing import Any, Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)


class NotificationDeliveryError(Exception):
    """Raised when webhook delivery fails after retries."""


class DeliveryChannel(Protocol):
    async def deliver(self, channel: str, message: dict[str, Any]) -> None: ...


class LogChannel:
    """Records deliveries in the log only. Used when no webhook is configured."""

    async def deliver(self, channel: str, message: dict[str, Any]) -> None:
        logger.info(
            "notification_delivered",
            channel=channel,
            recipient=message.get("recipient"),
            notification_type=message.get("type"),
            sink="log",
        )


class WebhookChannel:
    """Delivers notifications to an HTTP webhook with retry logic."""

    def __init__(
        self,
        webhook_url: str,
        max_retries: int = 3,
        timeout: float = 10.0,
    ):
        """
        Initialize webhook channel.

        Args:
            webhook_url: Endpoint that performs the actual email/push send
            max_retries: Maximum attempts per delivery
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.max_retries = max_retries
        self.timeout = timeout

    async def deliver(self, channel: str, message: dict[str, Any]) -> None:
        """
        POST the message to the webhook.

        Raises:
            NotificationDeliveryError: If delivery fails after retries
        """
        body = {"channel": channel, **message}

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.webhook_url, json=body)
                    response.raise_for_status()

                logger.info(
                    "notification_delivered",
                    channel=channel,
                    recipient=message.get("recipient"),
                    notification_type=message.get("type"),
                    attempt=attempt + 1,
                    sink="webhook",
                )
                return

            except httpx.TimeoutException as e:
                logger.warning(
                    "notification_webhook_timeout",
                    channel=channel,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                if attempt + 1 >= self.max_retries:
                    raise NotificationDeliveryError(
                        f"Notification webhook timeout after {self.max_retries} attempts"
                    ) from e

            except httpx.HTTPStatusError as e:
                logger.warning(
                    "notification_webhook_http_error",
                    channel=channel,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    status_code=e.response.status_code,
                )
                # 4xx will not succeed on retry
                if e.response.status_code < 500 or attempt + 1 >= self.max_retries:
                    raise NotificationDeliveryError(
                        f"Notification webhook failed with status {e.response.status_code}"
                    ) from e

            except httpx.HTTPError as e:
                logger.warning(
                    "notification_webhook_error",
                    channel=channel,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                if attempt + 1 >= self.max_retries:
                    raise NotificationDeliveryError(
                        f"Notification webhook error after {self.max_retries} attempts: {e}"
                    ) from e
