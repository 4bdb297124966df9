import logging
from typing import Any

import httpx

from booking_engine.application.interfaces.notification_dispatcher import NotificationDispatcher
from booking_engine.infrastructure.circuit_breaker import call_with_breaker, notification_breaker

logger = logging.getLogger(__name__)


class WebhookNotificationDispatcher(NotificationDispatcher):
    """Posts booking lifecycle events to the configured webhook (email service, chat, etc.)."""

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds

    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        body = {"event": event, "booking": payload}

        async def _make_request():
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._webhook_url, json=body)
            response.raise_for_status()

        try:
            await call_with_breaker(notification_breaker, _make_request)
        except httpx.TimeoutException:
            logger.warning(
                "Notification webhook timeout",
                extra={"event": event, "timeout": self._timeout},
            )
            raise
        logger.info("Notification sent", extra={"event": event, "booking_id": payload.get("id")})
