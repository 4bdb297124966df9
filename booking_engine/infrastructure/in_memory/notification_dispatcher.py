from typing import Any

from booking_engine.application.interfaces.notification_dispatcher import NotificationDispatcher


class InMemoryNotificationDispatcher(NotificationDispatcher):
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail = fail

    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError(f"Notification channel unavailable for {event}")
        self.sent.append((event, payload))
