from typing import Any


class NotificationDispatcher:
    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError
