from __future__ import annotations

from typing import Sequence

from ..errors import ValidationError
from ..models import Notification, NotificationType, User
from ..references import resolve
from ..registry import Collection, ModelRegistry


class NotificationService:
    def __init__(self, registry: ModelRegistry):
        self._registry = registry
        self._notifications: Collection[Notification] = registry.get("Notification")

    def create(
        self,
        *,
        title: str,
        body: str,
        sent_to: Sequence[str],
        type: NotificationType | str | None = None,
        notification_from_user: str | None = None,
    ) -> Notification:
        # The schema accepts an empty recipient list; a dispatched notification may not.
        if sent_to is None or (not isinstance(sent_to, str) and len(sent_to) == 0):
            raise ValidationError(
                message="sentTo: at least one recipient is required",
                collection="Notification",
                field="sentTo",
            )
        data = {
            "title": title,
            "body": body,
            "sentTo": sent_to if isinstance(sent_to, str) else list(sent_to),
            "type": type,
            "notificationFromUser": notification_from_user,
        }
        return self._notifications.insert(data)

    def for_recipient(self, user_id: str) -> list[Notification]:
        """Notifications sent to ``user_id``, newest first."""
        items = self._notifications.find({"sentTo": str(user_id or "").strip()})
        return sorted(items, key=lambda n: (n.createdAt, n.id), reverse=True)

    def get(self, notification_id: str) -> Notification | None:
        return self._notifications.find_by_id(notification_id)

    def delete(self, notification_id: str) -> None:
        self._notifications.remove(notification_id)

    def recipients(self, notification: Notification) -> list[User | None]:
        """``sentTo`` resolved in order; ids of users that no longer exist give None."""
        return resolve(self._registry, notification, "sentTo")
