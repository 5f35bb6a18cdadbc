"""
Notification Center

Holds the user's notification list and fans every change out to
subscribers (the UI re-renders from the callback).

DESIGN DECISION: The center is an explicit object passed to whoever
needs to raise notifications. There is no module-level instance.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Callable, Optional
from uuid import UUID

import structlog

from exemption_tracker.models.income import Notification, NotificationSeverity


Subscriber = Callable[[list[Notification]], None]

logger = structlog.get_logger()


class NotificationSink(ABC):
    """
    Anything that can receive user-facing notifications.

    Fire-and-forget: callers never consume a return value.
    """

    @abstractmethod
    def notify(
        self,
        title: str,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
    ) -> None:
        pass


class NotificationCenter(NotificationSink):
    """In-process notification queue with subscriber callbacks."""

    WELCOME_TITLE = "Welcome!"
    WELCOME_MESSAGE = "Start tracking your foreign income against the exemption limit."

    def __init__(self, welcome: bool = False):
        self._notifications: list[Notification] = []
        self._subscribers: list[Subscriber] = []
        if welcome:
            self._notifications.append(Notification(
                title=self.WELCOME_TITLE,
                message=self.WELCOME_MESSAGE,
                severity=NotificationSeverity.INFO,
            ))

    @property
    def notifications(self) -> list[Notification]:
        """Newest first."""
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    def notify(
        self,
        title: str,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
    ) -> None:
        notification = Notification(
            title=title,
            message=message,
            severity=NotificationSeverity(severity),
        )
        self._notifications.insert(0, notification)
        logger.info(
            "notification_added",
            title=title,
            severity=notification.severity.value,
        )
        self._publish()

    def mark_as_read(self, notification_id: UUID) -> bool:
        """
        Mark one notification as read.

        Returns False if no notification has that id.
        """
        for idx, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                if not notification.read:
                    self._notifications[idx] = notification.model_copy(update={"read": True})
                    self._publish()
                return True
        return False

    def clear(self) -> None:
        self._notifications = []
        self._publish()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback invoked with the full list after every change.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.notifications
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                # One broken subscriber must not starve the others
                logger.error(
                    "notification_subscriber_failed",
                    error=str(e),
                    subscriber=getattr(callback, "__name__", repr(callback)),
                )


def latest(
    center: NotificationCenter,
    titles: Optional[Iterable[str]] = None,
) -> Optional[Notification]:
    """Most recent notification, if any, optionally limited to the given titles."""
    wanted = set(titles) if titles is not None else None
    for notification in center.notifications:
        if wanted is None or notification.title in wanted:
            return notification
    return None
