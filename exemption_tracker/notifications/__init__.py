"""Notifications package."""

from exemption_tracker.notifications.center import (
    NotificationCenter,
    NotificationSink,
    latest,
)

__all__ = ["NotificationCenter", "NotificationSink", "latest"]
