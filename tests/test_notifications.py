"""Tests for the notification center."""

import pytest

from exemption_tracker.models.income import NotificationSeverity
from exemption_tracker.notifications import NotificationCenter, latest


class TestNotificationCenter:
    """Tests for queueing and reading notifications."""

    def test_newest_first(self, center):
        """Test that the latest notification is at the front."""
        center.notify("First", "one")
        center.notify("Second", "two", NotificationSeverity.WARNING)

        titles = [n.title for n in center.notifications]
        assert titles == ["Second", "First"]
        assert latest(center).severity == NotificationSeverity.WARNING

    def test_welcome_notification(self):
        """Test the optional welcome message."""
        center = NotificationCenter(welcome=True)
        assert latest(center).title == NotificationCenter.WELCOME_TITLE
        assert center.unread_count == 1

    def test_latest_on_empty_center(self, center):
        """Test that latest returns None without notifications."""
        assert latest(center) is None

    def test_latest_filtered_by_title(self, center):
        """Test that latest skips notifications with other titles."""
        center.notify("Approaching the limit", "6000 TRY left", NotificationSeverity.INFO)
        center.notify("Income added", "500 USD recorded", NotificationSeverity.SUCCESS)

        notice = latest(center, titles=("Approaching the limit", "Limit exceeded"))

        assert notice.message == "6000 TRY left"
        assert latest(center, titles=("Limit exceeded",)) is None

    def test_mark_as_read(self, center):
        """Test that reading lowers the unread count."""
        center.notify("Hello", "world")
        notification = center.notifications[0]

        assert center.mark_as_read(notification.id) is True
        assert center.unread_count == 0
        assert center.notifications[0].read is True

    def test_mark_unknown_as_read(self, center):
        """Test that unknown ids are reported."""
        from uuid import uuid4
        assert center.mark_as_read(uuid4()) is False

    def test_clear(self, center):
        """Test removing every notification."""
        center.notify("a", "b")
        center.clear()
        assert center.notifications == []

    def test_notifications_returns_a_copy(self, center):
        """Test that callers cannot mutate the internal list."""
        center.notify("a", "b")
        center.notifications.clear()
        assert len(center.notifications) == 1


class TestSubscribers:
    """Tests for change callbacks."""

    def test_subscriber_receives_snapshot(self, center):
        """Test that subscribers get the full list after a change."""
        received = []
        center.subscribe(received.append)

        center.notify("a", "b")

        assert len(received) == 1
        assert received[0][0].title == "a"

    def test_unsubscribe(self, center):
        """Test that an unsubscribed callback is no longer called."""
        received = []
        unsubscribe = center.subscribe(received.append)
        unsubscribe()

        center.notify("a", "b")
        assert received == []

    def test_failing_subscriber_does_not_block_others(self, center):
        """Test that one broken callback doesn't starve the rest."""
        def broken(_):
            raise RuntimeError("boom")

        received = []
        center.subscribe(broken)
        center.subscribe(received.append)

        center.notify("a", "b")

        assert len(received) == 1
        assert len(center.notifications) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
