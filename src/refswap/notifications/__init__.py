"""Swap outcome notifications."""

from refswap.notifications.base import LogNotifier, NotificationSink

__all__ = ["LogNotifier", "NotificationSink"]
