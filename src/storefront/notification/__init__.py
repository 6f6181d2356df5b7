"""Notification sender registry.

Uses the fake sender by default; a real adapter is installed at startup
with set_sender().
"""

from storefront.notification.fake_sender import FakeNotificationSender
from storefront.notification.port import NotificationSender

_current_sender: NotificationSender | None = None


def get_sender() -> NotificationSender:
    """Return the current notification sender. Defaults to FakeNotificationSender."""
    global _current_sender
    if _current_sender is None:
        _current_sender = FakeNotificationSender()
    return _current_sender


def set_sender(sender: NotificationSender) -> None:
    global _current_sender
    _current_sender = sender


def reset_sender() -> None:
    global _current_sender
    _current_sender = None
