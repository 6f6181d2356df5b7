"""Fake notification sender: records confirmations for testing."""

from uuid import uuid4

from storefront.notification.port import NotificationSender


class NotificationError(Exception):
    """Raised by adapters whose transport is down."""


class FakeNotificationSender(NotificationSender):
    """Sender that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.raise_on_failure = False
        self.failure_reason = "Notification delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        raise_on_failure: bool = False,
        failure_reason: str = "Notification delivery failed",
    ):
        """Configure the fake sender behavior for testing."""
        self.should_succeed = should_succeed
        self.raise_on_failure = raise_on_failure
        self.failure_reason = failure_reason

    def send_order_confirmation(self, customer_id: str, order_snapshot: dict) -> dict:
        if not self.should_succeed:
            if self.raise_on_failure:
                raise NotificationError(self.failure_reason)
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"notif-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "customer_id": customer_id,
                "subject": f"Order Confirmation - {order_snapshot.get('order_number')}",
                "order": order_snapshot,
            }
        )
        return {"message_id": message_id, "status": "sent"}