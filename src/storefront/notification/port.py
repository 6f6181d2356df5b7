"""Notification port: the order confirmation sent after payment capture."""

from abc import ABC, abstractmethod


class NotificationSender(ABC):
    """Abstract interface for customer notification adapters."""

    @abstractmethod
    def send_order_confirmation(self, customer_id: str, order_snapshot: dict) -> dict:
        """Send the order confirmation for a paid order.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
