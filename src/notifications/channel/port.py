"""Notification channel port: abstract interface for message delivery."""

from abc import ABC, abstractmethod


class NotificationChannelPort(ABC):
    """Abstract interface for notification delivery adapters."""

    @abstractmethod
    def send(self, recipient_id: str, subject: str, body: str, context: dict | None = None) -> dict:
        """Deliver one message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
