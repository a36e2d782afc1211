"""Fake channel adapter: records sent messages for testing."""

from uuid import uuid4

from notifications.channel.port import NotificationChannelPort


class FakeChannel(NotificationChannelPort):
    """Channel adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.raise_error = False
        self.failure_reason = "Delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        raise_error: bool = False,
        failure_reason: str = "Delivery failed",
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.raise_error = raise_error
        self.failure_reason = failure_reason

    def send(self, recipient_id: str, subject: str, body: str, context: dict | None = None) -> dict:
        if self.raise_error:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "to": recipient_id,
                "subject": subject,
                "body": body,
                "context": dict(context or {}),
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def sent_to(self, recipient_id: str) -> list[dict]:
        return [message for message in self.sent if message["to"] == recipient_id]

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.raise_error = False
        self.failure_reason = "Delivery failed"
