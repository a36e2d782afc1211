"""Log channel adapter: writes messages to the structured log.

Used until a real provider (email, push) is configured.
"""

from uuid import uuid4

import structlog

from notifications.channel.port import NotificationChannelPort

logger = structlog.get_logger(__name__)


class LogChannel(NotificationChannelPort):
    def send(self, recipient_id: str, subject: str, body: str, context: dict | None = None) -> dict:
        message_id = f"log-{uuid4().hex[:12]}"
        logger.info("Notification", message_id=message_id, to=recipient_id, subject=subject, body=body)
        return {"message_id": message_id, "status": "sent"}
