"""Notification events and the Notification aggregate.

Events are built inside the business transaction (so they describe committed
state) and handed to the dispatcher only after the transaction commits. The
dispatcher records each one as a ``Notification`` and tracks its delivery.

State Machine:
    PENDING → SENT
    PENDING → FAILED
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from notifications.domain import notifications


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(Enum):
    ORDER_PAID = "OrderPaid"
    NEW_SALE = "NewSale"
    REFERRAL_EARNED = "ReferralEarned"
    ORDER_CANCELLED = "OrderCancelled"
    ORDER_SHIPPED = "OrderShipped"
    ORDER_DELIVERED = "OrderDelivered"
    RETURN_RESOLVED = "ReturnResolved"
    TICKET_CONFIRMED = "TicketConfirmed"
    TICKET_CANCELLED = "TicketCancelled"
    SHOW_CANCELLED = "ShowCancelled"


class NotificationStatus(Enum):
    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.SENT: set(),  # Terminal
    NotificationStatus.FAILED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Events handed over by the business flows
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class NotificationEvent:
    type: NotificationType
    recipient_id: str
    subject: str
    body: str
    context: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid4().hex)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class Notification:
    """A single message to a recipient and the outcome of delivering it."""

    recipient_id: Identifier(required=True)
    notification_type: String(choices=NotificationType, required=True)

    # Content
    subject: String(max_length=500)
    body: Text(required=True)
    context_data: Text()  # JSON passed to the channel with the message

    # Correlation with the NotificationEvent this was recorded from
    source_event_id: String(max_length=200)

    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    sent_at: DateTime()
    failure_reason: String(max_length=500)
    attempts: Integer(default=0)

    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create(
        cls,
        recipient_id,
        notification_type,
        body,
        subject=None,
        context_data=None,
        source_event_id=None,
    ):
        """Create a new notification in PENDING status."""
        now = datetime.now(UTC)
        return cls(
            recipient_id=recipient_id,
            notification_type=notification_type,
            subject=subject,
            body=body,
            context_data=context_data,
            source_event_id=source_event_id,
            status=NotificationStatus.PENDING.value,
            attempts=0,
            created_at=now,
            updated_at=now,
        )

    def _assert_can_transition(self, target_status):
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_sent(self, sent_at=None):
        self._assert_can_transition(NotificationStatus.SENT)

        now = sent_at or datetime.now(UTC)
        self.status = NotificationStatus.SENT.value
        self.sent_at = now
        self.attempts = (self.attempts or 0) + 1
        self.updated_at = now

    def mark_failed(self, reason):
        self._assert_can_transition(NotificationStatus.FAILED)

        now = datetime.now(UTC)
        self.status = NotificationStatus.FAILED.value
        self.failure_reason = reason[:500]
        self.attempts = (self.attempts or 0) + 1
        self.updated_at = now
