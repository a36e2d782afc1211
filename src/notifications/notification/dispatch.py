"""Notification delivery: commands, their handler and the dispatcher used by the flows.

Every event handed to the dispatcher is recorded as a ``Notification``
aggregate. Two processing modes, selected by ``MERCHSTREAM_NOTIFICATION_PROCESSING``:

- ``sync``: deliver inline, in the caller's thread (tests, development)
- ``async``: record as PENDING; an APScheduler interval job delivers pending
  notifications in the background

Delivery never raises to the caller. A failed delivery leaves the
notification FAILED with its reason, where ``failures`` can find it.
"""

import json

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger
from protean.fields import Boolean, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from notifications.channel import get_channel
from notifications.domain import notifications
from notifications.notification.notification import (
    Notification,
    NotificationEvent,
    NotificationStatus,
)

logger = structlog.get_logger(__name__)

JOB_ID = "deliver_pending_notifications"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@notifications.command(part_of="Notification")
class SendNotification:
    """Record a notification and, when ``deliver_now`` is set, deliver it immediately."""

    recipient_id: Identifier(required=True)
    notification_type: String(required=True)
    subject: String(max_length=500)
    body: Text(required=True)
    context_data: Text()
    source_event_id: String(max_length=200)
    deliver_now: Boolean(default=True)


@notifications.command(part_of="Notification")
class DeliverPendingNotifications:
    """Deliver PENDING notifications, oldest first."""

    limit: Integer(default=100)


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------
@notifications.command_handler(part_of=Notification)
class NotificationDeliveryHandler:
    @handle(SendNotification)
    def send_notification(self, command: SendNotification) -> str:
        notification = Notification.create(
            recipient_id=command.recipient_id,
            notification_type=command.notification_type,
            subject=command.subject,
            body=command.body,
            context_data=command.context_data,
            source_event_id=command.source_event_id,
        )
        if command.deliver_now:
            _deliver(notification)

        current_domain.repository_for(Notification).add(notification)
        return str(notification.id)

    @handle(DeliverPendingNotifications)
    def deliver_pending(self, command: DeliverPendingNotifications) -> int:
        repo = current_domain.repository_for(Notification)
        pending = (
            repo._dao.query.filter(status=NotificationStatus.PENDING.value)
            .order_by("created_at")
            .limit(command.limit)
            .all()
            .items
        )

        for notification in pending:
            _deliver(notification)
            repo.add(notification)

        logger.info("Pending notifications processed", dispatched=len(pending))
        return len(pending)


def _deliver(notification: Notification) -> None:
    """Send through the installed channel and mark the outcome on the aggregate."""
    context = json.loads(notification.context_data) if notification.context_data else {}
    try:
        result = get_channel().send(
            recipient_id=str(notification.recipient_id),
            subject=notification.subject or "",
            body=notification.body,
            context={"type": notification.notification_type, **context},
        )

        if result.get("status") == "sent":
            notification.mark_sent()
        else:
            notification.mark_failed(result.get("error", "Unknown dispatch error"))
    except Exception as e:
        notification.mark_failed(str(e))

    if notification.status == NotificationStatus.SENT.value:
        logger.info(
            "Notification sent",
            notification_id=str(notification.id),
            type=notification.notification_type,
            recipient_id=str(notification.recipient_id),
        )
    else:
        logger.error(
            "Notification dispatch failed",
            notification_id=str(notification.id),
            type=notification.notification_type,
            recipient_id=str(notification.recipient_id),
            error=notification.failure_reason,
        )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------
class NotificationDispatcher:
    """Entry point for the business flows; runs each call in the notifications domain."""

    def __init__(
        self,
        mode: str = "sync",
        interval_seconds: int = 5,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        if mode not in ("sync", "async"):
            raise ValueError(f"Unknown notification processing mode: {mode}")
        self.mode = mode
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler

    def dispatch(self, event: NotificationEvent) -> None:
        command = SendNotification(
            recipient_id=event.recipient_id,
            notification_type=event.type.value,
            subject=event.subject,
            body=event.body,
            context_data=json.dumps(event.context, default=str),
            source_event_id=event.id,
            deliver_now=self.mode == "sync",
        )
        try:
            with notifications.domain_context():
                current_domain.process(command, asynchronous=False)
        except Exception as exc:
            # The business transaction has already committed
            logger.error(
                "Notification could not be recorded",
                source_event_id=event.id,
                type=event.type.value,
                recipient_id=event.recipient_id,
                error=str(exc),
                exc_info=True,
            )

    def dispatch_all(self, events: list[NotificationEvent]) -> None:
        for event in events:
            self.dispatch(event)

    def deliver_pending(self, limit: int = 100) -> int:
        """Deliver up to ``limit`` PENDING notifications; returns how many were attempted."""
        with notifications.domain_context():
            return current_domain.process(DeliverPendingNotifications(limit=limit), asynchronous=False)

    def failures(self, limit: int = 50) -> list[Notification]:
        """Most recent FAILED notifications, newest first."""
        with notifications.domain_context():
            repo = current_domain.repository_for(Notification)
            return (
                repo._dao.query.filter(status=NotificationStatus.FAILED.value)
                .order_by("-created_at")
                .limit(limit)
                .all()
                .items
            )

    # -------------------------------------------------------------------
    # Background delivery (async mode)
    # -------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _run_job(self) -> None:
        try:
            self.deliver_pending()
        except Exception as exc:
            logger.error("Notification delivery job failed", error=str(exc), exc_info=True)

    def start(self) -> None:
        if self.mode != "async" or self.running:
            return
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=JOB_ID,
            name="Deliver pending notifications",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Notification delivery started", interval_seconds=self._interval_seconds)

    def stop(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification delivery stopped")
