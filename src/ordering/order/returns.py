"""Returns: customer return requests on delivered orders and their resolution.

State Machine:
    OPEN → REVIEWING → APPROVED / REJECTED
    OPEN → APPROVED / REJECTED

An approved return with a refund moves the order to its terminal REFUNDED
state and cancels every commission that has not been settled yet.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

import structlog
from sqlalchemy import ForeignKey, String, Text, select
from sqlalchemy.orm import Mapped, mapped_column

from commissions.commission import cancel_pending_commissions
from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.notification import NotificationEvent, NotificationType
from ordering.order.order import Order, OrderStatus, assert_can_transition
from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import (
    InvalidTransition,
    PermissionDeniedError,
    ReturnAlreadyOpen,
    ReturnAlreadyResolved,
    ValidationError,
)

logger = structlog.get_logger(__name__)


class ReturnStatus(Enum):
    OPEN = "OPEN"
    REVIEWING = "REVIEWING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


_RETURN_TRANSITIONS = {
    ReturnStatus.OPEN: {ReturnStatus.REVIEWING, ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.REVIEWING: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: set(),
    ReturnStatus.REJECTED: set(),
}

_UNRESOLVED = (ReturnStatus.OPEN.value, ReturnStatus.REVIEWING.value)


class ReturnRequest(Base):
    __tablename__ = "return_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), index=True)
    customer_id: Mapped[str] = mapped_column(String(36), index=True)
    reason: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20))
    admin_notes: Mapped[str | None] = mapped_column(Text)
    resolved_by: Mapped[str | None] = mapped_column(String(36))
    resolved_at: Mapped[datetime | None]
    refunded: Mapped[bool]
    created_at: Mapped[datetime]

    @classmethod
    def create(cls, order_id: str, customer_id: str, reason: str, description: str | None = None) -> "ReturnRequest":
        if not (reason or "").strip():
            raise ValidationError({"reason": ["A reason is required"]})
        return cls(
            id=str(uuid4()),
            order_id=order_id,
            customer_id=customer_id,
            reason=reason.strip(),
            description=description,
            status=ReturnStatus.OPEN.value,
            refunded=False,
            created_at=utc_now(),
        )

    @property
    def is_resolved(self) -> bool:
        return self.status not in _UNRESOLVED


class ReturnService:
    def __init__(self, uow_factory, dispatcher: NotificationDispatcher) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher

    def request_return(
        self,
        order_id: str,
        customer_id: str,
        reason: str,
        description: str | None = None,
    ) -> ReturnRequest:
        with self._uow_factory() as uow:
            order = uow.repository_for(Order).get(order_id)
            if not order.is_owned_by(customer_id):
                raise PermissionDeniedError({"order": ["You do not have access to this order"]})
            if order.status != OrderStatus.DELIVERED.value:
                raise InvalidTransition({"status": ["Returns can only be requested for delivered orders"]})

            open_request = uow.session.scalar(
                select(ReturnRequest.id).where(
                    ReturnRequest.order_id == order_id,
                    ReturnRequest.status.in_(_UNRESOLVED),
                )
            )
            if open_request is not None:
                raise ReturnAlreadyOpen({"order": ["There is already an open return request for this order"]})

            request = uow.repository_for(ReturnRequest).add(
                ReturnRequest.create(order_id, customer_id, reason, description)
            )

        logger.info("Return requested", return_id=request.id, order_id=order_id)
        return request

    def start_review(self, return_id: str, admin_notes: str | None = None) -> ReturnRequest:
        with self._uow_factory() as uow:
            request = uow.repository_for(ReturnRequest).get(return_id)
            assert_can_transition(_RETURN_TRANSITIONS, ReturnStatus(request.status), ReturnStatus.REVIEWING)
            request.status = ReturnStatus.REVIEWING.value
            if admin_notes:
                request.admin_notes = admin_notes
        return request

    def resolve_return(
        self,
        return_id: str,
        status: str,
        resolved_by: str,
        admin_notes: str | None = None,
        refund: bool = False,
    ) -> ReturnRequest:
        try:
            target = ReturnStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown return status `{status}`"]}) from None
        if target not in (ReturnStatus.APPROVED, ReturnStatus.REJECTED):
            raise ValidationError({"status": ["A return can only be resolved as APPROVED or REJECTED"]})

        with self._uow_factory() as uow:
            request = uow.repository_for(ReturnRequest).get(return_id)
            if request.is_resolved:
                raise ReturnAlreadyResolved({"status": [f"Return request is already {request.status}"]})

            now = utc_now()
            request.status = target.value
            request.admin_notes = admin_notes
            request.resolved_by = resolved_by
            request.resolved_at = now

            order = uow.repository_for(Order).get(request.order_id)
            if target == ReturnStatus.APPROVED and refund:
                order.mark_refunded(as_of=now)
                request.refunded = True
                cancelled = cancel_pending_commissions(uow, order_id=order.id)
                logger.info("Order refunded", order_id=order.id, commissions_cancelled=cancelled)

            event = NotificationEvent(
                type=NotificationType.RETURN_RESOLVED,
                recipient_id=request.customer_id,
                subject=f"Return request for order {order.order_number} {target.value.lower()}",
                body=admin_notes or f"Your return request was {target.value.lower()}.",
                context={"order_id": order.id, "return_id": request.id, "refunded": request.refunded},
            )
            uow.on_commit(lambda: self._dispatcher.dispatch(event))

        logger.info("Return resolved", return_id=return_id, status=target.value, refunded=request.refunded)
        return request

    def list_for_order(self, order_id: str) -> list[ReturnRequest]:
        with self._uow_factory() as uow:
            return uow.repository_for(ReturnRequest).filter_by(order_id=order_id)
