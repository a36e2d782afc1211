"""Maintenance endpoints: on-demand expiry sweep and notification delivery."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from shared.api import get_services
from shared.container import Services

maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


class SweepResponse(BaseModel):
    model_config = {"from_attributes": True}

    expired_orders: int
    expired_tickets: int


class DeliveryResponse(BaseModel):
    dispatched: int


class FailedNotificationResponse(BaseModel):
    id: str
    recipient_id: str
    notification_type: str
    subject: str | None = None
    failure_reason: str | None = None
    attempts: int
    created_at: datetime


@maintenance_router.post("/expire-holds", response_model=SweepResponse)
def expire_holds(services: Services = Depends(get_services)) -> SweepResponse:
    """Cancel unpaid orders and ticket holds whose payment window has passed."""
    return SweepResponse.model_validate(services.sweeper.run_once())


@maintenance_router.post("/notifications/deliver", response_model=DeliveryResponse)
def deliver_pending_notifications(
    limit: int = Query(default=100, gt=0, le=1000),
    services: Services = Depends(get_services),
) -> DeliveryResponse:
    """Deliver notifications recorded as pending (async processing mode)."""
    return DeliveryResponse(dispatched=services.dispatcher.deliver_pending(limit=limit))


@maintenance_router.get("/notifications/failed", response_model=list[FailedNotificationResponse])
def failed_notifications(
    limit: int = Query(default=50, gt=0, le=500),
    services: Services = Depends(get_services),
) -> list[FailedNotificationResponse]:
    return [
        FailedNotificationResponse(
            id=str(notification.id),
            recipient_id=str(notification.recipient_id),
            notification_type=notification.notification_type,
            subject=notification.subject,
            failure_reason=notification.failure_reason,
            attempts=notification.attempts,
            created_at=notification.created_at,
        )
        for notification in services.dispatcher.failures(limit=limit)
    ]
