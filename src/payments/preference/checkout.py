"""Checkout preferences: hosted-checkout sessions for pending orders and ticket holds.

Creating a preference never changes order or ticket state; every call asks
the gateway for a new session. The lines sent always add up to the stored
total: when a coupon applies, each line is charged its discounted amount
(quantity 1) and the last line absorbs the rounding remainder.
"""

import structlog

from ordering.order.order import Order, OrderStatus
from payments.gateway.port import PaymentGateway, PreferenceItem, PreferenceRequest, PreferenceResult
from payments.webhook.processing import ticket_reference
from shared.clock import utc_now
from shared.config import Settings
from shared.exceptions import OrderAlreadyProcessed, PermissionDeniedError, ValidationError
from shared.money import round_money
from ticketing.show.show import Show
from ticketing.ticket.ticket import Ticket, TicketStatus

logger = structlog.get_logger(__name__)


def _product_lines(order: Order) -> list[PreferenceItem]:
    lines = []
    for item in order.items:
        lines.append(
            PreferenceItem(id=item.listing_id, title=item.title, quantity=item.quantity, unit_price=item.unit_price)
        )
        for customization in item.customizations:
            if customization.price > 0:
                lines.append(
                    PreferenceItem(
                        id=customization.id,
                        title=f"{item.title} - {customization.type.replace('_', ' ').title()}",
                        quantity=1,
                        unit_price=customization.price,
                    )
                )
    return lines


def _discounted(lines: list[PreferenceItem], subtotal, discount) -> list[PreferenceItem]:
    """Spread the discount over the lines, keeping the sum exact.

    A remainder that would leave the last line at zero or below is folded
    into the line before it.
    """
    ratio = discount / subtotal
    target = subtotal - discount
    amounts = [round_money(line.total * (1 - ratio)) for line in lines[:-1]]
    amounts.append(target - sum(amounts))
    kept = list(lines)
    while len(amounts) > 1 and amounts[-1] <= 0:
        remainder = amounts.pop()
        kept.pop()
        amounts[-1] += remainder

    discounted = []
    for line, amount in zip(kept, amounts):
        if amount <= 0:
            continue
        title = line.title if line.quantity == 1 else f"{line.title} (x{line.quantity})"
        discounted.append(PreferenceItem(id=line.id, title=title, quantity=1, unit_price=amount))
    return discounted


def order_preference_items(order: Order) -> list[PreferenceItem]:
    lines = _product_lines(order)
    if order.discount > 0:
        lines = _discounted(lines, order.subtotal, order.discount)
    if order.shipping_cost > 0:
        lines.append(PreferenceItem(id="shipping", title="Shipping", quantity=1, unit_price=order.shipping_cost))
    if order.tax > 0:
        lines.append(PreferenceItem(id="tax", title="IGV", quantity=1, unit_price=order.tax))
    return lines


class CheckoutPreferenceService:
    def __init__(self, uow_factory, gateway: PaymentGateway, settings: Settings) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._settings = settings

    def create_for_order(self, order_id: str, customer_id: str) -> PreferenceResult:
        with self._uow_factory() as uow:
            order = uow.repository_for(Order).get(order_id)
            if not order.is_owned_by(customer_id):
                raise PermissionDeniedError({"order": ["You do not have access to this order"]})
            if order.status != OrderStatus.PENDING.value:
                raise OrderAlreadyProcessed({"order": [f"Order is already {order.status}"]})
            if order.expires_at is not None and order.expires_at < utc_now():
                raise ValidationError({"order": ["The payment window for this order has expired"]})
            items = order_preference_items(order)

        request = PreferenceRequest(
            items=items,
            external_reference=order.id,
            currency=order.currency,
            back_urls=self._back_urls(f"/orders/{order.id}"),
            notification_url=self._notification_url(),
        )
        result = self._gateway.create_preference(request)
        logger.info(
            "Checkout preference created",
            order_id=order.id,
            preference_id=result.preference_id,
            total=str(request.total),
        )
        return result

    def create_for_ticket(self, ticket_id: str, buyer_id: str) -> PreferenceResult:
        with self._uow_factory() as uow:
            ticket = uow.repository_for(Ticket).get(ticket_id)
            if ticket.buyer_id != buyer_id:
                raise PermissionDeniedError({"ticket": ["You do not have access to this ticket"]})
            if ticket.status != TicketStatus.ACTIVE.value or ticket.is_paid:
                raise OrderAlreadyProcessed({"ticket": ["Ticket is not awaiting payment"]})
            if ticket.expires_at is not None and ticket.expires_at < utc_now():
                raise ValidationError({"ticket": ["The payment window for this ticket has expired"]})
            show = uow.repository_for(Show).get(ticket.show_id)

        request = PreferenceRequest(
            items=[
                PreferenceItem(
                    id=ticket.id,
                    title=f"Ticket - {show.name}",
                    quantity=1,
                    unit_price=round_money(ticket.price),
                )
            ],
            external_reference=ticket_reference(ticket.id),
            currency=self._settings.currency,
            back_urls=self._back_urls(f"/tickets/{ticket.id}"),
            notification_url=self._notification_url(),
        )
        result = self._gateway.create_preference(request)
        logger.info("Ticket checkout preference created", ticket_id=ticket.id, preference_id=result.preference_id)
        return result

    def _back_urls(self, path: str) -> dict[str, str]:
        base = self._settings.frontend_url.rstrip("/") + path
        return {
            "success": f"{base}?status=success",
            "failure": f"{base}?status=failure",
            "pending": f"{base}?status=pending",
        }

    def _notification_url(self) -> str:
        return self._settings.backend_url.rstrip("/") + "/payments/webhook"
