"""Payment webhook processing.

A verified notification only carries the gateway's payment id; the
authoritative payment (status and ``external_reference``) is fetched from the
gateway and routed to the order or ticket state machine. The reference is the
order id, or ``ticket:<ticket id>`` for ticket sales.
"""

from enum import Enum

import structlog

from ordering.order.payment import OrderPaymentService
from payments.gateway.port import PaymentGateway
from shared.exceptions import ObjectNotFoundError
from shared.outcome import PaymentOutcome
from ticketing.ticket.payment import TicketPaymentService

logger = structlog.get_logger(__name__)

TICKET_REFERENCE_PREFIX = "ticket:"


class WebhookResult(Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    ACKNOWLEDGED = "acknowledged"


def ticket_reference(ticket_id: str) -> str:
    return f"{TICKET_REFERENCE_PREFIX}{ticket_id}"


class WebhookProcessor:
    def __init__(
        self,
        gateway: PaymentGateway,
        order_payments: OrderPaymentService,
        ticket_payments: TicketPaymentService,
    ) -> None:
        self._gateway = gateway
        self._order_payments = order_payments
        self._ticket_payments = ticket_payments

    def process(self, notification_type: str | None, data_id: str | None) -> WebhookResult:
        if notification_type != "payment" or not data_id:
            logger.info("Ignoring webhook notification", type=notification_type, data_id=data_id)
            return WebhookResult.IGNORED

        # Gateway failures propagate (502) so the gateway redelivers later
        try:
            payment = self._gateway.get_payment(data_id)
        except ObjectNotFoundError:
            logger.warning("Webhook for a payment unknown to the gateway", data_id=data_id)
            return WebhookResult.IGNORED

        outcome = PaymentOutcome.from_gateway_status(payment.status)
        if outcome is None:
            logger.info("Payment not final yet", payment_id=payment.id, status=payment.status)
            return WebhookResult.ACKNOWLEDGED

        reference = payment.external_reference or ""
        if not reference:
            logger.warning("Payment without external reference", payment_id=payment.id)
            return WebhookResult.IGNORED

        try:
            if reference.startswith(TICKET_REFERENCE_PREFIX):
                applied = self._ticket_payments.apply_outcome(
                    reference.removeprefix(TICKET_REFERENCE_PREFIX), outcome, payment.id
                )
            else:
                applied = self._order_payments.apply_outcome(reference, outcome, payment.id, payment.payment_method)
        except ObjectNotFoundError:
            logger.warning("Payment references an unknown order or ticket", payment_id=payment.id, reference=reference)
            return WebhookResult.IGNORED

        logger.info(
            "Webhook processed",
            payment_id=payment.id,
            reference=reference,
            outcome=outcome.value,
            applied=applied,
        )
        return WebhookResult.PROCESSED if applied else WebhookResult.DUPLICATE
