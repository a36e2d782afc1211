"""Application tests for admitting ticket holders at the door."""

import pytest

from shared.exceptions import (
    ObjectNotFoundError,
    TicketAlreadyUsed,
    TicketCancelled,
    TicketUnpaid,
    ValidationError,
)
from shared.outcome import PaymentOutcome


@pytest.fixture()
def paid_ticket(services, make_show):
    show = make_show()
    ticket = services.ticket_sales.purchase("fan-001", show.id)
    services.ticket_payments.apply_outcome(ticket.id, PaymentOutcome.APPROVED, "pay-001")
    return ticket


class TestAdmission:
    def test_paid_ticket_is_admitted_once(self, services, paid_ticket):
        admitted = services.admission.admit(paid_ticket.qr_code)

        assert admitted.status == "USED"
        assert admitted.used_at is not None

    def test_second_scan_is_rejected(self, services, paid_ticket):
        services.admission.admit(paid_ticket.qr_code)
        with pytest.raises(TicketAlreadyUsed):
            services.admission.admit(paid_ticket.qr_code)

    def test_scan_for_the_right_show(self, services, paid_ticket):
        assert services.admission.admit(paid_ticket.qr_code, show_id=paid_ticket.show_id).status == "USED"

    def test_scan_for_a_different_show(self, services, paid_ticket):
        with pytest.raises(ValidationError):
            services.admission.admit(paid_ticket.qr_code, show_id="another-show")

    def test_unknown_code(self, services):
        with pytest.raises(ObjectNotFoundError):
            services.admission.admit("TICKET-nope")

    def test_unpaid_hold_is_rejected(self, services, make_show):
        ticket = services.ticket_sales.purchase("fan-001", make_show().id)
        with pytest.raises(TicketUnpaid):
            services.admission.admit(ticket.qr_code)

    def test_cancelled_ticket_is_rejected(self, services, make_show):
        ticket = services.ticket_sales.purchase("fan-001", make_show().id)
        services.ticket_payments.apply_outcome(ticket.id, PaymentOutcome.REJECTED, "pay-001")
        with pytest.raises(TicketCancelled):
            services.admission.admit(ticket.qr_code)

    def test_used_ticket_keeps_the_seat(self, services, paid_ticket):
        services.admission.admit(paid_ticket.qr_code)
        assert services.shows.get_show(paid_ticket.show_id).active_ticket_count == 1
