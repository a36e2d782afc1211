"""Application tests for ticket holds: capacity, one ticket per buyer, free shows."""

from datetime import timedelta
from decimal import Decimal

import pytest

from shared.clock import utc_now
from shared.exceptions import (
    AlreadyPurchased,
    ObjectNotFoundError,
    PermissionDeniedError,
    SelfPurchaseForbidden,
    ShowUnavailable,
    SoldOut,
)
from shared.outcome import PaymentOutcome
from ticketing.ticket.ticket import TicketStatus


class TestPurchase:
    def test_ticket_is_held_until_paid(self, services, make_show):
        show = make_show()
        before = utc_now()

        ticket = services.ticket_sales.purchase("fan-001", show.id)

        assert ticket.status == TicketStatus.ACTIVE.value
        assert ticket.payment_id is None
        assert ticket.price == Decimal("50.00")
        assert ticket.qr_code.startswith(f"TICKET-{show.id}-")
        assert before + timedelta(minutes=29) < ticket.expires_at <= utc_now() + timedelta(minutes=30)
        assert services.shows.get_show(show.id).active_ticket_count == 1

    def test_unknown_show(self, services):
        with pytest.raises(ObjectNotFoundError):
            services.ticket_sales.purchase("fan-001", "no-such-show")

    def test_owner_cannot_buy_own_show(self, services, make_show):
        show = make_show(owner_id="usr-artist-001")
        with pytest.raises(SelfPurchaseForbidden):
            services.ticket_sales.purchase("usr-artist-001", show.id)

    def test_sales_disabled(self, services, make_show):
        show = make_show()
        services.shows.set_ticket_sales(show.id, False)
        with pytest.raises(ShowUnavailable):
            services.ticket_sales.purchase("fan-001", show.id)

    def test_sales_reenabled(self, services, make_show):
        show = make_show()
        services.shows.set_ticket_sales(show.id, False)
        services.shows.set_ticket_sales(show.id, True)
        assert services.ticket_sales.purchase("fan-001", show.id).status == "ACTIVE"


class TestOneTicketPerBuyer:
    def test_unpaid_hold_blocks_a_second_purchase(self, services, make_show):
        show = make_show()
        services.ticket_sales.purchase("fan-001", show.id)
        with pytest.raises(AlreadyPurchased):
            services.ticket_sales.purchase("fan-001", show.id)
        assert services.shows.get_show(show.id).active_ticket_count == 1

    def test_paid_ticket_blocks_a_second_purchase(self, services, make_show):
        show = make_show()
        ticket = services.ticket_sales.purchase("fan-001", show.id)
        services.ticket_payments.apply_outcome(ticket.id, PaymentOutcome.APPROVED, "pay-001")
        with pytest.raises(AlreadyPurchased):
            services.ticket_sales.purchase("fan-001", show.id)

    def test_buyer_may_purchase_again_after_cancellation(self, services, make_show):
        show = make_show()
        ticket = services.ticket_sales.purchase("fan-001", show.id)
        services.ticket_payments.apply_outcome(ticket.id, PaymentOutcome.REJECTED, "pay-001")

        again = services.ticket_sales.purchase("fan-001", show.id)

        assert again.id != ticket.id
        assert len(services.ticket_sales.tickets_for_buyer("fan-001")) == 2


class TestCapacity:
    def test_last_seat(self, services, make_show):
        """Capacity 1: the first buyer holds the seat, the second finds it sold out."""
        show = make_show(total_capacity=1)

        services.ticket_sales.purchase("fan-001", show.id)
        with pytest.raises(SoldOut):
            services.ticket_sales.purchase("fan-002", show.id)

        assert services.shows.get_show(show.id).active_ticket_count == 1

    def test_expired_hold_frees_the_seat(self, services, make_show):
        show = make_show(total_capacity=1)
        services.ticket_sales.purchase("fan-001", show.id)

        expired = services.ticket_expiry.expire_unpaid_tickets(as_of=utc_now() + timedelta(minutes=31))

        assert expired == 1
        assert services.shows.get_show(show.id).active_ticket_count == 0
        assert services.ticket_sales.purchase("fan-002", show.id).status == "ACTIVE"

    def test_unlimited_capacity(self, services, make_show):
        show = make_show(total_capacity=None)
        for index in range(5):
            services.ticket_sales.purchase(f"fan-{index}", show.id)
        assert services.shows.get_show(show.id).active_ticket_count == 5


class TestFreeShow:
    def test_free_ticket_is_issued_paid(self, services, make_show):
        show = make_show(ticket_price="0")

        ticket = services.ticket_sales.purchase("fan-001", show.id)

        assert ticket.is_paid
        assert ticket.payment_id == "FREE"
        assert ticket.expires_at is None

    def test_free_ticket_never_expires(self, services, make_show):
        show = make_show(ticket_price="0")
        services.ticket_sales.purchase("fan-001", show.id)
        assert services.ticket_expiry.expire_unpaid_tickets(as_of=utc_now() + timedelta(days=1)) == 0

    def test_free_ticket_earns_no_commission(self, services, make_show):
        show = make_show(ticket_price="0")
        ticket = services.ticket_sales.purchase("fan-001", show.id)
        assert services.commissions.list_commissions(ticket_id=ticket.id) == []


class TestSimulatedPayment:
    def test_buys_and_pays_in_one_step(self, services, make_show):
        show = make_show()

        ticket = services.ticket_sales.simulate_payment("fan-001", show.id)

        assert ticket.payment_id == "SIMULATED"
        assert ticket.expires_at is None

    def test_pays_an_existing_hold(self, services, make_show):
        show = make_show()
        held = services.ticket_sales.purchase("fan-001", show.id)

        ticket = services.ticket_sales.simulate_payment("fan-001", show.id)

        assert ticket.id == held.id
        assert ticket.is_paid

    def test_already_paid(self, services, make_show):
        show = make_show()
        services.ticket_sales.simulate_payment("fan-001", show.id)
        with pytest.raises(AlreadyPurchased):
            services.ticket_sales.simulate_payment("fan-001", show.id)

    def test_disabled(self, services, settings, make_show):
        show = make_show()
        settings.allow_simulated_payments = False
        with pytest.raises(PermissionDeniedError):
            services.ticket_sales.simulate_payment("fan-001", show.id)
