"""Service wiring.

Every service receives its collaborators through its constructor;
``build_services`` is the one place that decides which concrete
implementations are used. Tests pass their own settings, gateway and
notification channel.
"""

from dataclasses import dataclass
from functools import partial

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from commissions.queries import CommissionQueries
from commissions.settlement import CommissionSettlementService
from inventory.listing.management import ListingService
from inventory.stock.ledger import StockLedger
from maintenance.sweeper import ExpirySweeper
from notifications.channel import set_channel
from notifications.channel.log_adapter import LogChannel
from notifications.channel.port import NotificationChannelPort
from notifications.notification.dispatch import NotificationDispatcher
from ordering.cart.management import CartService
from ordering.coupon.validation import CouponService, CouponValidator
from ordering.order.creation import OrderBuilder
from ordering.order.expiry import OrderExpiry
from ordering.order.fulfillment import OrderFulfillmentService
from ordering.order.payment import OrderPaymentService
from ordering.order.queries import OrderQueries
from ordering.order.returns import ReturnService
from ordering.referral.tracking import ReferralService
from payments.gateway import build_gateway
from payments.gateway.port import PaymentGateway
from payments.preference.checkout import CheckoutPreferenceService
from payments.webhook.processing import WebhookProcessor
from payments.webhook.signature import WebhookSignatureVerifier
from shared.config import Settings, get_settings
from shared.database import create_db_engine, create_session_factory
from shared.unit_of_work import UnitOfWork
from ticketing.show.management import ShowService
from ticketing.ticket.admission import TicketAdmissionService
from ticketing.ticket.expiry import TicketExpiry
from ticketing.ticket.payment import TicketPaymentService
from ticketing.ticket.purchase import TicketSalesService


@dataclass
class Services:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    gateway: PaymentGateway
    dispatcher: NotificationDispatcher

    # Inventory
    stock_ledger: StockLedger
    listings: ListingService

    # Ordering
    coupon_validator: CouponValidator
    coupons: CouponService
    carts: CartService
    referrals: ReferralService
    order_builder: OrderBuilder
    order_payments: OrderPaymentService
    fulfillment: OrderFulfillmentService
    returns: ReturnService
    orders: OrderQueries
    order_expiry: OrderExpiry

    # Commissions
    commissions: CommissionQueries
    commission_settlement: CommissionSettlementService

    # Payments
    checkout: CheckoutPreferenceService
    signature_verifier: WebhookSignatureVerifier
    webhooks: WebhookProcessor

    # Ticketing
    shows: ShowService
    ticket_sales: TicketSalesService
    ticket_payments: TicketPaymentService
    admission: TicketAdmissionService
    ticket_expiry: TicketExpiry

    sweeper: ExpirySweeper

    def unit_of_work(self) -> UnitOfWork:
        return UnitOfWork(self.session_factory)


def build_services(
    settings: Settings | None = None,
    gateway: PaymentGateway | None = None,
    channel: NotificationChannelPort | None = None,
) -> Services:
    settings = settings or get_settings()
    engine = create_db_engine(settings.database_url, echo=settings.database_echo)
    session_factory = create_session_factory(engine)
    uow_factory = partial(UnitOfWork, session_factory)

    gateway = gateway or build_gateway(settings)
    set_channel(channel or LogChannel())
    dispatcher = NotificationDispatcher(
        mode=settings.notification_processing,
        interval_seconds=settings.notification_delivery_interval_seconds,
    )

    stock_ledger = StockLedger()
    coupon_validator = CouponValidator()

    order_payments = OrderPaymentService(uow_factory, stock_ledger, dispatcher, settings)
    ticket_payments = TicketPaymentService(uow_factory, dispatcher)
    order_expiry = OrderExpiry(uow_factory, stock_ledger, dispatcher)
    ticket_expiry = TicketExpiry(uow_factory)

    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        gateway=gateway,
        dispatcher=dispatcher,
        stock_ledger=stock_ledger,
        listings=ListingService(uow_factory, stock_ledger),
        coupon_validator=coupon_validator,
        coupons=CouponService(uow_factory, coupon_validator),
        carts=CartService(uow_factory),
        referrals=ReferralService(uow_factory, settings.default_referral_rate),
        order_builder=OrderBuilder(uow_factory, stock_ledger, coupon_validator, settings),
        order_payments=order_payments,
        fulfillment=OrderFulfillmentService(uow_factory, stock_ledger, dispatcher),
        returns=ReturnService(uow_factory, dispatcher),
        orders=OrderQueries(uow_factory),
        order_expiry=order_expiry,
        commissions=CommissionQueries(uow_factory),
        commission_settlement=CommissionSettlementService(uow_factory),
        checkout=CheckoutPreferenceService(uow_factory, gateway, settings),
        signature_verifier=WebhookSignatureVerifier(settings.mercadopago_webhook_secret, settings.is_production),
        webhooks=WebhookProcessor(gateway, order_payments, ticket_payments),
        shows=ShowService(uow_factory, dispatcher, settings),
        ticket_sales=TicketSalesService(uow_factory, ticket_payments, settings),
        ticket_payments=ticket_payments,
        admission=TicketAdmissionService(uow_factory),
        ticket_expiry=ticket_expiry,
        sweeper=ExpirySweeper(order_expiry, ticket_expiry, interval_seconds=settings.sweep_interval_seconds),
    )
