import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app import create_app
from notifications.channel import reset_channel
from notifications.channel.fake_adapter import FakeChannel
from ordering.order.creation import CreateOrder
from payments.gateway.fake_adapter import FakeGateway
from shared.clock import utc_now
from shared.config import Settings
from shared.container import build_services
from shared.database import drop_db, setup_db

WEBHOOK_SECRET = "test-webhook-secret"

SHIPPING = {
    "shipping_name": "Ana Torres",
    "shipping_address": "Av. Larco 123",
    "shipping_city": "Lima",
    "shipping_zip": "15074",
    "shipping_phone": "+51 999 888 777",
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------
@pytest.fixture(scope="session")
def _notifications_domain(request):
    """Initialize the notifications domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from notifications.domain import notifications

    notifications.init()
    return notifications


@pytest.fixture(autouse=True)
def run_around_tests(_notifications_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _notifications_domain.domain_context()
    ctx.push()

    yield

    from protean.utils.globals import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    reset_channel()
    ctx.pop()


@pytest.fixture()
def settings(tmp_path, request):
    return Settings(
        _env_file=None,
        env=request.config.getoption("--env"),
        database_url=f"sqlite:///{tmp_path / 'merchstream.db'}",
        mercadopago_webhook_secret=WEBHOOK_SECRET,
        notification_processing="sync",
        allow_simulated_payments=True,
    )


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def channel():
    return FakeChannel()


@pytest.fixture()
def services(settings, gateway, channel):
    services = build_services(settings, gateway=gateway, channel=channel)
    setup_db(services.engine)

    yield services

    drop_db(services.engine)
    services.engine.dispose()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_listing(services):
    def _make(
        stock=10,
        sale_price="100.00",
        manufacturing_cost="40.00",
        artist_commission_rate="50",
        artist_id="art-001",
        artist_user_id="usr-artist-001",
        artist_name="Los Ecos",
        title="Tour T-Shirt",
    ):
        return services.listings.register_listing(
            artist_id=artist_id,
            artist_user_id=artist_user_id,
            artist_name=artist_name,
            title=title,
            sale_price=sale_price,
            manufacturing_cost=manufacturing_cost,
            artist_commission_rate=artist_commission_rate,
            stock=stock,
        )

    return _make


@pytest.fixture()
def make_coupon(services):
    def _make(code="WELCOME10", discount_type="percentage", discount_value="10", **kwargs):
        return services.coupons.create_coupon(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            **kwargs,
        )

    return _make


@pytest.fixture()
def fill_cart(services):
    def _fill(customer_id, listing, quantity=1, customizations=None, **kwargs):
        return services.carts.add_item(
            customer_id=customer_id,
            listing_id=listing.id,
            quantity=quantity,
            customizations=customizations,
            **kwargs,
        )

    return _fill


@pytest.fixture()
def place_order(services):
    def _place(customer_id, coupon_id=None, as_of=None, **overrides):
        command = CreateOrder(customer_id=customer_id, coupon_id=coupon_id, **{**SHIPPING, **overrides})
        return services.order_builder.create_from_cart(command, as_of=as_of)

    return _place


@pytest.fixture()
def pending_order(make_listing, fill_cart, place_order):
    """A PENDING order for two units of a 100.00 listing (cost 40, artist rate 50%)."""

    def _pending(customer_id="cust-001", quantity=2, listing=None, **kwargs):
        listing = listing or make_listing()
        fill_cart(customer_id, listing, quantity=quantity)
        return place_order(customer_id, **kwargs)

    return _pending


@pytest.fixture()
def make_show(services):
    def _make(
        ticket_price="50.00",
        total_capacity=100,
        platform_fee="10",
        artist_id="art-001",
        owner_id="usr-artist-001",
        name="Acoustic Night",
    ):
        return services.shows.schedule_show(
            artist_id=artist_id,
            owner_id=owner_id,
            name=name,
            starts_at=utc_now() + timedelta(days=30),
            ticket_price=ticket_price,
            total_capacity=total_capacity,
            platform_fee=platform_fee,
        )

    return _make


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------
@pytest.fixture()
def run_concurrently():
    """Start every call at the same moment on its own thread.

    Returns each call's result, or the exception it raised, in call order.
    """

    def _run(*calls):
        barrier = threading.Barrier(len(calls))

        def _call(fn):
            barrier.wait(timeout=10)
            try:
                return fn()
            except Exception as exc:
                return exc

        with ThreadPoolExecutor(max_workers=len(calls)) as pool:
            return list(pool.map(_call, calls))

    return _run


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
@pytest.fixture()
def client(services):
    with TestClient(create_app(services)) as client:
        yield client
