"""MerchStream FastAPI application.

Multi-domain web server: inventory, ordering, commissions, payments and
ticketing share one database and one ``Services`` container.

Usage:
    uvicorn app:create_app --factory --app-dir src --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commissions.api import commission_router
from inventory.api import listing_router
from maintenance.api.routes import maintenance_router
from notifications.domain import notifications
from ordering.api.routes import cart_router, coupon_router, order_router, referral_router, returns_router
from payments.api.routes import payment_router
from shared.api import register_exception_handlers
from shared.container import Services, build_services
from shared.database import setup_db
from shared.logging import configure_logging
from ticketing.api import show_router, ticket_router

# Domains are initialized at module level so uvicorn workers share them.
notifications.init()

logger = structlog.get_logger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    services = services or build_services()
    configure_logging(services.settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_db(services.engine)
        services.dispatcher.start()
        if services.settings.run_sweeper:
            services.sweeper.start()
        logger.info("MerchStream API started", env=services.settings.env)
        yield
        services.sweeper.shutdown()
        services.dispatcher.stop()

    app = FastAPI(
        title="MerchStream API",
        description="Artist merchandise and ticketing: orders, payments and commissions",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[services.settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    for router in (
        listing_router,
        cart_router,
        coupon_router,
        referral_router,
        order_router,
        returns_router,
        commission_router,
        payment_router,
        show_router,
        ticket_router,
        maintenance_router,
    ):
        app.include_router(router)

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------
    @app.get("/health")
    def health():
        return JSONResponse(
            content={
                "status": "ok",
                "env": services.settings.env,
                "sweeper_running": services.sweeper.running,
                "notification_delivery_running": services.dispatcher.running,
            }
        )

    return app
