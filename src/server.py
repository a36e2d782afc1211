"""Expiry worker for MerchStream.

Runs the expiry sweeper in the foreground: unpaid orders and ticket holds
whose payment window has passed are cancelled and their stock and seats
released.

Usage:
    python src/server.py            # Sweep every MERCHSTREAM_SWEEP_INTERVAL_SECONDS
    python src/server.py --once     # Run a single sweep and exit
"""

import argparse

import structlog
from apscheduler.schedulers.blocking import BlockingScheduler

from maintenance.sweeper import ExpirySweeper
from notifications.domain import notifications
from shared.config import get_settings
from shared.container import build_services
from shared.database import setup_db
from shared.logging import configure_logging

logger = structlog.get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="MerchStream expiry worker")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between sweeps (default: MERCHSTREAM_SWEEP_INTERVAL_SECONDS)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)
    notifications.init()
    services = build_services(settings)
    setup_db(services.engine)
    services.dispatcher.start()

    try:
        if args.once:
            services.sweeper.run_once()
            return

        sweeper = ExpirySweeper(
            services.order_expiry,
            services.ticket_expiry,
            interval_seconds=args.interval or settings.sweep_interval_seconds,
            scheduler=BlockingScheduler(timezone="UTC"),
        )
        try:
            sweeper.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Expiry worker interrupted")
    finally:
        services.dispatcher.stop()
        services.engine.dispose()


if __name__ == "__main__":
    main()
