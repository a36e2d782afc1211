"""Expiry sweeper: periodically cancels unpaid orders and ticket holds.

Runs on an APScheduler interval job. The API process starts a background
scheduler when ``MERCHSTREAM_RUN_SWEEPER`` is set; ``server.py`` runs it in
the foreground as a standalone worker.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ordering.order.expiry import OrderExpiry
from ticketing.ticket.expiry import TicketExpiry

logger = structlog.get_logger(__name__)

JOB_ID = "expire_unpaid_holds"


@dataclass(frozen=True)
class SweepResult:
    expired_orders: int
    expired_tickets: int


class ExpirySweeper:
    def __init__(
        self,
        order_expiry: OrderExpiry,
        ticket_expiry: TicketExpiry,
        interval_seconds: int = 60,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self._order_expiry = order_expiry
        self._ticket_expiry = ticket_expiry
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler

    def run_once(self, as_of: datetime | None = None) -> SweepResult:
        result = SweepResult(
            expired_orders=self._order_expiry.expire_unpaid_orders(as_of=as_of),
            expired_tickets=self._ticket_expiry.expire_unpaid_tickets(as_of=as_of),
        )
        logger.info(
            "Expiry sweep finished",
            expired_orders=result.expired_orders,
            expired_tickets=result.expired_tickets,
        )
        return result

    def _run_job(self) -> None:
        try:
            self.run_once()
        except Exception as exc:
            logger.error("Expiry sweep failed", error=str(exc), exc_info=True)

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> BaseScheduler:
        """Schedule the sweep and start the scheduler.

        A ``BlockingScheduler`` passed to the constructor blocks here until
        shutdown; the default ``BackgroundScheduler`` returns immediately.
        """
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=JOB_ID,
            name="Expire unpaid orders and tickets",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Expiry sweeper started", interval_seconds=self._interval_seconds)
        self._scheduler.start()
        return self._scheduler

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Expiry sweeper stopped")
