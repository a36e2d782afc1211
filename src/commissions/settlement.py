"""Commission settlement: the platform paying out PENDING commissions.

Every payout is a conditional ``PENDING -> PAID`` update, so a commission
cancelled by an unwound sale can never be paid and a paid one is never paid
twice.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import func, select, update

from commissions.commission import Commission, CommissionStatus
from ordering.referral.referral import Referral
from shared.clock import as_naive_utc, utc_now
from shared.exceptions import InvalidTransition, ValidationError
from shared.money import ZERO, round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TypeBreakdown:
    type: str
    amount: Decimal
    count: int


@dataclass(frozen=True)
class PendingBeneficiary:
    """Unsettled commissions owed to one artist or one referral code."""

    kind: str  # "artist" or "referral"
    beneficiary_id: str
    pending_amount: Decimal
    pending_count: int
    breakdown: list[TypeBreakdown] = field(default_factory=list)
    referral_code: str | None = None
    owner_id: str | None = None


@dataclass(frozen=True)
class CommissionSummary:
    pending_amount: Decimal
    pending_count: int
    paid_this_month_amount: Decimal
    paid_this_month_count: int
    generated_this_month_amount: Decimal
    generated_this_month_count: int
    total_paid_all_time: Decimal


def _start_of_month(as_of: datetime) -> datetime:
    return as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class CommissionSettlementService:
    def __init__(self, uow_factory) -> None:
        self._uow_factory = uow_factory

    def mark_paid(self, commission_id: str) -> Commission:
        now = utc_now()
        with self._uow_factory() as uow:
            result = uow.session.execute(
                update(Commission)
                .where(Commission.id == commission_id, Commission.status == CommissionStatus.PENDING.value)
                .values(status=CommissionStatus.PAID.value, paid_at=now)
                .execution_options(synchronize_session=False)
            )
            commission = uow.repository_for(Commission).get(commission_id, refresh=True)
            if result.rowcount != 1:
                raise InvalidTransition({"status": [f"Cannot transition from {commission.status} to PAID"]})

        logger.info("Commission paid", commission_id=commission_id, amount=str(commission.amount))
        return commission

    def pay_all(self, artist_id: str | None = None, referral_id: str | None = None) -> int:
        """Settle every PENDING commission, optionally for one beneficiary; returns the count."""
        if artist_id is not None and referral_id is not None:
            raise ValidationError({"_entity": ["Settle either an artist or a referral, not both"]})

        conditions = [Commission.status == CommissionStatus.PENDING.value]
        if artist_id is not None:
            conditions.append(Commission.artist_id == artist_id)
        if referral_id is not None:
            conditions.append(Commission.referral_id == referral_id)

        with self._uow_factory() as uow:
            result = uow.session.execute(
                update(Commission)
                .where(*conditions)
                .values(status=CommissionStatus.PAID.value, paid_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            paid = result.rowcount

        logger.info("Commissions paid", count=paid, artist_id=artist_id, referral_id=referral_id)
        return paid

    # -------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------
    def artists_pending(self) -> list[PendingBeneficiary]:
        with self._uow_factory() as uow:
            return self._pending_for(uow, "artist", Commission.artist_id)

    def beneficiaries_pending(self) -> list[PendingBeneficiary]:
        """Artists and referral codes with unsettled commissions, largest first."""
        with self._uow_factory() as uow:
            artists = self._pending_for(uow, "artist", Commission.artist_id)
            referrals = self._pending_for(uow, "referral", Commission.referral_id)
            codes = {
                referral.id: referral
                for referral in uow.session.scalars(
                    select(Referral).where(Referral.id.in_([entry.beneficiary_id for entry in referrals]))
                )
            }

        referrals = [
            replace(entry, referral_code=codes[entry.beneficiary_id].code, owner_id=codes[entry.beneficiary_id].owner_id)
            for entry in referrals
        ]
        return sorted(artists + referrals, key=lambda entry: entry.pending_amount, reverse=True)

    def summary(self, as_of: datetime | None = None) -> CommissionSummary:
        month_start = _start_of_month(as_naive_utc(as_of) if as_of else utc_now())
        with self._uow_factory() as uow:
            pending_amount, pending_count = self._totals(uow, Commission.status == CommissionStatus.PENDING.value)
            paid_month_amount, paid_month_count = self._totals(
                uow,
                Commission.status == CommissionStatus.PAID.value,
                Commission.paid_at >= month_start,
            )
            generated_amount, generated_count = self._totals(uow, Commission.created_at >= month_start)
            total_paid, _ = self._totals(uow, Commission.status == CommissionStatus.PAID.value)

        return CommissionSummary(
            pending_amount=pending_amount,
            pending_count=pending_count,
            paid_this_month_amount=paid_month_amount,
            paid_this_month_count=paid_month_count,
            generated_this_month_amount=generated_amount,
            generated_this_month_count=generated_count,
            total_paid_all_time=total_paid,
        )

    @staticmethod
    def _totals(uow, *conditions) -> tuple[Decimal, int]:
        amount, count = uow.session.execute(
            select(func.sum(Commission.amount), func.count(Commission.id)).where(*conditions)
        ).one()
        return round_money(amount or ZERO), count

    @staticmethod
    def _pending_for(uow, kind: str, column) -> list[PendingBeneficiary]:
        rows = uow.session.execute(
            select(column, Commission.type, func.sum(Commission.amount), func.count(Commission.id))
            .where(Commission.status == CommissionStatus.PENDING.value, column.is_not(None))
            .group_by(column, Commission.type)
            .order_by(column, Commission.type)
        ).all()

        grouped: dict[str, list[TypeBreakdown]] = {}
        for beneficiary_id, type_, amount, count in rows:
            grouped.setdefault(beneficiary_id, []).append(
                TypeBreakdown(type=type_, amount=round_money(amount), count=count)
            )

        entries = [
            PendingBeneficiary(
                kind=kind,
                beneficiary_id=beneficiary_id,
                pending_amount=sum((item.amount for item in breakdown), ZERO),
                pending_count=sum(item.count for item in breakdown),
                breakdown=breakdown,
            )
            for beneficiary_id, breakdown in grouped.items()
        ]
        return sorted(entries, key=lambda entry: entry.pending_amount, reverse=True)
