"""Referral codes: creation, click tracking, attribution and the reward claim."""

import structlog
from sqlalchemy import select, update

from commissions.calculator import ReferralTerms
from ordering.order.order import QUALIFYING_STATES, Order
from ordering.referral.referral import Referral, ReferralAttribution
from shared.exceptions import ConflictError, ObjectNotFoundError, ValidationError
from shared.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

_QUALIFYING_VALUES = [status.value for status in QUALIFYING_STATES]


def has_qualifying_order(uow: UnitOfWork, customer_id: str, exclude_order_id: str | None = None) -> bool:
    query = select(Order.id).where(
        Order.customer_id == customer_id,
        Order.status.in_(_QUALIFYING_VALUES),
    )
    if exclude_order_id is not None:
        query = query.where(Order.id != exclude_order_id)
    return uow.session.scalar(query.limit(1)) is not None


def unrewarded_referral_id(uow: UnitOfWork, customer_id: str) -> str | None:
    """Referral a new order should carry, if the customer was referred and not yet rewarded."""
    return uow.session.scalar(
        select(ReferralAttribution.referral_id).where(
            ReferralAttribution.customer_id == customer_id,
            ReferralAttribution.rewarded_order_id.is_(None),
        )
    )


def claim_referral_reward(uow: UnitOfWork, order) -> ReferralTerms | None:
    """Claim the referral reward for a freshly paid order.

    Only the referred customer's first qualifying order earns the reward. Two
    first orders paid concurrently race on the conditional UPDATE of
    ``rewarded_order_id``; exactly one wins.
    """
    if order.referral_id is None:
        return None
    if has_qualifying_order(uow, order.customer_id, exclude_order_id=order.id):
        logger.info("Referral not rewarded: not the first order", order_id=order.id)
        return None

    result = uow.session.execute(
        update(ReferralAttribution)
        .where(
            ReferralAttribution.customer_id == order.customer_id,
            ReferralAttribution.referral_id == order.referral_id,
            ReferralAttribution.rewarded_order_id.is_(None),
        )
        .values(rewarded_order_id=order.id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.info("Referral reward already claimed", order_id=order.id, referral_id=order.referral_id)
        return None

    uow.session.execute(
        update(Referral)
        .where(Referral.id == order.referral_id)
        .values(total_orders=Referral.total_orders + 1)
        .execution_options(synchronize_session=False)
    )
    referral = uow.repository_for(Referral).get(order.referral_id)
    return ReferralTerms(
        referral_id=referral.id,
        commission_rate=referral.commission_rate,
        owner_id=referral.owner_id,
    )


class ReferralService:
    def __init__(self, uow_factory, default_rate) -> None:
        self._uow_factory = uow_factory
        self._default_rate = default_rate

    def create_referral(self, owner_id: str, code: str | None = None, commission_rate=None) -> Referral:
        referral = Referral.create(
            owner_id=owner_id,
            commission_rate=commission_rate if commission_rate is not None else self._default_rate,
            code=code,
        )
        with self._uow_factory() as uow:
            repo = uow.repository_for(Referral)
            if repo.find_by(code=referral.code) is not None:
                raise ConflictError({"code": [f"Referral code `{referral.code}` already exists"]})
            repo.add(referral)
        logger.info("Referral created", referral_id=referral.id, owner_id=owner_id)
        return referral

    def track_click(self, code: str, customer_id: str | None = None) -> Referral:
        """Count a visit through a referral link and attribute the visitor.

        A customer is attributed at most once, never to their own code, and
        only while they have no qualifying order yet.
        """
        with self._uow_factory() as uow:
            referral = uow.repository_for(Referral).find_by(code=code.strip().upper())
            if referral is None or not referral.is_active:
                raise ObjectNotFoundError({"code": [f"Referral code `{code}` does not exist"]})

            referral.total_clicks += 1

            if customer_id is not None:
                if customer_id == referral.owner_id:
                    raise ValidationError({"code": ["You cannot use your own referral code"]})

                attributions = uow.repository_for(ReferralAttribution)
                if attributions.find_by(customer_id=customer_id) is None and not has_qualifying_order(
                    uow, customer_id
                ):
                    attributions.add(ReferralAttribution.create(customer_id=customer_id, referral_id=referral.id))
                    logger.info("Customer attributed to referral", customer_id=customer_id, referral_id=referral.id)

        return referral

    def get_by_owner(self, owner_id: str) -> list[Referral]:
        with self._uow_factory() as uow:
            return uow.repository_for(Referral).filter_by(owner_id=owner_id)
