"""Commission Calculator.

Pure functions over the purchase-time snapshot of an order (or a ticket and
its show). Nothing here reads the live catalogue, so later price or rate
changes on a listing never alter historical commissions.

Rules
-----
- Artist, per order item: the coupon discount is spread proportionally over
  the subtotal, so the effective unit price is ``unit_price * (1 - ratio)``.
  The commission is ``(effective - manufacturing_cost) * rate / 100 * qty``,
  floored at zero and rounded once at the end. Zero never produces a row.
- Customization: each customization with a positive price pays its full
  price to the artist (rate 100).
- Referral: ``(subtotal - discount) * referral_rate / 100``; only computed
  when the caller has established that this is the referred customer's first
  qualifying order.
- Ticket: ``ticket_price * (100 - platform_fee) / 100``.
"""

from dataclasses import dataclass
from decimal import Decimal

from commissions.commission import CommissionType
from shared.money import HUNDRED, ZERO, round_money, to_decimal


@dataclass(frozen=True)
class CommissionDraft:
    type: CommissionType
    amount: Decimal
    rate: Decimal
    artist_id: str | None = None
    referral_id: str | None = None


@dataclass(frozen=True)
class ReferralTerms:
    referral_id: str
    commission_rate: Decimal
    owner_id: str | None = None


def discount_ratio(subtotal, discount) -> Decimal:
    subtotal = to_decimal(subtotal)
    if subtotal <= 0:
        return Decimal(0)
    return to_decimal(discount) / subtotal


def artist_commission_amount(unit_price, manufacturing_cost, rate, quantity: int, ratio) -> Decimal:
    effective_price = to_decimal(unit_price) * (1 - to_decimal(ratio))
    margin = effective_price - to_decimal(manufacturing_cost)
    amount = margin * to_decimal(rate) / HUNDRED * quantity
    return max(ZERO, round_money(amount))


def calculate_order_commissions(order, referral: ReferralTerms | None = None) -> list[CommissionDraft]:
    """Return the commission drafts earned by a paid order."""
    ratio = discount_ratio(order.subtotal, order.discount)
    drafts: list[CommissionDraft] = []

    for item in order.items:
        amount = artist_commission_amount(
            item.unit_price,
            item.manufacturing_cost,
            item.artist_commission_rate,
            item.quantity,
            ratio,
        )
        if amount > 0:
            drafts.append(
                CommissionDraft(
                    type=CommissionType.ARTIST,
                    amount=amount,
                    rate=to_decimal(item.artist_commission_rate),
                    artist_id=item.artist_id,
                )
            )

        for customization in item.customizations:
            price = round_money(customization.price)
            if price > 0:
                drafts.append(
                    CommissionDraft(
                        type=CommissionType.CUSTOMIZATION,
                        amount=price,
                        rate=HUNDRED,
                        artist_id=item.artist_id,
                    )
                )

    if referral is not None:
        base = to_decimal(order.subtotal) - to_decimal(order.discount)
        amount = round_money(base * to_decimal(referral.commission_rate) / HUNDRED)
        if amount > 0:
            drafts.append(
                CommissionDraft(
                    type=CommissionType.REFERRAL,
                    amount=amount,
                    rate=to_decimal(referral.commission_rate),
                    referral_id=referral.referral_id,
                )
            )

    return drafts


def calculate_ticket_commission(ticket_price, platform_fee, artist_id: str) -> CommissionDraft | None:
    """Return the artist's share of a ticket sale, or None when it is zero."""
    rate = HUNDRED - to_decimal(platform_fee)
    amount = round_money(to_decimal(ticket_price) * rate / HUNDRED)
    if amount <= 0:
        return None
    return CommissionDraft(type=CommissionType.TICKET, amount=amount, rate=rate, artist_id=artist_id)
