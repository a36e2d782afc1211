"""Pydantic response schemas for the Commissions API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class CommissionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    order_id: str | None
    ticket_id: str | None
    type: str
    amount: Decimal
    rate: Decimal
    status: str
    artist_id: str | None
    referral_id: str | None
    created_at: datetime
    paid_at: datetime | None = None


class TypeBreakdownResponse(BaseModel):
    model_config = {"from_attributes": True}

    type: str
    amount: Decimal
    count: int


class PendingBeneficiaryResponse(BaseModel):
    model_config = {"from_attributes": True}

    kind: str
    beneficiary_id: str
    pending_amount: Decimal
    pending_count: int
    breakdown: list[TypeBreakdownResponse]
    referral_code: str | None = None
    owner_id: str | None = None


class CommissionSummaryResponse(BaseModel):
    model_config = {"from_attributes": True}

    pending_amount: Decimal
    pending_count: int
    paid_this_month_amount: Decimal
    paid_this_month_count: int
    generated_this_month_amount: Decimal
    generated_this_month_count: int
    total_paid_all_time: Decimal


class PayAllResponse(BaseModel):
    paid: int
