"""FastAPI routes for the Commissions domain."""

from fastapi import APIRouter, Depends

from commissions.api.schemas import (
    CommissionResponse,
    CommissionSummaryResponse,
    PayAllResponse,
    PendingBeneficiaryResponse,
)
from shared.api import get_services
from shared.container import Services

commission_router = APIRouter(prefix="/commissions", tags=["commissions"])


@commission_router.get("", response_model=list[CommissionResponse])
def list_commissions(
    artist_id: str | None = None,
    order_id: str | None = None,
    ticket_id: str | None = None,
    status: str | None = None,
    services: Services = Depends(get_services),
) -> list[CommissionResponse]:
    commissions = services.commissions.list_commissions(
        artist_id=artist_id,
        order_id=order_id,
        ticket_id=ticket_id,
        status=status,
    )
    return [CommissionResponse.model_validate(c) for c in commissions]


@commission_router.get("/summary", response_model=CommissionSummaryResponse)
def commission_summary(services: Services = Depends(get_services)) -> CommissionSummaryResponse:
    return CommissionSummaryResponse.model_validate(services.commission_settlement.summary())


@commission_router.get("/beneficiaries-pending", response_model=list[PendingBeneficiaryResponse])
def beneficiaries_pending(services: Services = Depends(get_services)) -> list[PendingBeneficiaryResponse]:
    entries = services.commission_settlement.beneficiaries_pending()
    return [PendingBeneficiaryResponse.model_validate(entry) for entry in entries]


@commission_router.get("/artists-pending", response_model=list[PendingBeneficiaryResponse])
def artists_pending(services: Services = Depends(get_services)) -> list[PendingBeneficiaryResponse]:
    entries = services.commission_settlement.artists_pending()
    return [PendingBeneficiaryResponse.model_validate(entry) for entry in entries]


@commission_router.patch("/pay-all", response_model=PayAllResponse)
def pay_all_commissions(
    artist_id: str | None = None,
    referral_id: str | None = None,
    services: Services = Depends(get_services),
) -> PayAllResponse:
    """Settle PENDING commissions of one artist, one referral, or everyone."""
    paid = services.commission_settlement.pay_all(artist_id=artist_id, referral_id=referral_id)
    return PayAllResponse(paid=paid)


@commission_router.patch("/{commission_id}/pay", response_model=CommissionResponse)
def pay_commission(commission_id: str, services: Services = Depends(get_services)) -> CommissionResponse:
    return CommissionResponse.model_validate(services.commission_settlement.mark_paid(commission_id))
