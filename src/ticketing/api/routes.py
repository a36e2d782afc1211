"""FastAPI routes for the Ticketing domain: shows, ticket sales and admission."""

from fastapi import APIRouter, Depends

from shared.api import get_services
from shared.container import Services
from ticketing.api.schemas import (
    AdmitTicketRequest,
    CancelShowRequest,
    PurchaseTicketRequest,
    ScheduleShowRequest,
    ShowCancellationResponse,
    ShowResponse,
    TicketResponse,
    TicketSalesRequest,
)

# ---------------------------------------------------------------------------
# Show Router
# ---------------------------------------------------------------------------
show_router = APIRouter(prefix="/shows", tags=["shows"])


@show_router.post("", status_code=201, response_model=ShowResponse)
def schedule_show(body: ScheduleShowRequest, services: Services = Depends(get_services)) -> ShowResponse:
    show = services.shows.schedule_show(**body.model_dump())
    return ShowResponse.model_validate(show)


@show_router.get("/{show_id}", response_model=ShowResponse)
def get_show(show_id: str, services: Services = Depends(get_services)) -> ShowResponse:
    return ShowResponse.model_validate(services.shows.get_show(show_id))


@show_router.put("/{show_id}/ticket-sales", response_model=ShowResponse)
def set_ticket_sales(
    show_id: str,
    body: TicketSalesRequest,
    services: Services = Depends(get_services),
) -> ShowResponse:
    show = services.shows.set_ticket_sales(show_id, body.enabled)
    return ShowResponse.model_validate(show)


@show_router.post("/{show_id}/cancel", response_model=ShowCancellationResponse)
def cancel_show(
    show_id: str,
    body: CancelShowRequest,
    services: Services = Depends(get_services),
) -> ShowCancellationResponse:
    cancellation = services.shows.cancel_show(show_id, reason=body.reason)
    return ShowCancellationResponse.model_validate(cancellation)


@show_router.post("/{show_id}/tickets", status_code=201, response_model=TicketResponse)
def purchase_ticket(
    show_id: str,
    body: PurchaseTicketRequest,
    services: Services = Depends(get_services),
) -> TicketResponse:
    ticket = services.ticket_sales.purchase(body.buyer_id, show_id)
    return TicketResponse.model_validate(ticket)


@show_router.post("/{show_id}/tickets/simulate-payment", response_model=TicketResponse)
def simulate_ticket_payment(
    show_id: str,
    body: PurchaseTicketRequest,
    services: Services = Depends(get_services),
) -> TicketResponse:
    ticket = services.ticket_sales.simulate_payment(body.buyer_id, show_id)
    return TicketResponse.model_validate(ticket)


# ---------------------------------------------------------------------------
# Ticket Router
# ---------------------------------------------------------------------------
ticket_router = APIRouter(prefix="/tickets", tags=["tickets"])


@ticket_router.get("", response_model=list[TicketResponse])
def list_tickets(buyer_id: str, services: Services = Depends(get_services)) -> list[TicketResponse]:
    return [TicketResponse.model_validate(t) for t in services.ticket_sales.tickets_for_buyer(buyer_id)]


@ticket_router.post("/admit", response_model=TicketResponse)
def admit_ticket(body: AdmitTicketRequest, services: Services = Depends(get_services)) -> TicketResponse:
    ticket = services.admission.admit(body.qr_code, show_id=body.show_id)
    return TicketResponse.model_validate(ticket)
