"""FastAPI routes for the Inventory domain: product listings and their stock."""

from fastapi import APIRouter, Depends

from inventory.api.schemas import ListingResponse, RegisterListingRequest, RestockRequest, StockLevelResponse
from shared.api import get_services
from shared.container import Services

listing_router = APIRouter(prefix="/listings", tags=["listings"])


@listing_router.post("", status_code=201, response_model=ListingResponse)
def register_listing(
    body: RegisterListingRequest,
    services: Services = Depends(get_services),
) -> ListingResponse:
    listing = services.listings.register_listing(**body.model_dump())
    return ListingResponse.model_validate(listing)


@listing_router.get("/{listing_id}", response_model=ListingResponse)
def get_listing(listing_id: str, services: Services = Depends(get_services)) -> ListingResponse:
    listing = services.listings.get_listing(listing_id)
    return ListingResponse.model_validate(listing)


@listing_router.put("/{listing_id}/restock", response_model=StockLevelResponse)
def restock_listing(
    listing_id: str,
    body: RestockRequest,
    services: Services = Depends(get_services),
) -> StockLevelResponse:
    available = services.listings.restock(listing_id, body.quantity)
    return StockLevelResponse(listing_id=listing_id, available=available)
