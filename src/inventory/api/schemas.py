"""Pydantic request/response schemas for the Inventory API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class RegisterListingRequest(BaseModel):
    artist_id: str
    artist_user_id: str
    artist_name: str
    title: str = Field(min_length=1, max_length=255)
    sale_price: Decimal = Field(ge=0)
    manufacturing_cost: Decimal = Field(ge=0)
    artist_commission_rate: Decimal = Field(ge=0, le=100)
    stock: int = Field(ge=0, default=0)
    product_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "artist_id": "art-001",
                    "artist_user_id": "usr-101",
                    "artist_name": "Los Ecos",
                    "title": "Tour T-Shirt",
                    "sale_price": "100.00",
                    "manufacturing_cost": "40.00",
                    "artist_commission_rate": "50",
                    "stock": 25,
                }
            ]
        }
    }


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


class ListingResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    artist_id: str
    artist_name: str
    product_id: str
    title: str
    sale_price: Decimal
    manufacturing_cost: Decimal
    artist_commission_rate: Decimal
    stock: int
    is_active: bool
    created_at: datetime


class StockLevelResponse(BaseModel):
    listing_id: str
    available: int
