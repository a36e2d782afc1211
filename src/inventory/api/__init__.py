from inventory.api.routes import listing_router

__all__ = ["listing_router"]
