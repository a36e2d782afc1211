from ticketing.api.routes import show_router, ticket_router

__all__ = ["show_router", "ticket_router"]
