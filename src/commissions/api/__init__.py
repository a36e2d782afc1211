from commissions.api.routes import commission_router

__all__ = ["commission_router"]
