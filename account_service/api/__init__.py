"""API package exports."""

from account_service.api.middleware import CorrelationIdMiddleware
from account_service.api.routes import router
from account_service.api.users import router as users_router

__all__ = ["router", "users_router", "CorrelationIdMiddleware"]
