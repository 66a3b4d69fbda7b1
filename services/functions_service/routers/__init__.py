"""Routers package."""

from services.functions_service.routers.checkout import router as checkout_router
from services.functions_service.routers.coach_accounts import (
    router as coach_accounts_router,
)
from services.functions_service.routers.emails import router as emails_router
from services.functions_service.routers.invitations import router as invitations_router
from services.functions_service.routers.webhooks import router as webhooks_router

__all__ = [
    "checkout_router",
    "coach_accounts_router",
    "emails_router",
    "invitations_router",
    "webhooks_router",
]
