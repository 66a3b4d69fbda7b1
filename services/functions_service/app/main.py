"""FastAPI application for the BYW serverless functions.

Checkout, account provisioning, invitations, transactional email and the
Stripe webhook all run here against the service-role data handle.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.functions_service.routers import (
    checkout_router,
    coach_accounts_router,
    emails_router,
    invitations_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the functions FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="BYW Functions",
        version="0.1.0",
        description="Server-side functions for the BYW coaching platform.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "functions"}

    app.include_router(checkout_router)
    app.include_router(coach_accounts_router)
    app.include_router(emails_router)
    app.include_router(invitations_router)
    app.include_router(webhooks_router)

    return app


app = create_app()
