import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Test configuration must be in place before settings are first read.
TEST_ENV = {
    "ENVIRONMENT": "local",
    "BASE_URL": "https://app.byw.test",
    "SUPABASE_URL": "https://backend.test",
    "SUPABASE_ANON_KEY": "anon-test-key",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role-test-key",
    "SUPABASE_JWT_SECRET": "test-jwt-secret-with-enough-length",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_test_123",
    "STRIPE_PRICE_WARM_UP": "price_warm_up",
    "STRIPE_PRICE_TRANSFORMATIONNEL": "price_transformationnel",
    "STRIPE_PRICE_ELITE": "price_elite",
    "RESEND_API_KEY": "re_test_123",
    "FROM_EMAIL": "noreply@byw.test",
    "RATE_LIMIT_STORAGE_URI": "memory://",
}
for _name, _value in TEST_ENV.items():
    os.environ.setdefault(_name, _value)

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()
settings = get_settings()

from libs.common.emails.client import EmailClient  # noqa: E402
from libs.common.rate_limit import limiter  # noqa: E402
from services.functions_service import dependencies  # noqa: E402
from services.functions_service.app.main import app  # noqa: E402
from services.functions_service.stripe_client import StripeClient  # noqa: E402
from tests.factories import make_token  # noqa: E402
from tests.fakes import FakeRemoteDataClient, ProviderStub  # noqa: E402


@pytest.fixture
def remote() -> FakeRemoteDataClient:
    return FakeRemoteDataClient()


@pytest.fixture
def stripe_api() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def email_api() -> ProviderStub:
    stub = ProviderStub()
    stub.route("POST", "/emails", json={"id": "email_123"})
    return stub


@pytest.fixture
def stripe_client(stripe_api) -> StripeClient:
    return StripeClient(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        transport=httpx.MockTransport(stripe_api),
    )


@pytest.fixture
def email_client(email_api) -> EmailClient:
    return EmailClient(
        api_key=settings.RESEND_API_KEY,
        from_email=settings.FROM_EMAIL,
        transport=httpx.MockTransport(email_api),
    )


@pytest_asyncio.fixture
async def functions_client(
    remote, stripe_client, email_client
) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to the functions app, with the backend and
    both providers replaced by in-memory doubles.
    """

    async def _remote():
        return remote

    app.dependency_overrides[dependencies.get_admin_remote] = _remote
    app.dependency_overrides[dependencies.get_stripe_client] = lambda: stripe_client
    app.dependency_overrides[dependencies.get_email_client] = lambda: email_client
    limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """
    Build ``Authorization`` headers carrying a signed access token.

    ``auth_headers("user-id", role="coach")`` for an app user,
    ``auth_headers(None, jwt_role="service_role")`` for server-side callers.
    """

    def _headers(sub=None, jwt_role="authenticated", **user_metadata) -> dict:
        token = make_token(
            settings.SUPABASE_JWT_SECRET, sub, role=jwt_role, user_metadata=user_metadata
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
