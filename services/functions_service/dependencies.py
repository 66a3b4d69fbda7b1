"""Collaborators injected into the function endpoints."""

from libs.common.emails.client import EmailClient
from libs.common.emails.client import get_email_client as _get_email_client
from libs.remote.client import RemoteDataClient, get_admin_client
from services.functions_service.stripe_client import StripeClient

_stripe_client = None


async def get_admin_remote() -> RemoteDataClient:
    return await get_admin_client()


def get_stripe_client() -> StripeClient:
    global _stripe_client
    if _stripe_client is None:
        _stripe_client = StripeClient()
    return _stripe_client


def get_email_client() -> EmailClient:
    return _get_email_client()
