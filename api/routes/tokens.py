"""
Token routes: client tokens for hosted card fields and a credentials check.
"""

from fastapi import APIRouter, Depends

from api.schemas import ClientTokenOut, CredentialsCheckOut
from core.dependencies import get_paypal_client, get_settings
from core.settings import Settings
from payments.paypal_client import PayPalClient

router = APIRouter()


@router.get("/client-token", response_model=ClientTokenOut)
async def client_token(client: PayPalClient = Depends(get_paypal_client)):
    token = await client.generate_client_token()
    return ClientTokenOut(
        client_token=token.value,
        degraded=token.degraded,
        expires_in=token.expires_in,
        note="Using access token as fallback" if token.degraded else None,
    )


@router.get("/credentials/check", response_model=CredentialsCheckOut)
async def check_credentials(
    client: PayPalClient = Depends(get_paypal_client),
    settings: Settings = Depends(get_settings),
):
    """Verify the configured PayPal credentials with a token exchange."""
    success = await client.test_connection()
    cached = client.tokens.cached
    preview = None
    # no bearer token fragments in production
    if success and cached and not settings.is_production:
        preview = f"{cached.value[:20]}..."
    return CredentialsCheckOut(
        success=success,
        environment=client.credentials.environment,
        token_preview=preview,
    )
