from fastapi import Request, HTTPException, status
from config import get_settings


async def verify_api_token(request: Request):
    settings = get_settings()
    token = request.headers.get("Authorization")
    if not token or token != f"Bearer {settings.api_token}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid or missing API token"
        )


async def verify_vapi_secret(request: Request):
    """Webhook calls from the voice engine carry the shared secret in x-vapi-secret."""
    secret = get_settings().vapi_webhook_secret
    if secret and request.headers.get("x-vapi-secret") != secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid webhook secret"
        )
