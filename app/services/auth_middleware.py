import secrets

from fastapi import Header, HTTPException, status

from app.config import settings


def require_api_secret(x_api_secret: str | None = Header(None)):
    """Shared-secret guard; open when no API_SECRET is configured."""
    secret = settings.API_SECRET
    if not secret:
        return
    if not x_api_secret or not secrets.compare_digest(x_api_secret, secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
