"""
Admin authentication with a shared API token.
The token is sent in the X-Admin-Token header or as an Authorization bearer token.
"""
import os
import hmac
from typing import Optional
from fastapi import HTTPException, Request

TOKEN_HEADER = "X-Admin-Token"
DEV_ADMIN = "dev-admin"
TOKEN_ADMIN = "admin"


def get_admin_token() -> Optional[str]:
    """Get JOBINGEST_ADMIN_TOKEN from environment."""
    return os.getenv("JOBINGEST_ADMIN_TOKEN") or None


def is_dev_mode() -> bool:
    """Check if running in development mode."""
    return os.getenv("JOBINGEST_ENV", "").lower() == "dev"


def extract_token(request: Request) -> Optional[str]:
    token = request.headers.get(TOKEN_HEADER)
    if token:
        return token.strip()

    authorization = request.headers.get("Authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def verify_admin_token(token: Optional[str]) -> bool:
    """
    Verify token against JOBINGEST_ADMIN_TOKEN.
    Uses constant-time comparison to prevent timing attacks.
    """
    expected = get_admin_token()
    if not expected or not token:
        return False
    return hmac.compare_digest(token.encode(), expected.encode())


def get_current_admin(request: Request) -> Optional[str]:
    """
    Identify the caller of an admin endpoint.
    Returns None if not authenticated.
    """
    if is_dev_mode():
        return DEV_ADMIN

    if verify_admin_token(extract_token(request)):
        return TOKEN_ADMIN
    return None


def admin_required(request: Request) -> str:
    """
    FastAPI dependency that requires admin authentication.
    Raises 401 HTTPException if not authenticated.
    """
    admin = get_current_admin(request)
    if not admin:
        raise HTTPException(
            status_code=401,
            detail="Authentication required"
        )
    return admin
