"""
Operator authentication.

Everything under /ingest triggers upstream scraping, so it sits behind a
shared operator key sent as X-API-Key. Archive reads, feeds and push
subscription endpoints stay public. Leaving AUTH_API_KEY empty turns the
check off for local development.
"""

import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from .config import config

operator_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


def verify_api_key(api_key: str | None = Security(operator_key_header)) -> str:
    """FastAPI dependency guarding operator routes. Returns the accepted key."""
    expected = config.AUTH_API_KEY
    if not expected:
        return ""

    if not api_key:
        raise _unauthorized("Missing API key. Provide X-API-Key header.")
    if not secrets.compare_digest(api_key.encode(), expected.encode()):
        raise _unauthorized("Invalid API key")
    return api_key
