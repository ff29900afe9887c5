"""Security utilities and middleware."""

import hmac
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from search_sync.config import Settings
from search_sync.repositories.content_repository import ContentRepository


async def security_headers_middleware(request: Request, call_next: Any) -> JSONResponse:
    """Add security headers to responses.

    Args:
        request: The incoming request.
        call_next: The next middleware or route handler.

    Returns:
        Response: Response with security headers added.
    """
    response = await call_next(request)

    # Add security headers
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"

    return response


def bearer_token(request: Request) -> str | None:
    """Extract the bearer token from the Authorization header, if any."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def reindex_access_predicate(
    request: Request, settings: Settings, repository: ContentRepository
) -> Callable[[], Awaitable[bool]]:
    """Build the default reindex access check for a request.

    The caller must present a bearer token. When REINDEX_API_KEY is configured
    the token must equal it. Otherwise the repository must resolve the forwarded
    Authorization header to a signed-in user.
    """

    async def _check() -> bool:
        token = bearer_token(request)
        if token is None:
            return False
        if settings.reindex_api_key is not None:
            return hmac.compare_digest(token.encode(), settings.reindex_api_key.encode())
        user = await repository.current_user(request.headers["authorization"])
        return user is not None

    return _check
