"""Custom exceptions and exception handlers."""

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from search_sync.core.logging import get_logger

logger = get_logger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)


class ValidationException(AppException):
    """Missing or malformed caller input."""

    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class ForbiddenException(AppException):
    """Caller failed the access predicate."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class UpstreamException(AppException):
    """Index or repository failure surfaced to the caller."""

    def __init__(self, message: str = "Upstream service failed", detail: str | None = None):
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class ServiceUnavailableException(AppException):
    """Sync is disabled by configuration."""

    def __init__(self, message: str = "Search sync is disabled"):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class RateLimitError(Exception):
    """The search index rejected a request with a rate-limit response."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class RepositoryError(Exception):
    """The content repository returned a non-success response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ReindexCancelled(Exception):
    """A reindex run stopped because the caller cancelled it."""

    def __init__(self, collection: str, indexed_count: int):
        self.collection = collection
        self.indexed_count = indexed_count
        super().__init__(f"Reindex of '{collection}' cancelled after {indexed_count} documents")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions.

    Args:
        request: The incoming request.
        exc: The exception that was raised.

    Returns:
        JSONResponse: Error response.
    """
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Application error: %s (%s)", exc.message, exc.detail, exc_info=True)
    else:
        logger.warning("Request rejected with %s: %s", exc.status_code, exc.message)

    content: dict[str, Any] = {"error": exc.message, "type": exc.__class__.__name__}
    if exc.detail is not None:
        content["details"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions.

    Args:
        request: The incoming request.
        exc: The HTTP exception that was raised.

    Returns:
        JSONResponse: Error response.
    """
    logger.warning(f"HTTP error {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse: Error response.
    """
    logger.error(f"Unhandled error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
