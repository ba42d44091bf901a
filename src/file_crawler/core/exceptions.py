"""Error taxonomy for the crawler and its FastAPI exception handlers."""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from file_crawler.core.logging import get_logger

logger = get_logger(__name__)


class FileCrawlerError(Exception):
    """Base application exception.

    Attributes:
        message: Human readable cause.
        retryable: Whether repeating the failed call may succeed.
        status_code: HTTP status used when the error reaches the API surface.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None):
        self.message = message
        self.retryable = self.default_retryable if retryable is None else retryable
        super().__init__(self.message)


class ConfigError(FileCrawlerError):
    """Run-level configuration is missing or invalid. Fatal before any work starts."""


class ConversionError(FileCrawlerError):
    """A file could not be converted to text. The file is skipped."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class EmbeddingError(FileCrawlerError):
    """The embedding model failed or is unavailable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_retryable = True


class IndexServiceError(FileCrawlerError):
    """The vector database rejected a call or could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class SchemaMismatchError(IndexServiceError):
    """A vector does not match the collection's fixed schema."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class ChunkIdCollisionError(IndexServiceError):
    """A chunk id is already owned by a different source path."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class RerankError(FileCrawlerError):
    """The relevance model could not score a shortlist."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class GenerationError(FileCrawlerError):
    """The chat-completion service failed to produce an answer."""

    status_code = status.HTTP_502_BAD_GATEWAY


def is_retryable(exc: BaseException) -> bool:
    """Return True for timeouts and errors flagged as transient."""
    return isinstance(exc, TimeoutError) or bool(getattr(exc, "retryable", False))


async def app_exception_handler(request: Request, exc: FileCrawlerError) -> JSONResponse:
    """Handle custom application exceptions.

    Args:
        request: The incoming request.
        exc: The exception that was raised.

    Returns:
        JSONResponse: Error response.
    """
    logger.error("Application error: %s", exc.message, exc_info=True)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": exc.__class__.__name__},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning("HTTP error %s: %s", exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.error("Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
