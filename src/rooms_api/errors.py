"""Error taxonomy for rooms and the FastAPI handlers that render it."""

import logging

import pydantic
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RoomsError(Exception):
    """Base class for every recoverable, request-level failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Request failed"

    def __init__(self, message: str = None, *, detail: str = None):
        self.message = message or self.default_message
        # detail is for logs only; callers only ever see message
        self.detail = detail
        super().__init__(detail or self.message)


class ValidationError(RoomsError):
    """Missing file or room identifier; raised before any backend call."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class StorageError(RoomsError):
    """Failure talking to, or reported by, the object storage provider."""


class BackendUnavailable(StorageError):
    """Network or credential failure reaching the storage provider."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Storage backend unavailable"


class UploadFailed(StorageError):
    """The provider rejected the upload or answered with a malformed payload."""

    default_message = "Upload failed"


class ListFailed(StorageError):
    """The provider rejected the listing or answered with a malformed payload."""

    default_message = "Failed to fetch files"


class ListPartial(RoomsError):
    """A whole poll cycle failed on the client; the file set is left as is."""

    default_message = "Failed to load files, will retry on the next poll"


async def handle_rooms_errors(request: Request, exc: RoomsError) -> JSONResponse:
    """Render a domain error as ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc.__cause__)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_pydantic_validation_errors(
    request: Request, exc: pydantic.ValidationError | RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in errors
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message or "Invalid request"},
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )
