"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for business exceptions and request validation
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ..utils.clock import SystemClock, to_iso
from ..utils.exceptions import (
    BusinessException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    UnavailableException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

_STATUS_CODES = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (NotFoundException, status.HTTP_404_NOT_FOUND),
    (ForbiddenException, status.HTTP_403_FORBIDDEN),
    (InvalidStateException, status.HTTP_409_CONFLICT),
    (UnavailableException, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _timestamp(request: Request) -> str:
    clock = getattr(request.app.state, "clock", None) or SystemClock()
    return to_iso(clock.now())


def status_code_for(exc: BusinessException) -> int:
    """HTTP status for a business exception; unknown subclasses are 400."""
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload or query string
    HOW: Return 400 with field errors in the same shape the services use
    """
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")

    field_errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query" segment
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        field_errors.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg"),
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": {"field_errors": field_errors},
            "timestamp": _timestamp(request)
        }
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle BusinessException and its subclasses.

    WHAT: Domain error raised by a service
    WHY: Callers must tell missing, forbidden, conflicting and unavailable apart
    HOW: Status code from the exception type, body from its code/message/details
    """
    status_code = status_code_for(exc)

    if status_code >= 500:
        logger.error(f"Business exception: {exc.code} - {exc.message}")
    else:
        logger.warning(f"Business exception: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
            "timestamp": _timestamp(request)
        }
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)

    logger.info("Exception handlers registered")
