"""
FastAPI middleware for error handling and request processing.

Converts domain exceptions into HTTP error responses.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..utils.exceptions import (
    MissingConfirmationIdentifierError,
    NoConfirmationInProgressError,
    SessionApiConnectionError,
    SessionApiError,
    TradingSessionError,
    ValidationError,
)
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

# Checked in order, so subclasses come before their bases
ERROR_STATUS_CODES: tuple[tuple[type[TradingSessionError], int], ...] = (
    (MissingConfirmationIdentifierError, status.HTTP_401_UNAUTHORIZED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NoConfirmationInProgressError, status.HTTP_409_CONFLICT),
    (SessionApiConnectionError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (SessionApiError, status.HTTP_502_BAD_GATEWAY),
)


def status_code_for(error: TradingSessionError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code).model_dump(),
    )


async def error_handler_middleware(request: Request, call_next):
    """
    Catch domain exceptions and convert them to HTTP error responses.

    Args:
        request: FastAPI request
        call_next: Next middleware/handler in chain

    Returns:
        Response or JSONResponse with error details

    Exception Mapping:
        - MissingConfirmationIdentifierError → 401 Unauthorized (user was signed out)
        - ValidationError subclasses → 400 Bad Request
        - NoConfirmationInProgressError → 409 Conflict
        - SessionApiConnectionError → 503 Service Unavailable
        - Other SessionApiError → 502 Bad Gateway
        - Other TradingSessionError → 500 Internal Server Error
    """
    try:
        return await call_next(request)
    except TradingSessionError as e:
        status_code = status_code_for(e)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning(f"{request.method} {request.url.path} failed: {e.message}")
        return _error_response(status_code, e.message, e.code)
    except Exception:
        # Unexpected errors - don't expose internals
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_SERVER_ERROR",
        )
