"""Global exception handlers: map SDK exceptions to HTTP status codes.

The SDK raises typed exceptions (``stepwork.exceptions``) for caller
errors.  Rather than catching these in every route, we install global
handlers that pick the HTTP status from the exception type.  This keeps
route handlers clean and focused on the happy path.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from stepwork.exceptions import (
    HistoryMismatch,
    InvalidStep,
    SessionNotFound,
    StepAlreadyComplete,
)

logger = logging.getLogger(__name__)

# --- Exception types and their HTTP status codes ---
# Checked in order; first isinstance match wins.  Any other ValueError
# (e.g. a blank answer) is a plain bad request.
_VALUE_ERROR_STATUS: list[tuple[type[ValueError], int]] = [
    (SessionNotFound, 404),
    (StepAlreadyComplete, 409),
    # Stored history no longer lines up with the question script
    (HistoryMismatch, 409),
    (InvalidStep, 400),
]


# --- Client-safe messages keyed by HTTP status code ---
# Internal details (user_id, session_id, question ids) stay in the server
# log; the client receives only a generic description.
_SAFE_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    403: "Forbidden",
    404: "Resource not found",
    409: "Conflict with the current session state",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map SDK ``ValueError`` subclasses to an HTTP error response.

    The raw exception message is logged server-side but **never** sent
    to the client: it may contain user ids or session ids.
    """
    status = 400  # default
    for exc_type, code in _VALUE_ERROR_STATUS:
        if isinstance(exc, exc_type):
            status = code
            break

    logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    return JSONResponse(status_code=status, content={"detail": _SAFE_MESSAGES[status]})


async def permission_error_handler(request: Request, exc: PermissionError) -> JSONResponse:
    """Map ``SessionForbidden`` (another user's session) to 403."""
    logger.warning("PermissionError at %s: %s", request.url, exc)
    return JSONResponse(status_code=403, content={"detail": _SAFE_MESSAGES[403]})


async def stale_data_error_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    """A concurrent request updated the same session first; report 409."""
    logger.warning("Concurrent update rejected at %s: %s", request.url, exc)
    return JSONResponse(status_code=409, content={"detail": _SAFE_MESSAGES[409]})


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed or missing request fields as 400."""
    logger.info("Request validation failed at %s: %s", request.url, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
            for e in exc.errors()
        ]},
    )


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Map ``KeyError`` (unknown question id) to 404."""
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
