"""
Quota error types and their HTTP rendering.

Every error response has the same body:

    {"error": {"code", "message", "request_id"}, "detail": message}

and echoes the request id in the x-request-id header.
"""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from sitequota.core.logging import get_request_id

logger = logging.getLogger("sitequota")

REQUEST_ID_HEADER = "x-request-id"


class AppError(Exception):
    """Base error carrying a stable machine code and an HTTP status."""

    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        account_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.status_code = status_code or self.status_code
        self.account_id = account_id
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class MalformedInputError(ValidationError):
    """An account or usage reading that cannot be evaluated as-is.

    Raised instead of clamping so data-quality bugs in usage accounting
    surface at the boundary.
    """
    code = "malformed_input"
    status_code = 422


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class StoreUnavailableError(AppError):
    """An ownership, membership or metrics store failed or timed out."""
    code = "store_unavailable"
    status_code = 503


def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def _json_error(status_code: int, code: str, message: str, request_id: str) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "request_id": request_id},
            "detail": message,
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id_for(request)
    # Store outages page someone; bad input and misses do not
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={
            "request_id": rid,
            "account_id": exc.account_id,
            "error_code": exc.code,
            "status": exc.status_code,
            "error_message": exc.message,
        },
    )
    return _json_error(exc.status_code, exc.code, exc.message, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id_for(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _json_error(exc.status_code, code, str(exc.detail or "HTTP error"), rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id_for(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return _json_error(500, "internal_error", "Unexpected error", rid)
