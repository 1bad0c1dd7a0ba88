"""Domain error taxonomy and structured error response handlers.

Every failed operation aborts with one of the ``InsuranceError`` subclasses
below and leaves no side effects behind. Over HTTP, every error — domain,
validation, or unexpected — returns:

    {
      "error": {
        "code": "DESCRIPTIVE_CODE",
        "message": "Human-readable explanation of what went wrong.",
        "request_id": "abc123...",
        ...extra fields when relevant
      }
    }
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ── Domain errors ─────────────────────────────────────────────────────────────


class InsuranceError(Exception):
    """Base class for every error raised by the policy engine."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(InsuranceError):
    """Malformed parameters. Caller-fixable, never retried automatically."""

    status_code = 422
    code = "VALIDATION_ERROR"


class AuthorizationError(InsuranceError):
    """Unauthorized oracle or wrong caller."""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(InsuranceError):
    """A policy, observation or pool the operation needs does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class StateConflictError(InsuranceError):
    """The policy is no longer in a state where the operation applies."""

    status_code = 409
    code = "STATE_CONFLICT"


class TransferError(InsuranceError):
    """A fund movement failed; safe to retry once balances are fixed."""

    status_code = 402
    code = "TRANSFER_FAILED"


class DataMismatchError(InsuranceError):
    """A confirming reading fell outside the verification tolerance."""

    status_code = 409
    code = "DATA_MISMATCH"


# ── HTTP handlers ─────────────────────────────────────────────────────────────

_STATUS_CODE_MAP: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(InsuranceError)
    async def insurance_error_handler(request: Request, exc: InsuranceError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    **exc.details,
                    "request_id": request_id,
                }
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)

        if isinstance(exc.detail, dict):
            body = {"error": {**exc.detail, "request_id": request_id}}
        else:
            body = {
                "error": {
                    "code": _STATUS_CODE_MAP.get(exc.status_code, "ERROR"),
                    "message": str(exc.detail),
                    "request_id": request_id,
                }
            }

        return JSONResponse(
            status_code=exc.status_code,
            content=body,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)

        fields = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            fields.append({"field": loc, "message": err["msg"], "type": err["type"]})

        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": f"{len(fields)} validation error(s) in your request.",
                    "details": fields,
                    "request_id": request_id,
                }
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        logger.exception("Unhandled error (request_id=%s)", request_id)

        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": (
                        "An unexpected error occurred. "
                        "If this persists, contact the operator with the request_id."
                    ),
                    "request_id": request_id,
                }
            },
        )
