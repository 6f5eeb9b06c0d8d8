"""Error taxonomy for the gateway and its HTTP mapping."""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """A gateway failure with an error code, message and HTTP status.

    Attributes:
        code: Short machine-readable error code (e.g. "NotFound").
        message: Human-readable description.
        status_code: HTTP status returned to the client.
        details: Itemized reasons, if any.
    """

    code = "GatewayError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(GatewayError):
    """Malformed query parameters or upload fields."""

    code = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(GatewayError):
    """The requested key, file id or bucket does not exist."""

    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class MalformedKey(GatewayError):
    """A listed key cannot be mapped to a file id.

    Never surfaced to clients: records with such keys are left out of results.
    """

    code = "MalformedKey"


class BackendError(GatewayError):
    """Any object store failure not classified above."""

    code = "BackendError"


def error_body(code: str, message: str, details: list[str] | None = None) -> dict:
    return {"error": code, "message": message, "details": details or []}


async def handle_gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.details),
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("query", "body", "path"))
        details.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ValidationError.code, "Invalid request parameters", details),
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Turn anything that escaped the handlers into a logged 500."""
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("InternalError", str(exc)),
        )
