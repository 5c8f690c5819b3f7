"""
Exception handlers for the operator API.

Each commerce error class maps to one HTTP status and one error ``type`` in
the body. Webhook routes answer providers with channel-specific bodies
(TwiML, bare JSON) and catch their own errors before they reach these.

Body format::

    {"error": {"type": "NotFound", "message": "...", "error_id": "...", "retryable": false}}
"""

import logging
import traceback
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.domain.exceptions import (
    AuthenticationError,
    CommerceError,
    ConnectionError,
    NotFoundError,
    ProviderSendError,
    ValidationError,
)
from src.domain.shared_kernel import DomainException

logger = logging.getLogger(__name__)


@dataclass
class ErrorResponse:
    status_code: int
    error_type: str
    message: str
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    details: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    def to_response(self) -> JSONResponse:
        error: dict[str, Any] = {
            "type": self.error_type,
            "message": self.message,
            "error_id": self.error_id,
            "retryable": self.retryable,
        }
        if self.details:
            error["details"] = self.details
        return JSONResponse(status_code=self.status_code, content={"error": error})


def _present(details: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in details.items() if value is not None}


def _respond(request: Request, level: int, response: ErrorResponse, note: str = "") -> JSONResponse:
    logger.log(
        level,
        "[API] %s %s -> %d %s: %s (error_id=%s)%s",
        request.method,
        request.url.path,
        response.status_code,
        response.error_type,
        response.message,
        response.error_id,
        note,
    )
    return response.to_response()


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _respond(
        request,
        logging.INFO,
        ErrorResponse(400, "ValidationError", exc.message, details=_present(exc.details)),
    )


async def authentication_error_handler(
    request: Request, exc: AuthenticationError
) -> JSONResponse:
    # The reason stays in the log; callers only learn that authentication failed
    client = request.client.host if request.client else "unknown"
    return _respond(
        request,
        logging.WARNING,
        ErrorResponse(401, "AuthenticationError", "Authentication failed"),
        note=f" source={exc.source} client={client}",
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _respond(
        request,
        logging.INFO,
        ErrorResponse(404, "NotFound", exc.message, details=_present(exc.details)),
    )


async def upstream_error_handler(
    request: Request, exc: ConnectionError | ProviderSendError
) -> JSONResponse:
    """Model, tool server or provider failures surface as 502."""
    return _respond(
        request,
        logging.ERROR,
        ErrorResponse(
            502,
            type(exc).__name__,
            exc.message,
            details=_present(exc.details),
            retryable=getattr(exc, "retryable", True),
        ),
    )


async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    return _respond(
        request,
        logging.ERROR,
        ErrorResponse(500, type(exc).__name__, exc.message),
        note="\n" + traceback.format_exc(),
    )


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return _respond(request, logging.WARNING, ErrorResponse(400, "DomainError", str(exc)))


_HANDLERS = (
    # Subclasses first: Starlette picks the first match along the MRO anyway,
    # the order here only documents precedence.
    (ValidationError, validation_error_handler),
    (AuthenticationError, authentication_error_handler),
    (NotFoundError, not_found_handler),
    (ConnectionError, upstream_error_handler),
    (ProviderSendError, upstream_error_handler),
    (CommerceError, commerce_error_handler),
    (DomainException, domain_exception_handler),
)


def configure_exception_handlers(app: FastAPI) -> None:
    for exc_class, handler in _HANDLERS:
        app.add_exception_handler(exc_class, handler)
    logger.info("Configured %d exception handlers", len(_HANDLERS))
