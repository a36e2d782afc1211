"""FastAPI plumbing shared by every router: error mapping and service access."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.exceptions import (
    AuthenticationError,
    DomainError,
    ExternalServiceError,
    InvalidOperationError,
    ObjectNotFoundError,
    PermissionDeniedError,
    ProteanException,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Most specific base first: (base class, HTTP status, code when the error carries none)
_ERROR_MAP: list[tuple[type[ProteanException], int, str]] = [
    (ValidationError, 400, "validation_error"),
    (AuthenticationError, 401, "authentication_failed"),
    (PermissionDeniedError, 403, "permission_denied"),
    (ObjectNotFoundError, 404, "not_found"),
    (InvalidOperationError, 409, "conflict"),
    (ExternalServiceError, 502, "external_service_error"),
]


def _classify(exc: ProteanException) -> tuple[int, str]:
    for error_class, status_code, default_code in _ERROR_MAP:
        if isinstance(exc, error_class):
            return status_code, exc.code if isinstance(exc, DomainError) else default_code
    return 500, "error"


def _error_messages(exc: ProteanException) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    return {"_entity": [str(messages if messages is not None else exc)]}


async def _handle_domain_error(request: Request, exc: ProteanException) -> JSONResponse:
    status_code, code = _classify(exc)
    messages = _error_messages(exc)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=code, messages=messages)
    return JSONResponse(status_code=status_code, content={"error": code, "messages": messages})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProteanException, _handle_domain_error)


def get_services(request: Request):
    """Dependency returning the ``Services`` container wired into the app."""
    return request.app.state.services
