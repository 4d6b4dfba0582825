"""Domain error taxonomy and its mapping onto HTTP responses.

Services raise these; the handlers registered by :func:`register_error_handlers`
turn them into RFC 7807 problem documents. Anything that is not a
:class:`DomainError` (or an HTTPException) becomes an opaque 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import schemas

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Internal Server Error"
    default_detail: str = "Something went wrong"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        self.detail = detail or self.default_detail
        self.headers = headers
        super().__init__(self.detail)


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    title = "Bad Request"
    default_detail = "Invalid request"


class InvalidOperation(ValidationError):
    default_detail = "Operation not allowed"


class NotWatching(InvalidOperation):
    default_detail = "You are not watching this user"


class Unauthenticated(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Unauthorized"
    default_detail = "Authentication required"


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    title = "Forbidden"
    default_detail = "You don't have permission to access this resource"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not Found"
    default_detail = "Resource not found"


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    title = "Conflict"
    default_detail = "Resource already exists"


class AlreadyWatching(Conflict):
    default_detail = "You are already watching this user"


class RateLimited(DomainError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    title = "Too Many Requests"
    default_detail = "Too many attempts. Please try again later"


class RangeNotSatisfiable(DomainError):
    status_code = 416
    title = "Range Not Satisfiable"
    default_detail = "Requested range not satisfiable"


class UpstreamFailure(DomainError):
    """An external collaborator (media host, identity provider) failed."""

    title = "Upstream Failure"
    default_detail = "An external service failed to complete the request"


def _problem(
    status_code: int, title: str, detail: str, errors: dict[str, list[str]] | None = None
) -> JSONResponse:
    body = schemas.Problem(title=title, status=status_code, detail=detail, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    response = _problem(exc.status_code, exc.title, exc.detail)
    if isinstance(exc, Unauthenticated):
        response.headers["WWW-Authenticate"] = "Bearer"
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing input is a 400 with the offending fields listed."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body") or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return _problem(
        status.HTTP_400_BAD_REQUEST,
        "Bad Request",
        "Request validation failed",
        errors,
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc
    )
    return _problem(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "Server error",
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
