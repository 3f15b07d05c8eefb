# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Typed failures raised by the access gate, the session registry and the
redirect relay.

Every class carries the HTTP status it maps to.  ``register_error_handlers``
renders them as ``{"error": "<message>"}`` so that callers get a
human-readable message and never a stack trace.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from core.logger import logger


class PortalError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequestError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid authentication"


class AccountExpiredError(AuthenticationError):
    """The account's expiration passed; the caller has been signed out."""

    default_message = (
        "Your account has expired. Please contact your administrator to renew access."
    )


class AccessDeniedError(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class AccountBlockedError(AccessDeniedError):
    """The account is blocked.  The login itself stays valid."""

    default_message = "Your account has been blocked. Please contact your administrator."


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


def error_body(message: str) -> dict:
    return {"error": message}


def register_error_handlers(app: FastAPI) -> None:
    """Attach the JSON renderers for PortalError and storage failures."""

    @app.exception_handler(PortalError)
    async def _portal_error(request: Request, exc: PortalError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(SQLAlchemyError)
    async def _storage_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Storage failure on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(PortalError.default_message),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(PortalError.default_message),
        )
