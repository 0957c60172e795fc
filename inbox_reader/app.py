"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from inbox_reader.config import Settings
from inbox_reader.errors import (
    AuthExpired,
    CredentialError,
    MailboxError,
    NotFound,
    ParseError,
    ProtocolError,
    TransportError,
)
from inbox_reader.schemas import ErrorResponse
from inbox_reader.service import MailboxService

logger = structlog.get_logger()

_STATUS_BY_ERROR: tuple[tuple[type[MailboxError], int], ...] = (
    (AuthExpired, status.HTTP_401_UNAUTHORIZED),
    (CredentialError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ParseError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ProtocolError, status.HTTP_502_BAD_GATEWAY),
    (TransportError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: MailboxError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def mailbox_error_handler(request: Request, exc: MailboxError) -> JSONResponse:
    """Serialize a mailbox error; 401 + ``requires_reauth`` tells the caller to drop its session."""
    code = status_for(exc)
    body = ErrorResponse(
        message=exc.message,
        error=type(exc).__name__,
        requires_reauth=exc.requires_reauth,
    )
    headers = {"WWW-Authenticate": 'Bearer error="invalid_token"'} if exc.requires_reauth else None
    return JSONResponse(content=body.model_dump(), status_code=code, headers=headers)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Inbox Reader",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.mailbox = MailboxService(settings.imap)

    from inbox_reader.routers.emails import router as emails_router

    app.include_router(emails_router)
    app.add_exception_handler(MailboxError, mailbox_error_handler)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "inbox-reader"}

    logger.info("app_created", imap_host=settings.imap.host, mailbox=settings.imap.mailbox)
    return app
