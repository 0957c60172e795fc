"""FastAPI dependency-injection helpers."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request, status

from .service import MailboxService


@dataclass(frozen=True)
class MailboxCredentials:
    """Identity and OAuth access token handed over by the auth layer."""

    identity: str
    access_token: str


def get_mailbox(request: Request) -> MailboxService:
    return request.app.state.mailbox


async def get_credentials(
    authorization: str | None = Header(default=None),
    x_mailbox_user: str | None = Header(default=None),
) -> MailboxCredentials:
    """Read ``Authorization: Bearer <token>`` and ``X-Mailbox-User``."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or not (x_mailbox_user or "").strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Please log in first.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return MailboxCredentials(identity=x_mailbox_user.strip(), access_token=token.strip())
