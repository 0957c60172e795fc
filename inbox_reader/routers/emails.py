"""Inbox listing, message body and attachment download endpoints."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import Response

from inbox_reader.deps import MailboxCredentials, get_credentials, get_mailbox
from inbox_reader.schemas import InboxResponse, MessageBodyResponse
from inbox_reader.service import MailboxService

router = APIRouter(prefix="/api/emails", tags=["emails"])


def content_disposition(filename: str) -> str:
    """``attachment`` disposition with an ASCII fallback and RFC 5987 name."""
    fallback = filename.encode("ascii", errors="replace").decode("ascii").replace('"', "'")
    encoded = quote(filename, safe="")
    if encoded == filename:
        return f'attachment; filename="{fallback}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


@router.get("/inbox", response_model=InboxResponse)
async def list_inbox(
    mailbox: Annotated[MailboxService, Depends(get_mailbox)],
    creds: Annotated[MailboxCredentials, Depends(get_credentials)],
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
):
    """Newest-first page of the inbox."""
    result = await mailbox.list_inbox_page(creds.identity, creds.access_token, page, limit)
    return InboxResponse(
        emails=result.summaries,
        total_emails=result.total,
        current_page=page,
        items_per_page=min(limit or mailbox.config.default_page_size, mailbox.config.max_page_size),
    )


@router.get("/body/{uid}", response_model=MessageBodyResponse)
async def get_body(
    mailbox: Annotated[MailboxService, Depends(get_mailbox)],
    creds: Annotated[MailboxCredentials, Depends(get_credentials)],
    uid: int = Path(ge=1),
):
    body = await mailbox.get_message_body(creds.identity, creds.access_token, uid)
    return MessageBodyResponse(body=body.rendered_content, attachments=body.attachments)


@router.get("/attachment/{uid}/{attachment_id}")
async def download_attachment(
    attachment_id: str,
    mailbox: Annotated[MailboxService, Depends(get_mailbox)],
    creds: Annotated[MailboxCredentials, Depends(get_credentials)],
    uid: int = Path(ge=1),
) -> Response:
    """Raw attachment bytes; ``attachment_id`` comes from the body response."""
    attachment = await mailbox.get_attachment(
        creds.identity, creds.access_token, uid, attachment_id
    )
    return Response(
        content=attachment.content,
        media_type=attachment.content_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(attachment.filename or "download")},
    )
