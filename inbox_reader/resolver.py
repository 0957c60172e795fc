"""On-demand attachment download by re-parsing the message source."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from .errors import NotFound
from .fetcher import fetch_raw_source
from .models import AttachmentContent
from .parser import MessageParser

if TYPE_CHECKING:
    from .session import MailboxSession

logger = structlog.get_logger()


async def resolve_attachment(
    session: MailboxSession,
    uid: int,
    attachment_id: str,
    *,
    parser: MessageParser | None = None,
) -> AttachmentContent:
    """Fetch message *uid* and return the bytes of attachment *attachment_id*.

    Raises :class:`NotFound` when no part carries that id, which is the
    expected outcome for stale or fabricated ids.
    """
    raw = await fetch_raw_source(session, uid)
    parsed = (parser or MessageParser()).parse(raw)

    attachment = parsed.find_attachment(attachment_id)
    if attachment is None:
        logger.info("attachment_not_found", uid=uid, attachment_id=attachment_id)
        raise NotFound(f"Attachment {attachment_id!r} not found in message {uid}")

    logger.info(
        "attachment_resolved",
        uid=uid,
        attachment_id=attachment_id,
        size_bytes=attachment.size,
    )
    return AttachmentContent(
        content=attachment.payload,
        filename=attachment.filename,
        content_type=attachment.content_type,
        size=attachment.size,
    )
