"""Full raw-source retrieval of a single message by UID."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from .errors import ProtocolError

if TYPE_CHECKING:
    from .session import MailboxSession

logger = structlog.get_logger()

# PEEK keeps \Seen untouched; the mailbox is read-only anyway
SOURCE_FETCH = "(BODY.PEEK[])"


def _extract_source(data: list[Any]) -> bytes:
    chunks = [
        item[1]
        for item in data
        if isinstance(item, tuple) and len(item) > 1 and isinstance(item[1], bytes)
    ]
    return b"".join(chunks)


async def fetch_raw_source(session: MailboxSession, uid: int) -> bytes:
    """Return the complete RFC 822 source of message *uid*."""
    if uid < 1:
        raise ValueError(f"uid must be >= 1, got {uid}")

    data = await session.uid_fetch(uid, SOURCE_FETCH)
    source = _extract_source(data)
    if not source:
        raise ProtocolError(f"No message source received for UID {uid}")

    logger.debug("imap_source_fetched", uid=uid, size_bytes=len(source))
    return source
