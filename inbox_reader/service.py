"""Mailbox operations exposed to the surrounding application.

Each call bridges the access token into an XOAUTH2 credential, opens its
own IMAP session and closes it before returning.  Nothing is cached: the
mailbox may be changed by other clients between calls.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from .config import ImapConfig
from .credentials import build_xoauth2
from .errors import MailboxError
from .fetcher import fetch_raw_source
from .models import AttachmentContent, InboxPage, MessageBody
from .paginator import list_page
from .parser import MessageParser
from .resolver import resolve_attachment
from .session import open_session

logger = structlog.get_logger()


@contextmanager
def _operation(operation: str, **context: Any) -> Iterator[structlog.stdlib.BoundLogger]:
    log = logger.bind(operation=operation, **context)
    try:
        yield log
    except MailboxError as exc:
        log.warning(
            "mailbox_operation_failed",
            error=type(exc).__name__,
            detail=exc.message,
            requires_reauth=exc.requires_reauth,
        )
        raise


class MailboxService:
    """Read-only access to a single user's inbox."""

    def __init__(self, config: ImapConfig, parser: MessageParser | None = None) -> None:
        self._config = config
        self._parser = parser or MessageParser()

    @property
    def config(self) -> ImapConfig:
        return self._config

    async def list_inbox_page(
        self,
        identity: str,
        access_token: str,
        page: int = 1,
        page_size: int | None = None,
    ) -> InboxPage:
        """Return page *page* (1-based) of summaries, newest first."""
        size = min(page_size or self._config.default_page_size, self._config.max_page_size)
        with _operation("list_inbox_page", identity=identity, page=page, page_size=size) as log:
            credential = build_xoauth2(identity, access_token)
            async with open_session(self._config, credential) as session:
                result = await list_page(session, page, size)
            log.info("inbox_page_listed", returned=len(result.summaries), total=result.total)
            return result

    async def get_message_body(self, identity: str, access_token: str, uid: int) -> MessageBody:
        """Return the rendered body and attachment list of message *uid*."""
        with _operation("get_message_body", identity=identity, uid=uid) as log:
            credential = build_xoauth2(identity, access_token)
            async with open_session(self._config, credential) as session:
                raw = await fetch_raw_source(session, uid)
            body = self._parser.parse(raw).body()
            log.info("message_body_fetched", attachments=len(body.attachments))
            return body

    async def get_attachment(
        self,
        identity: str,
        access_token: str,
        uid: int,
        attachment_id: str,
    ) -> AttachmentContent:
        """Return the bytes of one attachment of message *uid*."""
        with _operation("get_attachment", identity=identity, uid=uid, attachment_id=attachment_id):
            credential = build_xoauth2(identity, access_token)
            async with open_session(self._config, credential) as session:
                return await resolve_attachment(session, uid, attachment_id, parser=self._parser)
