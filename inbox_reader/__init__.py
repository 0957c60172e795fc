"""Inbox Reader: read-only, OAuth-authenticated IMAP inbox retrieval.

Public API re-exported here for convenience::

    from inbox_reader import MailboxService, ImapConfig
"""

from .config import ImapConfig, Settings
from .credentials import build_xoauth2
from .errors import (
    AuthExpired,
    CredentialError,
    MailboxError,
    NotFound,
    ParseError,
    ProtocolError,
    TransportError,
)
from .fetcher import fetch_raw_source
from .logging import setup_logging
from .models import (
    AttachmentContent,
    AttachmentDescriptor,
    InboxPage,
    MailboxState,
    MessageBody,
    MessageSummary,
)
from .paginator import list_page, page_bounds
from .parser import MessageParser, ParsedAttachment, ParsedMessage
from .resolver import resolve_attachment
from .service import MailboxService
from .session import MailboxSession, open_session, with_session

__all__ = [
    "AttachmentContent",
    "AttachmentDescriptor",
    "AuthExpired",
    "CredentialError",
    "ImapConfig",
    "InboxPage",
    "MailboxError",
    "MailboxService",
    "MailboxSession",
    "MailboxState",
    "MessageBody",
    "MessageParser",
    "MessageSummary",
    "NotFound",
    "ParseError",
    "ParsedAttachment",
    "ParsedMessage",
    "ProtocolError",
    "Settings",
    "TransportError",
    "build_xoauth2",
    "fetch_raw_source",
    "list_page",
    "open_session",
    "page_bounds",
    "resolve_attachment",
    "setup_logging",
    "with_session",
]
