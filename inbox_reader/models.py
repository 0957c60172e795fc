"""Request-scoped value types returned by the retrieval operations."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MailboxState(BaseModel):
    """Mailbox size as reported by SELECT; re-read on every session open."""

    model_config = ConfigDict(frozen=True)

    total_message_count: int = Field(ge=0, description="Number of messages in the mailbox")


class MessageSummary(BaseModel):
    """One row of an inbox page."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    uid: int = Field(description="Stable, server-assigned message identifier")
    sequence_number: int = Field(
        description="Session-relative ordinal; only meaningful inside the session that produced it",
    )
    subject: str
    from_: str = Field(alias="from")
    date: datetime | None = Field(default=None, description="INTERNALDATE, else the Date header")
    flags: frozenset[str] = Field(default_factory=frozenset)


class InboxPage(BaseModel):
    """A page of summaries, newest first, plus the mailbox size."""

    summaries: list[MessageSummary] = Field(default_factory=list)
    total: int = Field(ge=0)


class AttachmentDescriptor(BaseModel):
    """Attachment metadata exposed with a message body.

    ``id`` is deterministic for a byte-identical source: the part's
    Content-ID when present, otherwise ``attachment-<index>``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    content_type: str
    size: int = Field(ge=0)


class MessageBody(BaseModel):
    """Rendered content of a message and its attachment list."""

    rendered_content: str
    attachments: list[AttachmentDescriptor] = Field(default_factory=list)


class AttachmentContent(BaseModel):
    """The bytes of one attachment, alive for a single download."""

    model_config = ConfigDict(frozen=True)

    content: bytes = Field(repr=False)
    filename: str
    content_type: str
    size: int = Field(ge=0)
