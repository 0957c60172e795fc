"""Response schemas for the HTTP adapter."""

from __future__ import annotations

from pydantic import BaseModel

from .models import AttachmentDescriptor, MessageSummary


class InboxResponse(BaseModel):
    emails: list[MessageSummary]
    total_emails: int
    current_page: int
    items_per_page: int


class MessageBodyResponse(BaseModel):
    body: str
    attachments: list[AttachmentDescriptor]


class ErrorResponse(BaseModel):
    message: str
    error: str
    requires_reauth: bool = False
