"""Tests for the HTTP adapter (inbox_reader.app and routers)."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from inbox_reader.app import create_app
from inbox_reader.config import ImapConfig, Settings
from inbox_reader.deps import get_mailbox
from inbox_reader.errors import (
    AuthExpired,
    CredentialError,
    NotFound,
    ParseError,
    ProtocolError,
    TransportError,
)
from inbox_reader.models import (
    AttachmentContent,
    AttachmentDescriptor,
    InboxPage,
    MessageBody,
    MessageSummary,
)
from inbox_reader.routers.emails import content_disposition

AUTH_HEADERS = {"Authorization": "Bearer ya29.token", "X-Mailbox-User": "user@example.com"}


@pytest.fixture
def mailbox() -> MagicMock:
    service = MagicMock()
    service.config = ImapConfig(host="imap.test.com")
    service.list_inbox_page = AsyncMock()
    service.get_message_body = AsyncMock()
    service.get_attachment = AsyncMock()
    return service


@pytest.fixture
def app(mailbox: MagicMock):
    application = create_app(Settings(imap=ImapConfig(host="imap.test.com")))
    application.dependency_overrides[get_mailbox] = lambda: mailbox
    return application


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def _summary(seq: int) -> MessageSummary:
    return MessageSummary(
        uid=100 + seq,
        sequence_number=seq,
        subject=f"Message {seq}",
        from_="sender@example.com",
        date=datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc),
        flags=frozenset({"\\Seen"}),
    )


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: httpx.AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestInbox:
    @pytest.mark.asyncio
    async def test_lists_page(self, client: httpx.AsyncClient, mailbox: MagicMock):
        mailbox.list_inbox_page.return_value = InboxPage(summaries=[_summary(2), _summary(1)], total=2)
        resp = await client.get("/api/emails/inbox?page=1&limit=10", headers=AUTH_HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_emails"] == 2
        assert data["current_page"] == 1
        assert data["items_per_page"] == 10
        assert [e["uid"] for e in data["emails"]] == [102, 101]
        assert data["emails"][0]["from"] == "sender@example.com"
        assert data["emails"][0]["flags"] == ["\\Seen"]
        mailbox.list_inbox_page.assert_awaited_once_with("user@example.com", "ya29.token", 1, 10)

    @pytest.mark.asyncio
    async def test_default_limit(self, client: httpx.AsyncClient, mailbox: MagicMock):
        mailbox.list_inbox_page.return_value = InboxPage(summaries=[], total=0)
        resp = await client.get("/api/emails/inbox", headers=AUTH_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["items_per_page"] == 25
        mailbox.list_inbox_page.assert_awaited_once_with("user@example.com", "ya29.token", 1, None)

    @pytest.mark.asyncio
    async def test_invalid_page_rejected(self, client: httpx.AsyncClient, mailbox: MagicMock):
        resp = await client.get("/api/emails/inbox?page=0", headers=AUTH_HEADERS)
        assert resp.status_code == 422
        mailbox.list_inbox_page.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"X-Mailbox-User": "user@example.com"},
            {"Authorization": "Bearer ya29.token"},
            {"Authorization": "Basic abc", "X-Mailbox-User": "user@example.com"},
        ],
    )
    async def test_missing_credentials(self, client: httpx.AsyncClient, mailbox: MagicMock, headers):
        resp = await client.get("/api/emails/inbox", headers=headers)
        assert resp.status_code == 401
        mailbox.list_inbox_page.assert_not_called()


class TestBody:
    @pytest.mark.asyncio
    async def test_body(self, client: httpx.AsyncClient, mailbox: MagicMock):
        mailbox.get_message_body.return_value = MessageBody(
            rendered_content="<p>Hi</p>",
            attachments=[
                AttachmentDescriptor(
                    id="attachment-0", filename="a.pdf", content_type="application/pdf", size=3
                )
            ],
        )
        resp = await client.get("/api/emails/body/42", headers=AUTH_HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["body"] == "<p>Hi</p>"
        assert data["attachments"][0]["id"] == "attachment-0"
        mailbox.get_message_body.assert_awaited_once_with("user@example.com", "ya29.token", 42)


class TestAttachment:
    @pytest.mark.asyncio
    async def test_download(self, client: httpx.AsyncClient, mailbox: MagicMock):
        mailbox.get_attachment.return_value = AttachmentContent(
            content=b"%PDF", filename="report.pdf", content_type="application/pdf", size=4
        )
        resp = await client.get("/api/emails/attachment/42/attachment-0", headers=AUTH_HEADERS)
        assert resp.status_code == 200
        assert resp.content == b"%PDF"
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.headers["content-length"] == "4"
        assert resp.headers["content-disposition"] == 'attachment; filename="report.pdf"'
        mailbox.get_attachment.assert_awaited_once_with(
            "user@example.com", "ya29.token", 42, "attachment-0"
        )

    def test_content_disposition_non_ascii(self):
        header = content_disposition("résumé.pdf")
        assert header.startswith('attachment; filename="r?sum?.pdf"')
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in header


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_auth_expired_requests_reauth(self, client: httpx.AsyncClient, mailbox: MagicMock):
        mailbox.get_message_body.side_effect = AuthExpired("Authentication failed.")
        resp = await client.get("/api/emails/body/42", headers=AUTH_HEADERS)
        assert resp.status_code == 401
        data = resp.json()
        assert data["requires_reauth"] is True
        assert data["error"] == "AuthExpired"
        assert "invalid_token" in resp.headers["www-authenticate"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status_code",
        [
            (CredentialError("bad token"), 400),
            (NotFound("Attachment not found."), 404),
            (ParseError("Failed to parse"), 422),
            (ProtocolError("No message source"), 502),
            (TransportError("timed out"), 503),
        ],
    )
    async def test_status_codes(self, client: httpx.AsyncClient, mailbox: MagicMock, error, status_code):
        mailbox.get_attachment.side_effect = error
        resp = await client.get("/api/emails/attachment/42/attachment-0", headers=AUTH_HEADERS)
        assert resp.status_code == status_code
        data = resp.json()
        assert data["requires_reauth"] is False
        assert data["message"] == error.message
