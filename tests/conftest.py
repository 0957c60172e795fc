"""Shared test fixtures for the inbox_reader test suite."""

from __future__ import annotations

import email
import email.policy
from collections.abc import Sequence
from email.message import EmailMessage
from unittest.mock import MagicMock

import pytest

from inbox_reader.config import ImapConfig

# 1x1 transparent GIF
GIF_BYTES = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04\x01\x00"
    b"\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)

PDF_BYTES = b"%PDF-1.4 fake pdf content"
CSV_BYTES = b"col1,col2\na,b\n"


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        host="imap.test.com",
        connect_timeout_seconds=1.0,
        command_timeout_seconds=1.0,
    )


# Messages built with the content manager API; set_content() always ends a
# text part with a newline.


def build_message(
    *,
    subject: str | None = "Test Subject",
    sender: str | None = "sender@example.com",
    text: str | None = "Hello, World!",
    html: str | None = None,
    attachments: Sequence[tuple[str, str, bytes]] = (),
    content_ids: dict[str, str] | None = None,
    date: str = "Sun, 01 Jun 2025 12:00:00 +0000",
) -> bytes:
    """Raw bytes of a message with optional text/HTML bodies and attachments.

    *attachments* holds ``(filename, content_type, payload)`` triples;
    *content_ids* maps some of those filenames to a Content-ID.
    """
    msg = EmailMessage()
    if subject is not None:
        msg["Subject"] = subject
    if sender is not None:
        msg["From"] = sender
    msg["To"] = "recipient@example.com"
    msg["Date"] = date

    if text is not None:
        msg.set_content(text)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")

    cids = content_ids or {}
    for filename, content_type, payload in attachments:
        maintype, subtype = content_type.split("/", 1)
        cid = f"<{cids[filename]}>" if filename in cids else None
        msg.add_attachment(payload, maintype=maintype, subtype=subtype, filename=filename, cid=cid)

    return msg.as_bytes()


def build_related_message() -> bytes:
    """HTML body showing an inline cid image, plus one downloadable PDF."""
    msg = EmailMessage()
    msg["Subject"] = "Newsletter"
    msg["From"] = "news@example.com"
    msg.set_content('<p>Logo: <img src="cid:logo@example.com"></p>', subtype="html")
    msg.add_related(
        GIF_BYTES,
        maintype="image",
        subtype="gif",
        filename="logo.gif",
        disposition="inline",
        cid="<logo@example.com>",
    )
    msg.add_attachment(
        b"%PDF-1.4 invoice", maintype="application", subtype="pdf", filename="invoice.pdf"
    )
    return msg.as_bytes()


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return build_message()


@pytest.fixture
def html_eml_bytes() -> bytes:
    return build_message(subject="HTML Email", text=None, html="<p>Hello</p>")


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return build_message(
        subject="Multipart Email",
        text="Plain body",
        html="<p>HTML body</p>",
        attachments=[
            ("report.pdf", "application/pdf", PDF_BYTES),
            ("data.csv", "text/csv", CSV_BYTES),
        ],
    )


@pytest.fixture
def related_eml_bytes() -> bytes:
    return build_related_message()


# Fake IMAP server: a MagicMock standing in for imaplib.IMAP4_SSL whose
# FETCH and UID FETCH replies are shaped the way imaplib returns them.

_HEADER_FIELDS = ("From", "Subject", "Date")


def header_fields(raw: bytes) -> bytes:
    """Server reply body for BODY[HEADER.FIELDS (FROM SUBJECT DATE)]."""
    msg = email.message_from_bytes(raw, policy=email.policy.compat32)
    present = [(name, msg[name]) for name in _HEADER_FIELDS if msg[name] is not None]
    return b"".join(f"{name}: {value}\r\n".encode() for name, value in present) + b"\r\n"


def make_mailbox(count: int, *, first_uid: int = 1000) -> list[tuple[int, bytes]]:
    """``count`` messages as ``(uid, raw)``; index 0 is sequence number 1, the oldest."""
    return [
        (first_uid + seq, build_message(subject=f"Message {seq}", text=f"Body {seq}"))
        for seq in range(1, count + 1)
    ]


class FakeMailbox:
    def __init__(self, messages: list[tuple[int, bytes]]):
        self.messages = messages
        self.seq_by_uid = {uid: seq for seq, (uid, _) in enumerate(messages, start=1)}

    def fetch(self, message_set: str, message_parts: str):
        first, _, last = message_set.partition(":")
        reply: list = []
        for seq in range(int(first), int(last or first) + 1):
            uid, raw = self.messages[seq - 1]
            fields = header_fields(raw)
            reply.append(
                (
                    b'%d (UID %d FLAGS (\\Seen) INTERNALDATE "01-Jun-2025 12:00:00 +0000" '
                    b"BODY[HEADER.FIELDS (FROM SUBJECT DATE)] {%d}" % (seq, uid, len(fields)),
                    fields,
                )
            )
            reply.append(b")")
        return "OK", reply

    def uid(self, command: str, *args):
        if command.upper() != "FETCH":
            return "BAD", [b"Unsupported UID command"]
        uid = int(args[0])
        seq = self.seq_by_uid.get(uid)
        if seq is None:
            # imaplib's reply when no message matched
            return "OK", [None]
        raw = self.messages[seq - 1][1]
        return "OK", [(b"%d (UID %d BODY[] {%d}" % (seq, uid, len(raw)), raw), b")"]


def make_mock_imap(
    messages: list[tuple[int, bytes]] | None = None,
    *,
    auth_error: Exception | None = None,
    select_status: str = "OK",
) -> MagicMock:
    """A connection double serving *messages*, already past the greeting."""
    mailbox = FakeMailbox(messages or [])
    conn = MagicMock()
    conn.state = "NONAUTH" if auth_error else "SELECTED"
    conn.authenticate.side_effect = auth_error
    conn.authenticate.return_value = ("OK", [b"Authenticated (Success)"])
    if select_status == "OK":
        conn.select.return_value = ("OK", [str(len(mailbox.messages)).encode()])
    else:
        conn.select.return_value = (select_status, [b"[NONEXISTENT] Unknown Mailbox"])
    conn.close.return_value = ("OK", [b"Returned to authenticated state. (Success)"])
    conn.logout.return_value = ("BYE", [b"LOGOUT Requested"])
    conn.fetch.side_effect = mailbox.fetch
    conn.uid.side_effect = mailbox.uid
    return conn


def sequence_numbers(summaries) -> list[int]:
    return [s.sequence_number for s in summaries]
