"""MIME parser: raw RFC 822 bytes → rendered body + attachments.

Attachment ids must come out identical every time the same source is
parsed, because a download re-parses the message and matches on ``id``
alone.  Body-fetch and download therefore share :func:`iter_leaf_parts`
and :meth:`MessageParser.parse`; nothing else assigns ids.
"""

from __future__ import annotations

import email
import email.errors
import email.message
import email.policy
import html
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from .errors import ParseError
from .models import AttachmentDescriptor, MessageBody

NO_CONTENT = "(No content)"

# Defects after which the part tree no longer reflects the sender's structure
_STRUCTURAL_DEFECTS = (
    email.errors.NoBoundaryInMultipartDefect,
    email.errors.StartBoundaryNotFoundDefect,
    email.errors.MultipartInvariantViolationDefect,
)

_URL = re.compile(r"\b((?:https?|ftp)://[^\s<>\"']+)", re.IGNORECASE)
_PARAGRAPH_BREAK = re.compile(r"\r?\n[ \t]*\r?\n")
_LINE_BREAK = re.compile(r"\r?\n")


def decode_header_bytes(raw: bytes) -> str:
    """Decode raw 8-bit header bytes as UTF-8, falling back to Latin-1."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def text_to_html(text: str) -> str:
    """Render plain text as escaped HTML paragraphs with linked URLs."""
    paragraphs: list[str] = []
    for block in _PARAGRAPH_BREAK.split(text.strip()):
        if not block.strip():
            continue
        escaped = html.escape(block, quote=False)
        linked = _URL.sub(r'<a href="\1">\1</a>', escaped)
        paragraphs.append("<p>" + _LINE_BREAK.sub("<br/>", linked) + "</p>")
    return "".join(paragraphs)


def iter_leaf_parts(part: email.message.Message) -> Iterator[email.message.Message]:
    """Depth-first, pre-order walk over the leaves of the MIME tree.

    Attached messages (``message/*``) are leaves: they are exposed as one
    attachment rather than descended into.
    """
    if part.is_multipart() and part.get_content_maintype() == "multipart":
        for child in part.get_payload():
            yield from iter_leaf_parts(child)
    else:
        yield part


@dataclass(frozen=True)
class ParsedAttachment:
    """An attachment-like leaf part and its decoded bytes.

    ``inline`` marks resources referenced from the HTML body by Content-ID;
    they keep their place in the id numbering but are not listed with the
    message body.
    """

    id: str
    filename: str
    content_type: str
    payload: bytes = field(repr=False)
    inline: bool = False

    @property
    def size(self) -> int:
        return len(self.payload)

    def descriptor(self) -> AttachmentDescriptor:
        return AttachmentDescriptor(
            id=self.id,
            filename=self.filename,
            content_type=self.content_type,
            size=self.size,
        )


@dataclass
class ParsedMessage:
    """Body candidates and every attachment-like part, in traversal order."""

    body_html: str | None = None
    body_text: str | None = None
    attachments: list[ParsedAttachment] = field(default_factory=list)

    @property
    def rendered_content(self) -> str:
        if self.body_html:
            return self.body_html
        if self.body_text:
            return text_to_html(self.body_text) or self.body_text
        return NO_CONTENT

    def body(self) -> MessageBody:
        return MessageBody(
            rendered_content=self.rendered_content,
            attachments=[a.descriptor() for a in self.attachments if not a.inline],
        )

    def find_attachment(self, attachment_id: str) -> ParsedAttachment | None:
        for attachment in self.attachments:
            if attachment.id == attachment_id:
                return attachment
        return None


class MessageParser:
    """Stateless parser: raw RFC 822 bytes → :class:`ParsedMessage`."""

    def parse(self, raw_bytes: bytes) -> ParsedMessage:
        if not raw_bytes or not raw_bytes.strip():
            raise ParseError("Message source is empty")

        try:
            msg = email.message_from_bytes(raw_bytes, policy=email.policy.default)
        except (email.errors.MessageError, ValueError, TypeError, LookupError) as exc:
            raise ParseError(f"Failed to parse email content: {exc}") from exc

        self._check_structure(msg)

        parsed = ParsedMessage()
        index = 0
        for part in iter_leaf_parts(msg):
            if self._is_body_candidate(part):
                text = self._decode_text(part)
                if part.get_content_subtype() == "html":
                    if parsed.body_html is None:
                        parsed.body_html = text
                elif parsed.body_text is None:
                    parsed.body_text = text
                continue

            parsed.attachments.append(self._to_attachment(part, index))
            index += 1

        return parsed

    def _check_structure(self, part: email.message.Message) -> None:
        """Reject trees whose multipart containers the parser could not split."""
        for defect in part.defects:
            if isinstance(defect, _STRUCTURAL_DEFECTS):
                raise ParseError(f"Malformed MIME structure: {type(defect).__name__}")
        if part.is_multipart() and part.get_content_maintype() == "multipart":
            for child in part.get_payload():
                self._check_structure(child)

    @staticmethod
    def _is_body_candidate(part: email.message.Message) -> bool:
        """Unnamed, non-attachment text/plain or text/html parts form the body."""
        if part.get_content_type() not in ("text/plain", "text/html"):
            return False
        if part.get_content_disposition() == "attachment":
            return False
        return part.get_filename() is None

    @staticmethod
    def _content_id(part: email.message.Message) -> str | None:
        value = part.get("Content-ID")
        if value is None:
            return None
        cid = str(value).strip().strip("<>").strip()
        return cid or None

    def _to_attachment(self, part: email.message.Message, index: int) -> ParsedAttachment:
        cid = self._content_id(part)
        disposition = part.get_content_disposition()
        return ParsedAttachment(
            id=cid or f"attachment-{index}",
            filename=self._filename(part) or f"attachment_{index + 1}",
            content_type=part.get_content_type(),
            payload=self._payload_bytes(part),
            inline=cid is not None and disposition != "attachment",
        )

    @staticmethod
    def _filename(part: email.message.Message) -> str | None:
        filename = part.get_filename()
        if not filename or "\ufffd" not in filename:
            return filename
        # undecodable 8-bit parameter; reparse the raw header as UTF-8 or Latin-1
        wanted = {"content-disposition": "filename", "content-type": "name"}
        for name, value in part.raw_items():
            param = wanted.get(name.lower())
            if param is None or not isinstance(value, str):
                continue
            text = decode_header_bytes(value.encode("utf-8", "surrogateescape"))
            recovered = part.policy.header_fetch_parse(name, text).params.get(param)
            if recovered:
                return recovered
        return filename

    @staticmethod
    def _payload_bytes(part: email.message.Message) -> bytes:
        if part.get_content_maintype() == "message":
            inner = part.get_payload()
            if isinstance(inner, list) and inner:
                # delivery-status parts carry one header block per item
                policy = part.policy.clone(linesep="\r\n")
                return b"".join(item.as_bytes(policy=policy) for item in inner)
        payload = part.get_payload(decode=True)
        if isinstance(payload, bytes):
            return payload
        return b""

    @staticmethod
    def _decode_text(part: email.message.Message) -> str:
        try:
            content = part.get_content()
        except (LookupError, UnicodeDecodeError, KeyError):
            # unknown or lying charset declaration
            raw = part.get_payload(decode=True) or b""
            return raw.decode("utf-8", errors="replace")
        if isinstance(content, bytes):
            return content.decode("utf-8", errors="replace")
        return content
