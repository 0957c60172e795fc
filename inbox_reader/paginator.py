"""Newest-first inbox pages over IMAP's ascending sequence numbers.

IMAP numbers messages ``1..total`` by arrival, so page 1 (the most recent
messages) is the *top* of the sequence range.  :func:`page_bounds` is the
pure mapping; :func:`list_page` issues the single FETCH for that range.
"""

from __future__ import annotations

import email.errors
import email.parser
import email.policy
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from .models import InboxPage, MessageSummary
from .parser import decode_header_bytes

if TYPE_CHECKING:
    from .session import MailboxSession

logger = structlog.get_logger()

HEADER_FETCH = "(UID FLAGS INTERNALDATE BODY.PEEK[HEADER.FIELDS (FROM SUBJECT DATE)])"

_RESPONSE_START = re.compile(rb"^(\d+) \(")
_UID = re.compile(rb"\bUID (\d+)")
_FLAGS = re.compile(rb"\bFLAGS \(([^)]*)\)")
_INTERNALDATE = re.compile(rb'\bINTERNALDATE "([^"]+)"')


def page_bounds(total: int, page: int, page_size: int) -> tuple[int, int] | None:
    """Return the inclusive ``(low, high)`` sequence range for *page*.

    ``None`` means there is nothing to fetch: the mailbox is empty or the
    page lies past the oldest message.
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")

    high = total - (page - 1) * page_size
    if high < 1:
        return None
    low = max(1, total - page * page_size + 1)
    return low, high


@dataclass
class _FetchRecord:
    sequence_number: int
    attributes: bytes = b""
    header: bytes = b""


def _sequence_of(line: bytes) -> int | None:
    match = _RESPONSE_START.match(line)
    return int(match.group(1)) if match else None


def _collect_records(data: list[Any]) -> dict[int, _FetchRecord]:
    """Join imaplib FETCH response fragments by sequence number.

    imaplib yields ``(prefix, literal)`` tuples for responses carrying a
    header literal, followed by a bytes fragment with whatever attributes
    the server sent after the literal (at minimum the closing paren).
    Attribute-only responses arrive as standalone bytes lines.
    """
    records: dict[int, _FetchRecord] = {}
    current: _FetchRecord | None = None

    for item in data:
        if isinstance(item, tuple):
            seq = _sequence_of(item[0])
            if seq is None:
                current = None
                continue
            current = records.setdefault(seq, _FetchRecord(seq))
            current.attributes += item[0]
            if isinstance(item[1], bytes):
                current.header += item[1]
        elif isinstance(item, bytes):
            seq = _sequence_of(item)
            if seq is not None:
                current = records.setdefault(seq, _FetchRecord(seq))
                current.attributes += b" " + item
            elif current is not None:
                current.attributes += b" " + item

    return records


def _parse_internaldate(attributes: bytes) -> datetime | None:
    match = _INTERNALDATE.search(attributes)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1).decode("ascii").strip(), "%d-%b-%Y %H:%M:%S %z")
    except ValueError:
        return None


def _build_summary(record: _FetchRecord) -> MessageSummary | None:
    uid_match = _UID.search(record.attributes)
    if uid_match is None:
        logger.warning("message_skipped_missing_uid", seqno=record.sequence_number)
        return None

    # decoded per line: one block may mix UTF-8 and Latin-1 headers
    text = "".join(decode_header_bytes(line) for line in record.header.splitlines(keepends=True))
    headers = email.parser.HeaderParser(policy=email.policy.default).parsestr(text)
    subject = headers.get("Subject")
    sender = headers.get("From")
    if subject is None or sender is None:
        logger.warning("message_skipped_missing_headers", seqno=record.sequence_number)
        return None

    flags: frozenset[str] = frozenset()
    flags_match = _FLAGS.search(record.attributes)
    if flags_match:
        flags = frozenset(flags_match.group(1).decode("ascii", errors="replace").split())

    date = _parse_internaldate(record.attributes)
    if date is None:
        date_header = headers.get("Date")
        date = getattr(date_header, "datetime", None)

    return MessageSummary(
        uid=int(uid_match.group(1)),
        sequence_number=record.sequence_number,
        subject=str(subject) or "No Subject",
        from_=str(sender) or "Unknown Sender",
        date=date,
        flags=flags,
    )


def summarize(data: list[Any], low: int, high: int) -> list[MessageSummary]:
    """Turn a raw FETCH response into summaries, newest first.

    A message whose headers cannot be read is dropped with a warning; it
    never fails the page.
    """
    summaries: list[MessageSummary] = []
    for seq, record in _collect_records(data).items():
        if not low <= seq <= high:
            continue
        try:
            summary = _build_summary(record)
        except (email.errors.MessageError, ValueError, TypeError):
            logger.warning("message_skipped_unparseable_headers", seqno=seq, exc_info=True)
            continue
        if summary is not None:
            summaries.append(summary)

    summaries.sort(key=lambda s: s.sequence_number, reverse=True)
    return summaries


async def list_page(session: MailboxSession, page: int, page_size: int) -> InboxPage:
    """Fetch one page of message summaries from an open session."""
    total = session.state.total_message_count
    if total == 0:
        logger.info("inbox_empty")
        return InboxPage(summaries=[], total=0)

    bounds = page_bounds(total, page, page_size)
    if bounds is None:
        logger.info("page_out_of_range", page=page, page_size=page_size, total=total)
        return InboxPage(summaries=[], total=total)

    low, high = bounds
    logger.debug("imap_fetch_headers", range=f"{low}:{high}", total=total)
    data = await session.fetch(f"{low}:{high}", HEADER_FETCH)
    summaries = summarize(data, low, high)

    expected = high - low + 1
    if len(summaries) < expected:
        logger.warning("page_incomplete", expected=expected, returned=len(summaries))
    return InboxPage(summaries=summaries, total=total)
