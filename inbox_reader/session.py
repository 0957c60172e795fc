"""Short-lived, read-only IMAP sessions authenticated with XOAUTH2.

Every logical operation opens its own session through :func:`open_session`
and the connection is torn down on every exit path.  Blocking ``imaplib``
calls run in a worker thread via ``asyncio.to_thread()`` and each one is
bounded by a timeout.
"""

from __future__ import annotations

import asyncio
import imaplib
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any, TypeVar

import structlog

from .config import ImapConfig
from .errors import AuthExpired, ProtocolError, TransportError
from .models import MailboxState

logger = structlog.get_logger()

T = TypeVar("T")


@contextmanager
def _classify(operation: str, *, auth: bool = False) -> Iterator[None]:
    """Translate imaplib/socket failures into the mailbox error taxonomy."""
    try:
        yield
    except imaplib.IMAP4.abort as exc:
        raise TransportError(f"Connection lost during {operation}: {exc}") from exc
    except imaplib.IMAP4.error as exc:
        if auth:
            raise AuthExpired(
                "Authentication failed. The access token might be invalid or expired."
            ) from exc
        raise ProtocolError(f"IMAP {operation} failed: {exc}") from exc
    except (OSError, EOFError) as exc:
        raise TransportError(f"Failed to reach the mail server during {operation}: {exc}") from exc


def _xoauth2_responder(credential: bytes) -> Callable[[bytes], bytes]:
    """Answer the first AUTHENTICATE challenge with *credential*.

    A server rejecting the token sends a second challenge carrying an
    error payload; it must be acknowledged with an empty response so the
    server can finish with a tagged NO.
    """
    sent = False

    def respond(_challenge: bytes) -> bytes:
        nonlocal sent
        if sent:
            return b""
        sent = True
        return credential

    return respond


def _response_text(data: list[Any] | None) -> str:
    if not data or not isinstance(data[0], bytes):
        return ""
    return data[0].decode("utf-8", errors="replace")


def _shutdown_quietly(conn: imaplib.IMAP4) -> None:
    try:
        conn.shutdown()
    except OSError:
        pass


class MailboxSession:
    """One IMAP connection with the configured mailbox selected read-only.

    imaplib permits a single outstanding command, so commands are
    serialized with an ``asyncio.Lock``.  A session that timed out or was
    cancelled is abandoned: its socket is shut and further commands fail
    with :class:`TransportError`.
    """

    def __init__(self, config: ImapConfig) -> None:
        self._config = config
        self._conn: imaplib.IMAP4 | None = None
        self._state: MailboxState | None = None
        self._lock = asyncio.Lock()
        self._abandoned = False

    @property
    def state(self) -> MailboxState:
        """Mailbox size read by SELECT when this session was opened."""
        if self._state is None:
            raise ProtocolError("Mailbox has not been selected")
        return self._state

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, credential: bytes) -> MailboxState:
        """Connect, authenticate with XOAUTH2 and select the mailbox read-only."""
        self._state = await self._run(
            self._open_sync,
            credential,
            timeout=self._config.connect_timeout_seconds,
            operation="connect",
        )
        logger.info(
            "imap_connected",
            host=self._config.host,
            mailbox=self._config.mailbox,
            total=self._state.total_message_count,
        )
        return self._state

    def _open_sync(self, credential: bytes) -> MailboxState:
        cfg = self._config
        with _classify("connect"):
            if cfg.use_ssl:
                conn = imaplib.IMAP4_SSL(cfg.host, cfg.port, timeout=cfg.connect_timeout_seconds)
            else:
                conn = imaplib.IMAP4(cfg.host, cfg.port, timeout=cfg.connect_timeout_seconds)
        self._conn = conn
        if self._abandoned:
            # timed out or cancelled while the TCP/TLS handshake was running
            self._conn = None
            _shutdown_quietly(conn)
            raise TransportError("Connection abandoned before authentication")

        with _classify("authenticate", auth=True):
            conn.authenticate("XOAUTH2", _xoauth2_responder(credential))

        with _classify("select"):
            typ, data = conn.select(cfg.mailbox, readonly=True)
        if typ != "OK":
            raise ProtocolError(f"Failed to open {cfg.mailbox}: {_response_text(data)}")
        try:
            total = int(data[0])
        except (IndexError, TypeError, ValueError) as exc:
            raise ProtocolError(f"Unexpected SELECT response: {data!r}") from exc
        return MailboxState(total_message_count=total)

    async def close(self) -> None:
        """Close the mailbox and log out; never raises for a dead connection."""
        conn = self._conn
        if conn is None:
            return
        self._conn = None
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._logout_sync, conn),
                self._config.connect_timeout_seconds,
            )
        except TimeoutError:
            logger.warning("imap_logout_timed_out", host=self._config.host)
            _shutdown_quietly(conn)
        except asyncio.CancelledError:
            _shutdown_quietly(conn)
            raise
        logger.info("imap_disconnected", host=self._config.host)

    @staticmethod
    def _logout_sync(conn: imaplib.IMAP4) -> None:
        if conn.state == "SELECTED":
            try:
                conn.close()
            except (imaplib.IMAP4.error, OSError):
                pass
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass

    def _abandon(self) -> None:
        self._abandoned = True
        conn, self._conn = self._conn, None
        if conn is not None:
            _shutdown_quietly(conn)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def fetch(self, message_set: str, message_parts: str) -> list[Any]:
        """Sequence-number FETCH; returns imaplib's raw response data."""
        return await self._run(
            self._fetch_sync,
            False,
            message_set,
            message_parts,
            timeout=self._config.command_timeout_seconds,
            operation="fetch",
        )

    async def uid_fetch(self, uid: int, message_parts: str) -> list[Any]:
        """UID FETCH of a single message; returns imaplib's raw response data."""
        return await self._run(
            self._fetch_sync,
            True,
            str(uid),
            message_parts,
            timeout=self._config.command_timeout_seconds,
            operation="uid fetch",
        )

    def _fetch_sync(self, by_uid: bool, message_set: str, message_parts: str) -> list[Any]:
        conn = self._conn
        if conn is None:
            raise TransportError("Connection is closed")
        with _classify("fetch"):
            if by_uid:
                typ, data = conn.uid("FETCH", message_set, message_parts)
            else:
                typ, data = conn.fetch(message_set, message_parts)
        if typ != "OK":
            raise ProtocolError(f"Failed to fetch {message_set}: {_response_text(data)}")
        return data

    async def _run(
        self,
        func: Callable[..., T],
        *args: Any,
        timeout: float,
        operation: str,
    ) -> T:
        if self._abandoned:
            raise TransportError("Connection is no longer usable")
        async with self._lock:
            try:
                return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout)
            except TimeoutError as exc:
                self._abandon()
                logger.warning("imap_timeout", operation=operation, timeout_seconds=timeout)
                raise TransportError(f"IMAP {operation} timed out after {timeout:g}s") from exc
            except (TransportError, asyncio.CancelledError):
                self._abandon()
                raise


@asynccontextmanager
async def open_session(config: ImapConfig, credential: bytes) -> AsyncIterator[MailboxSession]:
    """Yield an opened session; the connection is closed on every exit path."""
    session = MailboxSession(config)
    try:
        await session.open(credential)
        yield session
    finally:
        await session.close()


async def with_session(
    config: ImapConfig,
    credential: bytes,
    fn: Callable[[MailboxSession], Awaitable[T]],
) -> T:
    """Run *fn* against a freshly opened session and return its result."""
    async with open_session(config, credential) as session:
        return await fn(session)
