"""Error taxonomy for mailbox retrieval.

Callers branch on the class (or on ``requires_reauth`` / ``retryable``) to
tell "re-authenticate" apart from "try again" and "this item doesn't exist".
"""

from __future__ import annotations


class MailboxError(Exception):
    """Base class for every error surfaced by :mod:`inbox_reader`."""

    requires_reauth: bool = False
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CredentialError(MailboxError):
    """The access token could not be encoded into a SASL credential."""


class AuthExpired(MailboxError):
    """The mail store rejected the credential."""

    requires_reauth = True


class TransportError(MailboxError):
    """Network failure or timeout while talking to the mail store."""

    retryable = True


class ProtocolError(MailboxError):
    """The mail store answered with something unexpected."""


class ParseError(MailboxError):
    """The raw message source is not a usable MIME structure."""


class NotFound(MailboxError):
    """The requested attachment does not exist in the message."""
