"""OAuth access token → SASL XOAUTH2 initial client response."""

from __future__ import annotations

from .errors import CredentialError

_SEPARATOR = "\x01"


def build_xoauth2(identity: str, access_token: str) -> bytes:
    """Build the raw XOAUTH2 string for *identity* and *access_token*.

    Format: ``user=<identity>^Aauth=Bearer <token>^A^A``.  The bytes are
    returned un-encoded; ``imaplib.IMAP4.authenticate`` base64-encodes
    them on the wire.
    """
    identity = (identity or "").strip()
    access_token = (access_token or "").strip()

    if not identity:
        raise CredentialError("Mailbox identity is empty")
    if not access_token:
        raise CredentialError("Access token is empty")

    for label, value in (("identity", identity), ("access token", access_token)):
        if _SEPARATOR in value or any(ch in value for ch in "\r\n"):
            raise CredentialError(f"The {label} contains control characters")

    auth_string = f"user={identity}{_SEPARATOR}auth=Bearer {access_token}{_SEPARATOR}{_SEPARATOR}"
    try:
        return auth_string.encode("ascii")
    except UnicodeEncodeError as exc:
        raise CredentialError("The identity or access token is not ASCII") from exc
