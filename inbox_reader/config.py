"""Service configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImapConfig(BaseSettings):
    """IMAP server connection settings.

    Credentials are deliberately absent: the identity and access token are
    supplied per call by the authentication layer.
    """

    model_config = SettingsConfigDict(env_prefix="IMAP_")

    host: str = Field(default="imap.gmail.com", description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP server port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    mailbox: str = Field(default="INBOX", description="Mailbox selected (read-only)")
    connect_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Upper bound for connect, authenticate and select",
    )
    command_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for a single FETCH command",
    )
    default_page_size: int = Field(default=25, ge=1, description="Page size when none is given")
    max_page_size: int = Field(default=100, ge=1, description="Largest accepted page size")


class Settings(BaseSettings):
    """Top-level settings for the HTTP adapter.

    All env vars are prefixed with ``INBOX_READER_``; the nested IMAP
    settings keep their own ``IMAP_`` prefix.
    """

    model_config = SettingsConfigDict(env_prefix="INBOX_READER_")

    imap: ImapConfig = Field(default_factory=ImapConfig)

    # --- Server -------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Use JSON log output (True for prod, False for dev)",
    )
