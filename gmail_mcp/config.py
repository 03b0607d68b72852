"""Server configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars
(or a local ``.env`` file).  The root :class:`ServerConfig` is built once
at startup and handed to :class:`~gmail_mcp.fetcher.MailFetcher` and
:class:`~gmail_mcp.sender.MailSender` explicitly.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class AccountConfig(BaseSettings):
    """Mailbox identity shared by the IMAP and SMTP sessions."""

    model_config = {"env_prefix": "GMAIL_", "env_file": ".env", "extra": "ignore"}

    user: str = Field(description="Account login, also used as the From address")
    app_password: SecretStr = Field(description="App password for IMAP and SMTP login")


class ImapConfig(BaseSettings):
    """IMAP server connection settings."""

    model_config = {"env_prefix": "IMAP_", "env_file": ".env", "extra": "ignore"}

    host: str = Field(default="imap.gmail.com", description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP server port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    verify_tls: bool = Field(
        default=True,
        description="Verify the server certificate and hostname",
    )
    timeout_seconds: float = Field(default=30.0, description="Socket timeout")
    fetch_batch_size: int = Field(
        default=25,
        gt=0,
        description="Messages requested per IMAP FETCH command",
    )


class SmtpConfig(BaseSettings):
    """SMTP submission settings."""

    model_config = {"env_prefix": "SMTP_", "env_file": ".env", "extra": "ignore"}

    host: str = Field(default="smtp.gmail.com", description="SMTP server hostname")
    port: int = Field(default=465, description="SMTP server port")
    use_ssl: bool = Field(default=True, description="Connect with implicit TLS")
    start_tls: bool = Field(default=False, description="Upgrade with STARTTLS after connect")
    timeout_seconds: float = Field(default=30.0, description="Send timeout")


class LoggingConfig(BaseSettings):
    """structlog output settings."""

    model_config = {"env_prefix": "LOG_", "env_file": ".env", "extra": "ignore"}

    level: str = Field(default="INFO", description="Root log level name")
    format: Literal["json", "console"] = Field(
        default="json",
        description="JSON lines for production, console renderer for local runs",
    )


class ServerConfig(BaseSettings):
    """Root configuration for the tool server.

    Nested configs are populated from their own env-var prefixes.
    """

    model_config = {
        "env_prefix": "SERVER_",
        "env_file": ".env",
        "extra": "ignore",
        "populate_by_name": True,
    }

    name: str = Field(default="gmail-mcp", description="Server name advertised to clients")
    transport: Literal["stdio", "sse", "streamable-http"] = Field(
        default="stdio",
        description="MCP transport",
    )
    port: int = Field(
        default=3000,
        validation_alias="PORT",
        description="Listen port for the HTTP transports (unused with stdio)",
    )
    tool_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Wall-clock limit for a single tool call",
    )

    account: AccountConfig = Field(default_factory=AccountConfig)
    imap: ImapConfig = Field(default_factory=ImapConfig)
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
