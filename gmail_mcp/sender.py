"""Best-effort outbound mail over SMTP."""

from __future__ import annotations

from email.message import EmailMessage
from email.utils import formatdate, make_msgid

import aiosmtplib
import structlog

from .config import ServerConfig

logger = structlog.get_logger()


class MailSender:
    """Send single plain-text messages from the configured account.

    :meth:`send` never raises for delivery problems: any failure is logged
    and reported as ``False`` so callers get best-effort semantics.
    """

    def __init__(self, config: ServerConfig) -> None:
        self._smtp = config.smtp
        self._account = config.account

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._account.user
        msg["To"] = to
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain=self._account.user.rpartition("@")[2] or None)
        msg.set_content(body)
        return msg

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not to or not to.strip():
            logger.warning("email_send_skipped", reason="blank_recipient")
            return False

        try:
            message = self.build_message(to.strip(), subject, body)
            errors, response = await aiosmtplib.send(
                message,
                hostname=self._smtp.host,
                port=self._smtp.port,
                username=self._account.user,
                password=self._account.app_password.get_secret_value(),
                use_tls=self._smtp.use_ssl,
                start_tls=False if self._smtp.use_ssl else self._smtp.start_tls,
                timeout=self._smtp.timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError, ValueError) as exc:
            logger.error(
                "email_send_failed",
                to=to,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

        if errors:
            logger.warning("email_recipients_refused", to=to, refused=sorted(errors))
            return False

        logger.info("email_sent", to=to, subject=subject, response=response)
        return True
