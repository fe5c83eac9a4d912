"""Outbound mail: SMTP transport and a retrying dispatcher."""
from __future__ import annotations

import logging
import smtplib
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Callable, Optional, Protocol

from .config import Settings
from .deadlines import Deadline

logger = logging.getLogger(__name__)


class MailError(RuntimeError):
    """Raised when a message cannot be delivered."""


class TransientMailError(MailError):
    """Delivery failed in a way that may succeed on a later attempt."""


@dataclass(frozen=True)
class OutgoingMail:
    to: str
    subject: str
    body: str
    subtype: str = "html"
    from_address: Optional[str] = None


@dataclass(frozen=True)
class MailReceipt:
    message_id: str
    recipient: str
    attempts: int
    accepted_at: datetime

    def as_dict(self) -> dict:
        return {
            "messageId": self.message_id,
            "recipient": self.recipient,
            "attempts": self.attempts,
            "acceptedAt": self.accepted_at.isoformat(),
        }


class MailTransport(Protocol):
    def deliver(self, mail: OutgoingMail, *, timeout: Optional[float] = None) -> str:
        """Hand ``mail`` to the relay and return its message id."""


class SmtpTransport:
    """Deliver mail through an SMTP relay, one connection per message."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(self, mail: OutgoingMail, message_id: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = mail.subject
        msg["From"] = mail.from_address or self.username
        msg["To"] = mail.to
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = message_id
        msg.attach(MIMEText(mail.body, mail.subtype, "utf-8"))
        return msg

    def deliver(self, mail: OutgoingMail, *, timeout: Optional[float] = None) -> str:
        message_id = make_msgid(domain=self.host)
        msg = self._build_message(mail, message_id)
        effective_timeout = self.timeout if timeout is None else min(self.timeout, timeout)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=effective_timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except smtplib.SMTPRecipientsRefused as exc:
            raise MailError("recipient refused") from exc
        except smtplib.SMTPAuthenticationError as exc:
            raise MailError("mail transport authentication failed") from exc
        except (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError) as exc:
            raise TransientMailError("mail transport unavailable") from exc
        except smtplib.SMTPResponseException as exc:
            if 400 <= exc.smtp_code < 500:
                raise TransientMailError("mail transport temporarily rejected the message") from exc
            raise MailError("mail transport rejected the message") from exc
        except smtplib.SMTPException as exc:
            raise MailError("mail transport error") from exc
        except OSError as exc:
            raise TransientMailError("mail transport unavailable") from exc
        return message_id


class MailDispatcher:
    """Send mail through a transport, retrying transient failures."""

    def __init__(
        self,
        transport: MailTransport,
        *,
        from_address: Optional[str] = None,
        max_attempts: int = 3,
        backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.from_address = from_address
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "MailDispatcher":
        transport = SmtpTransport(
            settings.smtp_host,
            settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
        )
        return cls(
            transport,
            from_address=settings.mail_from or settings.smtp_username or None,
            max_attempts=settings.mail_max_attempts,
            backoff=settings.mail_retry_backoff,
        )

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        *,
        html: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> MailReceipt:
        """Deliver one message, retrying transient failures.

        With a ``deadline`` each attempt's socket timeout is capped by the
        remaining budget, and no retry is scheduled once the backoff would
        run past it.
        """

        mail = OutgoingMail(
            to=to,
            subject=subject,
            body=body,
            subtype="html" if html else "plain",
            from_address=self.from_address,
        )
        attempt = 0
        while True:
            attempt += 1
            timeout = None if deadline is None else deadline.remaining()
            try:
                message_id = self.transport.deliver(mail, timeout=timeout)
            except TransientMailError as exc:
                if attempt >= self.max_attempts:
                    logger.error("Giving up on mail to %s after %d attempts: %s", to, attempt, exc)
                    raise
                delay = self.backoff * attempt
                remaining = None if deadline is None else deadline.remaining()
                if remaining is not None and remaining <= delay:
                    logger.error("Giving up on mail to %s after %d attempts: request deadline reached", to, attempt)
                    raise
                logger.warning("Mail attempt %d to %s failed: %s; retrying", attempt, to, exc)
                self._sleep(delay)
                continue
            logger.info("Mail %s accepted for %s after %d attempt(s)", message_id, to, attempt)
            return MailReceipt(
                message_id=message_id,
                recipient=to,
                attempts=attempt,
                accepted_at=datetime.now(timezone.utc),
            )


__all__ = [
    "MailDispatcher",
    "MailError",
    "MailReceipt",
    "MailTransport",
    "OutgoingMail",
    "SmtpTransport",
    "TransientMailError",
]
