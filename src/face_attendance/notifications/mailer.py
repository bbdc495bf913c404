from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, *, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        """Deliver one message. Raises ``smtplib.SMTPException`` or ``OSError`` on failure."""

        raise NotImplementedError


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int = 465
    username: str = ""
    password: str = ""
    use_ssl: bool = True
    sender: str = "noreply@localhost"
    sender_name: str = ""
    timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.host)


def build_message(*, sender: str, to: str, subject: str, html: str, text: Optional[str] = None) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    if text:
        msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


class SmtpMailer(Mailer):
    """smtplib delivery, implicit TLS (SMTP_SSL) or STARTTLS."""

    def __init__(self, config: SmtpConfig):
        self._config = config

    def send(self, *, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        cfg = self._config
        sender = formataddr((cfg.sender_name, cfg.sender)) if cfg.sender_name else cfg.sender
        msg = build_message(sender=sender, to=to, subject=subject, html=html, text=text)

        if cfg.use_ssl:
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
        with server:
            if not cfg.use_ssl:
                server.starttls()
            if cfg.username:
                server.login(cfg.username, cfg.password)
            server.sendmail(cfg.sender, [to], msg.as_string())
        logger.info("mail sent to=%s subject=%r", to, subject)


@dataclass
class LogMailer(Mailer):
    """Used when SMTP is not configured: logs the message and keeps it in ``outbox``."""

    outbox: list = field(default_factory=list)

    def send(self, *, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        logger.warning("SMTP not configured, mail not delivered: to=%s subject=%r", to, subject)
        self.outbox.append({"to": to, "subject": subject, "html": html, "text": text})


def build_mailer(config: SmtpConfig) -> Mailer:
    return SmtpMailer(config) if config.configured else LogMailer()
