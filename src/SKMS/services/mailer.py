# src/SKMS/services/mailer.py
from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Protocol

from SKMS.app_logger import get_logger
from SKMS.core.config import settings

log = get_logger("mailer")


class Mailer(Protocol):
    async def send(self, recipient: str, subject: str, html: str) -> None: ...


class SMTPMailer:
    """Blocking smtplib delivery pushed onto a worker thread."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        *,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool | None = None,
        sender: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = user if user is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout or settings.SMTP_TIMEOUT

    def _build(self, recipient: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password or "")
            smtp.send_message(msg)

    async def send(self, recipient: str, subject: str, html: str) -> None:
        msg = self._build(recipient, subject, html)
        await asyncio.to_thread(self._send_blocking, msg)
        log.info("mail: sent %r to %s", subject, recipient)
