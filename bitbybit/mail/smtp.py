from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from bitbybit.config import settings
from bitbybit.mail.base import Mailer, MailError, OutgoingMail

logger = logging.getLogger(__name__)

_SMTP_TIMEOUT = 30


class SMTPMailer(Mailer):
    def __init__(self) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password
        self._use_tls = settings.smtp_use_tls
        self._sender = settings.mail_from

    def _build(self, mail: OutgoingMail) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = mail.to
        msg["Subject"] = mail.subject
        msg.set_content(mail.body)
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=_SMTP_TIMEOUT) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(msg)

    async def send(self, mail: OutgoingMail) -> None:
        msg = self._build(mail)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(str(e)) from e
        logger.info("Sent %r to %s", mail.subject, mail.to)
