from __future__ import annotations

import logging

from bitbybit.mail.base import Mailer, OutgoingMail

logger = logging.getLogger(__name__)


class LogMailer(Mailer):
    """Writes messages to the log instead of sending them. For local development."""

    async def send(self, mail: OutgoingMail) -> None:
        logger.info("Mail to %s: %s\n%s", mail.to, mail.subject, mail.body)
