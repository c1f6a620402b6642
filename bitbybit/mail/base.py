from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from bitbybit.config import settings


class MailError(Exception):
    """Raised by a mailer when a message could not be handed off for delivery."""


@dataclass(frozen=True)
class OutgoingMail:
    to: str
    subject: str
    body: str


class Mailer(ABC):
    @abstractmethod
    async def send(self, mail: OutgoingMail) -> None: ...


def get_mailer() -> Mailer:
    if settings.mail_backend == "smtp":
        from bitbybit.mail.smtp import SMTPMailer

        return SMTPMailer()
    if settings.mail_backend == "log":
        from bitbybit.mail.log import LogMailer

        return LogMailer()
    raise ValueError(f"Unknown mail backend: {settings.mail_backend!r}")
