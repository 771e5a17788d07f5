from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import date, time
from email.message import EmailMessage
from typing import Optional

from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Confirmation:
    code: str
    first_name: str
    last_name: str
    email: str
    year_label: str
    booking_date: date
    time_of_day: time
    as_instructor: bool = False


def build_confirmation_message(confirmation: Confirmation, *, sender: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = "Your laboratory booking is confirmed"
    msg["From"] = sender
    msg["To"] = confirmation.email
    scope = "the whole day" if confirmation.as_instructor else "one slot"
    msg.set_content(
        "\n".join(
            [
                f"Hello {confirmation.first_name},",
                "",
                f"Your booking for {scope} is confirmed.",
                "",
                f"Booking code: {confirmation.code}",
                f"Date: {confirmation.booking_date.isoformat()}",
                f"Time: {confirmation.time_of_day.strftime('%H:%M')}",
                f"Name: {confirmation.first_name} {confirmation.last_name}",
                f"Year: {confirmation.year_label}",
                "",
                "Keep this code: you need it to cancel the booking.",
                "Please arrive on time.",
            ]
        )
    )
    return msg


class SmtpMailer:
    """Sends booking confirmations. Delivery is best-effort: errors are logged, never raised."""

    def __init__(
        self,
        *,
        host: Optional[str],
        port: int,
        user: Optional[str],
        password: Optional[str],
        sender: Optional[str],
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user or "no-reply@localhost"
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_sender,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    async def send_confirmation(self, confirmation: Confirmation) -> bool:
        host = self.host
        if not host:
            logger.info("mail disabled, skipping confirmation for booking %s", confirmation.code)
            return False
        msg = build_confirmation_message(confirmation, sender=self.sender)
        try:
            await asyncio.to_thread(self._deliver, host, msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("failed to send confirmation for booking %s", confirmation.code)
            return False
        return True

    def _deliver(self, host: str, msg: EmailMessage) -> None:
        with smtplib.SMTP(host, self.port, timeout=self.timeout) as server:
            server.starttls(context=ssl.create_default_context())
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(msg)
