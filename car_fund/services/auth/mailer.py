"""
Sign-in Link Delivery

A sign-in link proves ownership of an e-mail address only if it reaches
that inbox and nobody else. Senders deliver the link out of band; the
caller that asked for it never sees it.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from car_fund.config import MailSettings


logger = structlog.get_logger(__name__)

SIGN_IN_SUBJECT = "Your Car Fund Tracker sign-in link"


class DeliveryError(Exception):
    """The sign-in link could not be delivered."""
    pass


class SignInLinkSender(ABC):
    """Delivers a sign-in link to an e-mail address."""

    @abstractmethod
    async def send(self, email: str, link: str) -> None:
        """
        Deliver `link` to `email`.

        Raises:
            DeliveryError: If the message could not be handed off
        """
        pass


def build_sign_in_message(sender: str, email: str, link: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = SIGN_IN_SUBJECT
    message["From"] = sender
    message["To"] = email
    message.set_content(
        "Open this link to sign in to Car Fund Tracker:\n\n"
        f"{link}\n\n"
        "The link works once and expires soon. If you didn't ask for it, "
        "ignore this email.\n"
    )
    return message


class SmtpLinkSender(SignInLinkSender):
    """
    Sends sign-in links through an SMTP server.

    smtplib is blocking, so delivery runs in a worker thread.
    """

    def __init__(self, settings: MailSettings, timeout: float = 10.0):
        self._settings = settings
        self._timeout = timeout

    @retry(
        retry=retry_if_exception_type((smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError, TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _send_sync(self, message: EmailMessage) -> None:
        settings = self._settings
        with smtplib.SMTP(settings.host, settings.port, timeout=self._timeout) as smtp:
            if settings.use_starttls:
                smtp.starttls()
            if settings.username:
                password = settings.password.get_secret_value() if settings.password else ""
                smtp.login(settings.username, password)
            smtp.send_message(message)

    async def send(self, email: str, link: str) -> None:
        message = build_sign_in_message(self._settings.sender, email, link)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("sign_in_email_failed", email=email, error=str(e))
            raise DeliveryError(f"Could not send the sign-in email: {e}")
        logger.info("sign_in_email_sent", email=email)
