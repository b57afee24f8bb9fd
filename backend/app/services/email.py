"""Email capability: send a formatted message to an address, report success or failure.

``SendGridEmailSender`` is the production implementation. Without an API key the
application falls back to ``UnconfiguredEmailSender``, which refuses every message
so invoices stay in their current status instead of pretending to be delivered.
"""

import base64
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import List, Optional

import sendgrid
from sendgrid.helpers.mail import Attachment, Disposition, FileContent, FileName, FileType, Mail

from backend.app.core.errors import ExternalCapabilityFailure
from backend.app.core.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


@dataclass
class EmailMessage:
    to: str
    subject: str
    body_text: str
    body_html: str
    attachments: List[EmailAttachment] = field(default_factory=list)


class EmailSender(ABC):
    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        body_text: str,
        body_html: str,
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> bool:
        """Return True when the provider accepted the message."""


class SendGridEmailSender(EmailSender):
    def __init__(self, api_key: str, from_email: str):
        self.sg = sendgrid.SendGridAPIClient(api_key=api_key)
        self.from_email = from_email

    def send(self, to, subject, body_text, body_html, attachments=None) -> bool:
        message = Mail(
            from_email=self.from_email,
            to_emails=to,
            subject=subject,
            plain_text_content=body_text,
            html_content=body_html,
        )
        for attachment in attachments or []:
            message.attachment = Attachment(
                FileContent(base64.b64encode(attachment.content).decode()),
                FileName(attachment.filename),
                FileType(attachment.mime_type),
                Disposition("attachment"),
            )
        response = self.sg.send(message)
        accepted = 200 <= response.status_code < 300
        if accepted:
            logger.info("Email '%s' sent to %s", subject, to)
        else:
            logger.warning("SendGrid rejected email to %s with status %s", to, response.status_code)
        return accepted


class UnconfiguredEmailSender(EmailSender):
    def send(self, to, subject, body_text, body_html, attachments=None) -> bool:
        logger.error("Cannot send email to %s: SENDGRID_API_KEY is not set", to)
        return False


def get_email_sender() -> EmailSender:
    settings = get_settings()
    if settings.sendgrid_api_key:
        return SendGridEmailSender(settings.sendgrid_api_key, settings.from_email)
    return UnconfiguredEmailSender()


def deliver(sender: EmailSender, message: EmailMessage, timeout: float) -> None:
    """Send ``message`` on a worker thread, waiting at most ``timeout`` seconds.

    Raises ExternalCapabilityFailure on rejection, provider error or timeout. A send
    that hangs is abandoned, never joined.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="email-send")
    future = executor.submit(
        sender.send, message.to, message.subject, message.body_text, message.body_html, message.attachments
    )
    try:
        delivered = future.result(timeout=timeout)
    except FuturesTimeoutError as exc:
        raise ExternalCapabilityFailure("email", f"timed out after {timeout:g}s sending to {message.to}") from exc
    except Exception as exc:
        raise ExternalCapabilityFailure("email", str(exc) or exc.__class__.__name__) from exc
    finally:
        executor.shutdown(wait=False)
    if not delivered:
        raise ExternalCapabilityFailure("email", f"delivery to {message.to} was not accepted")
