"""
Email-delivery collaborator.

Messages are rendered from Jinja2 templates under ``templates/email`` (one
``<kind>.html`` and one ``<kind>.txt`` per template kind) and delivered over
SMTP. The recipient address is validated before anything is rendered or sent.
"""

from __future__ import annotations

import smtplib
import uuid
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Mapping, Optional

import structlog
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from stay_ledger import config
from stay_ledger.exceptions import EmailDeliveryError, InvalidRecipientError
from stay_ledger.metrics import emails_sent
from stay_ledger.utils.datetime import utc_now
from stay_ledger.utils.formatting import format_date, format_money

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

# Subject line per template kind (Jinja2 expressions over the payload)
SUBJECTS: dict[str, str] = {
    "confirmation": "Reservation Confirmation #{{ reservation.id }}",
    "status_change": "Reservation Update #{{ reservation.id }} - {{ status_message }}",
    "payment_received": (
        "{{ 'Full' if is_full_payment else 'Partial' }} Payment Received"
        " - Reservation #{{ reservation.id }}"
    ),
    "invoice": "Reservation Receipt #{{ reservation.id }}",
    "monthly_summary": "Monthly Summary {{ '%02d' % summary.month }}/{{ summary.year }}",
}

_email_adapter = TypeAdapter(EmailStr)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


@dataclass(frozen=True)
class DeliveryReceipt:
    to_address: str
    template_kind: str
    subject: str
    message_id: str
    sent_at: datetime


def validate_recipient(address: Optional[str]) -> str:
    """
    Return the normalized address or raise InvalidRecipientError.

    Example:
        >>> validate_recipient("guest@example.com")
        'guest@example.com'
    """
    if not address:
        raise InvalidRecipientError("Recipient email address is missing")
    try:
        return str(_email_adapter.validate_python(address))
    except PydanticValidationError as e:
        raise InvalidRecipientError(f"Invalid recipient email address: {address!r}") from e


class EmailService:
    """
    SMTP email sender with Jinja2 templates.

    Args:
        host: SMTP server; when unset every send fails with EmailDeliveryError
        port: SMTP port
        username: Optional SMTP login
        password: Optional SMTP password
        use_tls: Upgrade the connection with STARTTLS
        from_address: Envelope sender
        from_name: Display name of the sender
        business_name: Passed to every template
    """

    def __init__(
        self,
        host: Optional[str] = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: Optional[str] = config.SMTP_USERNAME,
        password: Optional[str] = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_USE_TLS,
        from_address: str = config.EMAIL_FROM,
        from_name: str = config.EMAIL_FROM_NAME,
        business_name: str = config.BUSINESS_NAME,
        timeout_seconds: float = config.SMTP_TIMEOUT_SECONDS,
        templates_dir: Path = TEMPLATES_DIR,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.from_name = from_name
        self.business_name = business_name
        self.timeout_seconds = timeout_seconds
        self.template_env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.template_env.filters["money"] = format_money
        self.template_env.filters["date"] = format_date

    def render(self, template_kind: str, payload: Mapping[str, Any]) -> tuple[str, str, str]:
        """
        Render subject, plain-text body and HTML body for a template kind.

        Raises:
            EmailDeliveryError: Unknown kind or broken template
        """
        if template_kind not in SUBJECTS:
            raise EmailDeliveryError(f"Unknown email template: {template_kind}")
        context = {"business_name": self.business_name, **payload}
        try:
            subject = self.template_env.from_string(SUBJECTS[template_kind]).render(context)
            text_body = self.template_env.get_template(f"{template_kind}.txt").render(context)
            html_body = self.template_env.get_template(f"{template_kind}.html").render(context)
        except TemplateError as e:
            logger.error("email_template_failed", template=template_kind, error=str(e))
            raise EmailDeliveryError(f"Failed to render email template {template_kind}") from e
        return subject.strip(), text_body, html_body

    def build_message(
        self,
        to_address: str,
        subject: str,
        text_body: str,
        html_body: str,
        attachment: Optional[Attachment] = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to_address
        msg["Message-ID"] = f"<{uuid.uuid4()}@{self.from_address.split('@')[-1]}>"
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")
        if attachment is not None:
            maintype, _, subtype = attachment.mime_type.partition("/")
            msg.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return msg

    def send(
        self,
        to_address: Optional[str],
        template_kind: str,
        payload: Mapping[str, Any],
        attachment: Optional[Attachment] = None,
    ) -> DeliveryReceipt:
        """
        Render and deliver one email.

        Args:
            to_address: Recipient; validated before rendering
            template_kind: confirmation, status_change, payment_received,
                invoice or monthly_summary
            payload: Template context
            attachment: Optional file to attach

        Returns:
            DeliveryReceipt

        Raises:
            InvalidRecipientError: Missing or malformed recipient
            EmailDeliveryError: Not configured, template failure or SMTP error
        """
        recipient = validate_recipient(to_address)
        if not self.host:
            raise EmailDeliveryError("SMTP is not configured")

        subject, text_body, html_body = self.render(template_kind, payload)
        msg = self.build_message(recipient, subject, text_body, html_body, attachment)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "email_delivery_failed",
                template=template_kind,
                to_address=recipient,
                error=str(e),
            )
            raise EmailDeliveryError("Failed to deliver email") from e

        emails_sent.labels(template=template_kind).inc()
        logger.info("email_sent", template=template_kind, to_address=recipient)
        return DeliveryReceipt(
            to_address=recipient,
            template_kind=template_kind,
            subject=subject,
            message_id=msg["Message-ID"],
            sent_at=utc_now(),
        )
