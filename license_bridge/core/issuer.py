"""
License message rendering and email delivery.

The SMTP client is blocking, so sends run in a worker thread and are bounded
by a timeout. Any failure surfaces as ``DeliveryError``; deciding whether that
is fatal belongs to the caller.
"""
import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol, Sequence

import structlog

from license_bridge.config import Settings

from .errors import DeliveryError
from .models import LicenseRecord

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Branding:
    """Seller details printed in the license email."""

    brand_name: str = "Sovereign Spiral Development Framework"
    subject: str = "Your SSDF License Keys - Sovereign Spiral"
    projects_url: str = "https://github.com/CreoDAMO"
    support_email: str = "support@ssdf.work.gd"
    signature: str = "Sovereign Spiral Team"

    @classmethod
    def from_settings(cls, settings: Settings) -> "Branding":
        return cls(
            brand_name=settings.brand_name,
            subject=settings.email_subject,
            projects_url=settings.projects_url,
            support_email=settings.support_email,
            signature=settings.team_signature,
        )


def render_license_message(records: Sequence[LicenseRecord], branding: Branding) -> str:
    """
    Render the plain-text license email.

    Output depends only on the records and branding, so the same input always
    yields the same text.
    """
    blocks = [
        "\n".join(
            [
                f"Project: {record.project}",
                f"License Type: {record.license_type.value}",
                f"License Key: {record.license_key}",
            ]
        )
        for record in records
    ]
    tier = records[0].license_type.value if records else "commercial"

    return "\n".join(
        [
            f"Thank you for your purchase from {branding.brand_name}!",
            "",
            "Your License Information:",
            "",
            "\n\n---\n\n".join(blocks),
            "",
            "These license keys grant you the rights specified in your "
            f"{tier} license agreement.",
            "",
            f"All projects remain available under MIT License at {branding.projects_url}",
            "",
            f"For support, contact {branding.support_email}",
            "",
            "Best regards,",
            branding.signature,
        ]
    )


class EmailTransport(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class SmtpTransport:
    """SMTP email target with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "commercial@ssdf.work.gd",
        timeout: float = 8.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpTransport":
        return cls(
            host=settings.email_host,
            port=settings.email_port,
            username=settings.email_user,
            password=settings.email_pass,
            sender=settings.email_from,
            timeout=settings.email_timeout_seconds,
        )

    async def send(self, to: str, subject: str, body: str) -> None:
        """
        Send a plain-text email.

        Raises:
            DeliveryError: On any SMTP failure or when the deadline passes
        """
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            await asyncio.wait_for(asyncio.to_thread(self._smtp_send, msg), self.timeout)
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"SMTP delivery timed out after {self.timeout}s") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery failed: {e}") from e

    def _smtp_send(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)


class LicenseIssuer:
    """Renders license records and hands them to the email transport."""

    def __init__(self, transport: EmailTransport, branding: Optional[Branding] = None):
        self.transport = transport
        self.branding = branding or Branding()

    async def deliver(self, payer_email: str, records: Sequence[LicenseRecord]) -> None:
        """
        Email the license keys to the payer.

        Raises:
            DeliveryError: If the transport fails
        """
        body = render_license_message(records, self.branding)
        try:
            await self.transport.send(payer_email, self.branding.subject, body)
        except DeliveryError:
            logger.error("license_email_failed", to=payer_email, licenses=len(records))
            raise
        except Exception as e:
            logger.error("license_email_failed", to=payer_email, error=str(e))
            raise DeliveryError(f"License email failed: {e}") from e

        logger.info(
            "license_email_sent",
            to=payer_email,
            projects=[record.project for record in records],
        )
