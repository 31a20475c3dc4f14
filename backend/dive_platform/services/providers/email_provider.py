"""SMTP email delivery."""

import logging
import smtplib
import uuid
from email.message import EmailMessage
from typing import Any, Dict, Optional

from dive_platform.core.config import get_email_settings
from dive_platform.domain.entities import DeliveryResult
from dive_platform.domain.interfaces import INotificationProvider

logger = logging.getLogger(__name__)


class EmailProvider(INotificationProvider):
    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.settings = settings or get_email_settings()

    @property
    def mock_mode(self) -> bool:
        return bool(self.settings.get("mock_mode"))

    def send(self, recipient: Any, title: str, body: str, data=None) -> DeliveryResult:
        if not recipient:
            return DeliveryResult(success=False, error="No email address")

        if self.mock_mode:
            message_id = f"mock-email-{uuid.uuid4().hex[:12]}"
            logger.info(
                "Mock email sent",
                extra={"context": {"to": recipient, "subject": title, "message_id": message_id}},
            )
            return DeliveryResult(success=True, message_id=message_id)

        message = EmailMessage()
        message["From"] = self.settings["from_address"]
        message["To"] = recipient
        message["Subject"] = title
        message.set_content(body)

        try:
            with smtplib.SMTP(self.settings["host"], self.settings["port"], timeout=15) as smtp:
                if self.settings.get("use_tls"):
                    smtp.starttls()
                if self.settings.get("user"):
                    smtp.login(self.settings["user"], self.settings["password"])
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Email delivery failed",
                extra={"context": {"to": recipient, "error": str(e)}},
            )
            return DeliveryResult(success=False, error=str(e)[:500])

        message_id = message.get("Message-ID") or f"email-{uuid.uuid4().hex[:12]}"
        logger.info("Email sent", extra={"context": {"to": recipient}})
        return DeliveryResult(success=True, message_id=message_id)
