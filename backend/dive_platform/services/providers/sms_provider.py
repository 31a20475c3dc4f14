"""SMS delivery through the Twilio REST API."""

import logging
import uuid
from typing import Any, Dict, Optional

import requests

from dive_platform.core.config import get_sms_settings
from dive_platform.domain.entities import DeliveryResult
from dive_platform.domain.interfaces import INotificationProvider

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
SMS_MAX_LENGTH = 1600


class SmsProvider(INotificationProvider):
    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_sms_settings()
        self.session = session or requests.Session()

    def send(self, recipient: Any, title: str, body: str, data=None) -> DeliveryResult:
        if not recipient:
            return DeliveryResult(success=False, error="No phone number")

        text = f"{title}\n{body}" if title else body
        text = text[:SMS_MAX_LENGTH]

        if self.settings.get("mock_mode"):
            message_id = f"mock-sms-{uuid.uuid4().hex[:12]}"
            logger.info(
                "Mock SMS sent",
                extra={"context": {"to": recipient, "length": len(text), "message_id": message_id}},
            )
            return DeliveryResult(success=True, message_id=message_id)

        sid = self.settings["account_sid"]
        try:
            response = self.session.post(
                TWILIO_MESSAGES_URL.format(sid=sid),
                data={"To": recipient, "From": self.settings["from_number"], "Body": text},
                auth=(sid, self.settings["auth_token"]),
                timeout=15,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("SMS delivery failed", extra={"context": {"to": recipient, "error": str(e)}})
            return DeliveryResult(success=False, error=str(e)[:500])

        return DeliveryResult(success=True, message_id=payload.get("sid"))
