"""Push delivery through the FCM HTTP API."""

import logging
import uuid
from typing import Any, Dict, List, Optional

import requests

from dive_platform.core.config import get_push_settings
from dive_platform.domain.entities import DeliveryResult
from dive_platform.domain.interfaces import INotificationProvider

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/fcm/send"
# FCM errors meaning the token will never work again
INVALID_TOKEN_ERRORS = ("NotRegistered", "InvalidRegistration")


class PushProvider(INotificationProvider):
    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_push_settings()
        self.session = session or requests.Session()

    def send(
        self, recipient: Any, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> DeliveryResult:
        tokens: List[str] = [t for t in (recipient or []) if t]
        if not tokens:
            return DeliveryResult(success=False, error="No push tokens")

        if self.settings.get("mock_mode"):
            message_id = f"mock-push-{uuid.uuid4().hex[:12]}"
            logger.info(
                "Mock push sent",
                extra={"context": {"tokens": len(tokens), "title": title, "message_id": message_id}},
            )
            return DeliveryResult(success=True, message_id=message_id)

        message = {
            "registration_ids": tokens,
            "notification": {"title": title, "body": body},
            # FCM data values must be strings
            "data": {key: str(value) for key, value in (data or {}).items()},
        }
        try:
            response = self.session.post(
                FCM_SEND_URL,
                json=message,
                headers={"Authorization": f"key={self.settings['server_key']}"},
                timeout=15,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Push delivery failed", extra={"context": {"error": str(e)}})
            return DeliveryResult(success=False, error=str(e)[:500])

        invalid_tokens = [
            token
            for token, outcome in zip(tokens, payload.get("results", []))
            if outcome.get("error") in INVALID_TOKEN_ERRORS
        ]
        if invalid_tokens:
            logger.info(
                "Push tokens rejected by FCM",
                extra={"context": {"count": len(invalid_tokens)}},
            )
        if payload.get("success", 0) > 0:
            return DeliveryResult(
                success=True,
                message_id=str(payload.get("multicast_id", "")),
                invalid_tokens=invalid_tokens,
            )
        return DeliveryResult(
            success=False,
            error="Push rejected for all tokens",
            invalid_tokens=invalid_tokens,
        )
