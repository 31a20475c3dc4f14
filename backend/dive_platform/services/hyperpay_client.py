"""
HyperPay (OPPWA) COPYandPAY client.

Checkout flow: ``prepare_checkout`` creates a hosted checkout, the customer
pays in the widget, then the status is read back with ``get_payment_status``
(redirect) or pushed to us through the webhook.
"""

import hashlib
import hmac
import logging
import re
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from dive_platform.core.config import CHECKOUT_EXPIRATION_MINUTES, get_hyperpay_settings
from dive_platform.core.exceptions import ExternalServiceError, ValidationError
from dive_platform.domain.entities import GatewayResult, money
from dive_platform.domain.interfaces import IPaymentGateway
from dive_platform.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

SERVICE_NAME = "HyperPay"

SUCCESS_CODE_RE = re.compile(r"^(000\.000\.|000\.100\.1|000\.[36])")
PENDING_CODE_RE = re.compile(r"^(000\.200)")
REVIEW_CODE_RE = re.compile(r"^(000\.400\.0[^3]|000\.400\.100)")


def is_success_code(code: str) -> bool:
    return bool(SUCCESS_CODE_RE.match(code or ""))


def is_pending_code(code: str) -> bool:
    return bool(PENDING_CODE_RE.match(code or ""))


def is_review_code(code: str) -> bool:
    return bool(REVIEW_CODE_RE.match(code or ""))


def parse_result(payload: Dict[str, Any]) -> GatewayResult:
    result = payload.get("result") or {}
    code = result.get("code", "")
    return GatewayResult(
        code=code,
        description=result.get("description", ""),
        raw=payload,
        transaction_id=payload.get("id"),
        is_success=is_success_code(code),
        is_pending=is_pending_code(code),
    )


class HyperPayClient(IPaymentGateway):
    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_hyperpay_settings()
        self.base_url = f"{self.settings['base_url']}/{self.settings['api_version']}"
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Authorization": f"Bearer {self.settings['access_token']}"}
        )

    @property
    def widget_url(self) -> str:
        return f"{self.base_url}/paymentWidgets.js"

    def entity_id(self, payment_method: str) -> str:
        entity_id = self.settings["entity_ids"].get(payment_method)
        if not entity_id:
            raise ValidationError(f"Unsupported payment method: {payment_method}")
        return entity_id

    def _request(self, method: str, path: str, operation: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, timeout=self.settings["timeout"], **kwargs
            )
        except requests.RequestException as e:
            logger.error(
                "HyperPay request failed",
                extra={"context": {"operation": operation, "error": str(e)}},
            )
            raise ExternalServiceError(SERVICE_NAME, f"{operation} failed: {e}") from e

        if response.status_code >= 400:
            try:
                description = response.json().get("result", {}).get("description")
            except ValueError:
                description = None
            logger.error(
                "HyperPay returned an error",
                extra={
                    "context": {
                        "operation": operation,
                        "status": response.status_code,
                        "description": description,
                    }
                },
            )
            raise ExternalServiceError(
                SERVICE_NAME, description or f"{operation} failed with HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(SERVICE_NAME, f"{operation} returned invalid JSON") from e

    def prepare_checkout(
        self,
        payment_id: str,
        amount: Decimal,
        payment_method: str,
        customer: Dict[str, Any],
    ) -> Dict[str, Any]:
        form = {
            "entityId": self.entity_id(payment_method),
            "amount": f"{money(amount):.2f}",
            "currency": self.settings["currency"],
            "paymentType": "DB",
            "merchantTransactionId": payment_id,
            "customer.email": customer.get("email", ""),
            "customer.ip": customer.get("ip") or "127.0.0.1",
            "billing.country": customer.get("country", "SA"),
            "customParameters[paymentId]": payment_id,
        }
        if customer.get("booking_id"):
            form["customParameters[bookingId]"] = customer["booking_id"]

        logger.info(
            "Preparing HyperPay checkout",
            extra={"context": {"payment_id": payment_id, "amount": form["amount"], "method": payment_method}},
        )
        payload = self._request("POST", "/checkouts", "prepare_checkout", data=form)
        result = parse_result(payload)
        return {
            "checkout_id": payload.get("id"),
            "expires_at": utcnow() + timedelta(minutes=CHECKOUT_EXPIRATION_MINUTES),
            "result_code": result.code,
        }

    def get_payment_status(self, resource_path: str, payment_method: str) -> GatewayResult:
        path = re.sub(r"^/v1", "", resource_path)
        if not path.startswith("/"):
            path = f"/{path}"
        payload = self._request(
            "GET",
            path,
            "get_payment_status",
            params={"entityId": self.entity_id(payment_method)},
        )
        result = parse_result(payload)
        logger.info(
            "HyperPay payment status received",
            extra={
                "context": {
                    "transaction_id": result.transaction_id,
                    "code": result.code,
                    "success": result.is_success,
                    "pending": result.is_pending,
                }
            },
        )
        return result

    def refund(self, gateway_payment_id: str, amount: Decimal, payment_method: str) -> GatewayResult:
        form = {
            "entityId": self.entity_id(payment_method),
            "amount": f"{money(amount):.2f}",
            "currency": self.settings["currency"],
            "paymentType": "RF",
        }
        payload = self._request("POST", f"/payments/{gateway_payment_id}", "refund", data=form)
        result = parse_result(payload)
        logger.info(
            "HyperPay refund processed",
            extra={"context": {"refund_id": result.transaction_id, "code": result.code}},
        )
        return result

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not signature:
            return False
        expected = hmac.new(
            str(self.settings["webhook_secret"]).encode(), raw_body, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())
