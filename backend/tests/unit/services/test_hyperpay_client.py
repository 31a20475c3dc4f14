"""HyperPay client tests with the HTTP session mocked out."""

import hashlib
import hmac
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from dive_platform.core.exceptions import ExternalServiceError, ValidationError
from dive_platform.services.hyperpay_client import (
    HyperPayClient,
    is_pending_code,
    is_review_code,
    is_success_code,
    parse_result,
)

SETTINGS = {
    "test_mode": True,
    "base_url": "https://eu-test.oppwa.com",
    "api_version": "v1",
    "access_token": "token-123",
    "entity_ids": {"MADA": "entity-mada", "VISA": "entity-visa"},
    "webhook_secret": "whsec",
    "timeout": 5,
    "currency": "SAR",
}


def http_response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    return response


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(session):
    return HyperPayClient(settings=SETTINGS, session=session)


class TestResultCodes:
    @pytest.mark.parametrize("code", ["000.000.000", "000.100.110", "000.300.000", "000.600.000"])
    def test_success_codes(self, code):
        assert is_success_code(code)

    @pytest.mark.parametrize("code", ["800.100.151", "000.200.000", "", None])
    def test_non_success_codes(self, code):
        assert not is_success_code(code)

    def test_pending_and_review(self):
        assert is_pending_code("000.200.100")
        assert is_review_code("000.400.000")
        assert not is_review_code("000.400.030")

    def test_parse_result(self):
        result = parse_result({"id": "tx-1", "result": {"code": "000.000.000", "description": "ok"}})

        assert result.is_success is True
        assert result.transaction_id == "tx-1"
        assert result.description == "ok"


class TestClient:
    def test_sets_bearer_header(self, client, session):
        assert session.headers["Authorization"] == "Bearer token-123"
        assert client.widget_url == "https://eu-test.oppwa.com/v1/paymentWidgets.js"

    def test_prepare_checkout_form(self, client, session):
        session.request.return_value = http_response(
            payload={"id": "chk-1", "result": {"code": "000.200.100"}}
        )

        checkout = client.prepare_checkout(
            "pay-1", Decimal("1237.5"), "MADA", {"email": "d@example.com", "booking_id": "bk-1"}
        )

        assert checkout["checkout_id"] == "chk-1"
        assert checkout["expires_at"] is not None
        method, url = session.request.call_args.args
        form = session.request.call_args.kwargs["data"]
        assert (method, url) == ("POST", "https://eu-test.oppwa.com/v1/checkouts")
        assert form["entityId"] == "entity-mada"
        assert form["amount"] == "1237.50"
        assert form["paymentType"] == "DB"
        assert form["customParameters[paymentId]"] == "pay-1"
        assert form["customParameters[bookingId]"] == "bk-1"
        assert form["customer.ip"] == "127.0.0.1"

    def test_unsupported_method(self, client):
        with pytest.raises(ValidationError, match="Unsupported payment method"):
            client.prepare_checkout("pay-1", Decimal("10"), "STC_PAY_X", {})

    def test_status_strips_version_prefix(self, client, session):
        session.request.return_value = http_response(
            payload={"id": "tx-1", "result": {"code": "000.000.000"}}
        )

        result = client.get_payment_status("/v1/checkouts/chk-1/payment", "VISA")

        assert result.is_success
        assert session.request.call_args.args[1] == "https://eu-test.oppwa.com/v1/checkouts/chk-1/payment"
        assert session.request.call_args.kwargs["params"] == {"entityId": "entity-visa"}

    def test_refund_request(self, client, session):
        session.request.return_value = http_response(
            payload={"id": "rf-1", "result": {"code": "000.000.000"}}
        )

        result = client.refund("tx-1", Decimal("200"), "MADA")

        assert result.transaction_id == "rf-1"
        assert session.request.call_args.args[1].endswith("/payments/tx-1")
        assert session.request.call_args.kwargs["data"]["paymentType"] == "RF"

    def test_http_error_raises(self, client, session):
        session.request.return_value = http_response(
            400, {"result": {"code": "200.300.404", "description": "invalid or missing parameter"}}
        )

        with pytest.raises(ExternalServiceError, match="invalid or missing parameter"):
            client.get_payment_status("/checkouts/chk-1/payment", "MADA")

    def test_network_error_raises(self, client, session):
        session.request.side_effect = requests.ConnectionError("down")

        with pytest.raises(ExternalServiceError):
            client.refund("tx-1", Decimal("1"), "MADA")


class TestWebhookSignature:
    def test_valid_signature(self, client):
        body = b'{"type":"PAYMENT"}'
        signature = hmac.new(b"whsec", body, hashlib.sha256).hexdigest()

        assert client.verify_webhook_signature(body, signature) is True
        assert client.verify_webhook_signature(body, signature.upper()) is True

    def test_invalid_or_missing_signature(self, client):
        assert client.verify_webhook_signature(b"{}", "deadbeef") is False
        assert client.verify_webhook_signature(b"{}", None) is False
