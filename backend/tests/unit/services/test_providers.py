"""Notification providers in mock mode and against a mocked HTTP session."""

import smtplib
from unittest.mock import Mock, patch

import requests

from dive_platform.services.providers.email_provider import EmailProvider
from dive_platform.services.providers.push_provider import FCM_SEND_URL, PushProvider
from dive_platform.services.providers.sms_provider import SmsProvider


def http_response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestEmailProvider:
    def test_mock_mode(self):
        result = EmailProvider({"mock_mode": True}).send("a@example.com", "Hi", "Body")

        assert result.success
        assert result.message_id.startswith("mock-email-")

    def test_missing_address(self):
        assert EmailProvider({"mock_mode": True}).send(None, "Hi", "Body").error == "No email address"

    @patch("dive_platform.services.providers.email_provider.smtplib.SMTP")
    def test_smtp_failure(self, mock_smtp):
        mock_smtp.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("refused")
        provider = EmailProvider(
            {"mock_mode": False, "host": "smtp.test", "port": 587, "from_address": "noreply@test", "use_tls": False}
        )

        result = provider.send("a@example.com", "Hi", "Body")

        assert not result.success
        assert result.error == "refused"


class TestSmsProvider:
    SETTINGS = {"mock_mode": False, "account_sid": "AC1", "auth_token": "tok", "from_number": "+15550000"}

    def test_sends_through_twilio(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = http_response({"sid": "SM123"})

        result = SmsProvider(self.SETTINGS, session).send("+966551234567", "Reminder", "Trip tomorrow")

        assert result.message_id == "SM123"
        form = session.post.call_args.kwargs["data"]
        assert form["Body"] == "Reminder\nTrip tomorrow"
        assert session.post.call_args.kwargs["auth"] == ("AC1", "tok")

    def test_http_error(self):
        session = Mock(spec=requests.Session)
        session.post.side_effect = requests.ConnectionError("unreachable")

        result = SmsProvider(self.SETTINGS, session).send("+966551234567", "", "Body")

        assert not result.success


class TestPushProvider:
    SETTINGS = {"mock_mode": False, "server_key": "key-1"}

    def test_mock_mode(self):
        result = PushProvider({"mock_mode": True}).send(["t1"], "Hi", "Body")

        assert result.message_id.startswith("mock-push-")

    def test_no_tokens(self):
        assert PushProvider({"mock_mode": True}).send([], "Hi", "Body").error == "No push tokens"

    def test_reports_invalid_tokens(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = http_response(
            {"multicast_id": 99, "success": 1, "results": [{"message_id": "m"}, {"error": "NotRegistered"}]}
        )

        result = PushProvider(self.SETTINGS, session).send(["good", "stale"], "Hi", "Body", {"booking_id": 5})

        assert result.success
        assert result.invalid_tokens == ["stale"]
        assert session.post.call_args.args[0] == FCM_SEND_URL
        assert session.post.call_args.kwargs["json"]["data"] == {"booking_id": "5"}

    def test_all_tokens_rejected(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = http_response({"success": 0, "results": [{"error": "InvalidRegistration"}]})

        result = PushProvider(self.SETTINGS, session).send(["bad"], "Hi", "Body")

        assert not result.success
        assert result.invalid_tokens == ["bad"]
