"""
Centralized configuration module for application-wide settings.

Every setting is read from the environment (optionally populated from a
``.env`` file in ``create_app``). Getters are evaluated lazily so tests can
override variables before the relevant component is built; a handful of
values are cached as module globals because they never change at runtime.
"""

import logging
import os
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower().strip() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid integer in environment, using default",
            extra={"context": {"variable": name, "default": default}},
        )
        return default


# ===========================
# Environment
# ===========================


def get_environment() -> str:
    """Return the deployment environment name (development, production, test)."""
    return os.getenv("FLASK_ENV", "development")


def is_production() -> bool:
    return get_environment() == "production"


def is_test_mode() -> bool:
    """Check if we're running in test mode (pytest/CI)."""
    if _env_bool("TESTING", ""):
        return True
    return bool(os.getenv("PYTEST_CURRENT_TEST"))


# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from environment variable.

    Environment Variables:
        TZ: Timezone identifier. Default: 'Asia/Riyadh'
    """
    tz_name = os.getenv("TZ", "Asia/Riyadh")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


APP_TZ = get_app_timezone()


def log_timezone_config():
    """Log the active timezone configuration."""
    logger.info(
        "Timezone configuration initialized",
        extra={"context": {"timezone": str(APP_TZ)}},
    )


# ===========================
# API Configuration
# ===========================


def get_api_prefix() -> str:
    prefix = os.getenv("API_PREFIX", "/api/v1").rstrip("/")
    return prefix if prefix.startswith("/") else f"/{prefix}"


def get_allowed_origins() -> List[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_rate_limit_default() -> str:
    return os.getenv("RATE_LIMIT_DEFAULT", "100 per 15 minutes")


def is_rate_limit_enabled() -> bool:
    return os.getenv("RATE_LIMIT_ENABLED", "1") != "0"


# ===========================
# Authentication Configuration
# ===========================

ACCESS_TOKEN_EXPIRES_MINUTES = _env_int("JWT_ACCESS_EXPIRES_MINUTES", 15)
REFRESH_TOKEN_EXPIRES_DAYS = _env_int("JWT_REFRESH_EXPIRES_DAYS", 7)
EMAIL_VERIFICATION_EXPIRES_HOURS = 24
PASSWORD_RESET_EXPIRES_HOURS = 1
MAX_FAILED_LOGIN_ATTEMPTS = 5
ACCOUNT_LOCK_MINUTES = 15


# ===========================
# Health Check Configuration
# ===========================


def get_health_check_token() -> Optional[str]:
    """
    Get the health check token from environment variable.

    Environment Variables:
        HEALTH_CHECK_TOKEN: Token required for the detailed health endpoint.
            Default: None (detailed health disabled if not set)
    """
    token = os.getenv("HEALTH_CHECK_TOKEN")
    if token:
        return token.strip() or None
    return None


# ===========================
# Notification Providers
# ===========================


def get_email_settings() -> Dict[str, object]:
    return {
        "mock_mode": _env_bool("EMAIL_MOCK_MODE", "true"),
        "host": os.getenv("SMTP_HOST", "localhost"),
        "port": _env_int("SMTP_PORT", 587),
        "user": os.getenv("SMTP_USER", ""),
        "password": os.getenv("SMTP_PASSWORD", ""),
        "use_tls": _env_bool("SMTP_USE_TLS", "true"),
        "from_address": os.getenv("EMAIL_FROM", "noreply@diving.sa"),
    }


def get_sms_settings() -> Dict[str, object]:
    return {
        "mock_mode": _env_bool("SMS_MOCK_MODE", "true"),
        "account_sid": os.getenv("TWILIO_ACCOUNT_SID", ""),
        "auth_token": os.getenv("TWILIO_AUTH_TOKEN", ""),
        "from_number": os.getenv("TWILIO_FROM_NUMBER", ""),
    }


def get_push_settings() -> Dict[str, object]:
    return {
        "mock_mode": _env_bool("PUSH_MOCK_MODE", "true"),
        "server_key": os.getenv("FCM_SERVER_KEY", ""),
    }


def log_notification_config():
    """Log which notification providers run in mock mode (never the credentials)."""
    logger.info(
        "Notification providers configured",
        extra={
            "context": {
                "email_mock": get_email_settings()["mock_mode"],
                "sms_mock": get_sms_settings()["mock_mode"],
                "push_mock": get_push_settings()["mock_mode"],
            }
        },
    )


# ===========================
# Payment Gateway (HyperPay)
# ===========================

PAYMENT_METHODS = ("MADA", "VISA", "MASTER", "APPLEPAY", "STC_PAY")
CHECKOUT_EXPIRATION_MINUTES = 15


def get_hyperpay_settings() -> Dict[str, object]:
    """
    Build HyperPay settings.

    Environment Variables:
        HYPERPAY_TEST_MODE: use the sandbox host (default 'true')
        HYPERPAY_ACCESS_TOKEN: bearer token for the OPPWA API
        HYPERPAY_ENTITY_ID_<METHOD>: entity id per payment method
        HYPERPAY_WEBHOOK_SECRET: HMAC secret for webhook signatures
        HYPERPAY_TIMEOUT_SECONDS: HTTP timeout (default 30)
    """
    test_mode = _env_bool("HYPERPAY_TEST_MODE", "true")
    return {
        "test_mode": test_mode,
        "base_url": (
            "https://eu-test.oppwa.com" if test_mode else "https://eu-prod.oppwa.com"
        ),
        "api_version": "v1",
        "access_token": os.getenv("HYPERPAY_ACCESS_TOKEN", "test_access_token"),
        "entity_ids": {
            method: os.getenv(
                f"HYPERPAY_ENTITY_ID_{method}", f"test_entity_{method.lower()}"
            )
            for method in PAYMENT_METHODS
        },
        "webhook_secret": os.getenv("HYPERPAY_WEBHOOK_SECRET", "test_webhook_secret"),
        "timeout": _env_int("HYPERPAY_TIMEOUT_SECONDS", 30),
        "currency": "SAR",
    }


def log_payment_config():
    settings = get_hyperpay_settings()
    logger.info(
        "Payment gateway configured",
        extra={
            "context": {
                "gateway": "hyperpay",
                "test_mode": settings["test_mode"],
                "base_url": settings["base_url"],
            }
        },
    )


# ===========================
# Background Jobs
# ===========================


def is_scheduler_enabled() -> bool:
    if is_test_mode():
        return False
    return _env_bool("ENABLE_SCHEDULER", "true")


WAITLIST_OFFER_HOURS = 24
TRIP_REMINDER_WINDOW_HOURS = (24, 25)
