"""
Message templates per notification type.

Templates are Jinja2 strings rendered with the recipient's ``first_name``,
``last_name`` and ``email`` plus the notification ``data``.
"""

import logging
from typing import Any, Dict, Tuple

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from dive_platform.domain.enums import NotificationType

logger = logging.getLogger(__name__)

_env = SandboxedEnvironment(autoescape=False, trim_blocks=True)

TEMPLATES: Dict[str, Dict[str, str]] = {
    NotificationType.EMAIL_VERIFICATION.value: {
        "title": "Verify your email address",
        "body": (
            "Hi {{ first_name }}, welcome to the Saudi Diving Platform. "
            "Use this code to verify your email: {{ token }}. It expires in 24 hours."
        ),
    },
    NotificationType.PASSWORD_RESET.value: {
        "title": "Reset your password",
        "body": (
            "Hi {{ first_name }}, use this code to reset your password: {{ token }}. "
            "It expires in 1 hour. If you did not ask for this, ignore this message."
        ),
    },
    NotificationType.BOOKING_CONFIRMATION.value: {
        "title": "Booking {{ booking_number }} received",
        "body": (
            "Hi {{ first_name }}, your booking for {{ trip_title }} on {{ departure }} "
            "is confirmed pending payment. Total: {{ total_amount }} SAR."
        ),
    },
    NotificationType.BOOKING_CANCELLED.value: {
        "title": "Booking {{ booking_number }} cancelled",
        "body": (
            "Hi {{ first_name }}, your booking for {{ trip_title }} was cancelled."
            "{% if refund_amount %} A refund of {{ refund_amount }} SAR will be processed.{% endif %}"
        ),
    },
    NotificationType.WAITLIST_AVAILABLE.value: {
        "title": "A spot opened on {{ trip_title }}",
        "body": (
            "Hi {{ first_name }}, a spot is available on {{ trip_title }}. "
            "Book before {{ expires_at }} to keep it."
        ),
    },
    NotificationType.TRIP_REMINDER.value: {
        "title": "Your dive trip is tomorrow",
        "body": (
            "Hi {{ first_name }}, {{ trip_title }} departs at {{ departure }}. "
            "Meeting point: {{ meeting_point or 'see trip details' }}."
        ),
    },
    NotificationType.TRIP_CANCELLED.value: {
        "title": "Trip cancelled: {{ trip_title }}",
        "body": (
            "Hi {{ first_name }}, the center cancelled {{ trip_title }}. "
            "Your booking {{ booking_number }} has been cancelled."
        ),
    },
    NotificationType.PAYMENT_SUCCESSFUL.value: {
        "title": "Payment received",
        "body": "Hi {{ first_name }}, we received {{ amount }} SAR for booking {{ booking_number }}.",
    },
    NotificationType.PAYMENT_FAILED.value: {
        "title": "Payment failed",
        "body": (
            "Hi {{ first_name }}, your payment for booking {{ booking_number }} failed"
            "{% if reason %}: {{ reason }}{% endif %}. Please try again."
        ),
    },
    NotificationType.REFUND_PROCESSED.value: {
        "title": "Refund processed",
        "body": "Hi {{ first_name }}, a refund of {{ amount }} SAR was issued for booking {{ booking_number }}.",
    },
}


def render_notification(
    notification_type: str, title: str, body: str, context: Dict[str, Any]
) -> Tuple[str, str]:
    """Render the type's template, or the supplied title/body when none exists."""
    template = TEMPLATES.get(notification_type, {"title": title, "body": body})
    try:
        rendered_title = _env.from_string(template["title"]).render(**context)
        rendered_body = _env.from_string(template["body"]).render(**context)
    except TemplateError as e:
        logger.warning(
            "Notification template failed to render",
            extra={"context": {"type": notification_type, "error": str(e)}},
        )
        return title, body
    return rendered_title[:255], rendered_body
