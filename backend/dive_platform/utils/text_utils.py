import re
import secrets
from datetime import datetime
from typing import Optional

from dive_platform.utils.date_utils import utcnow

_NON_WORD = re.compile(r"[^\w\s-]", re.UNICODE)
_SEPARATORS = re.compile(r"[\s_-]+")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def generate_slug(text: str) -> str:
    """URL slug: lowercase, punctuation dropped, runs of separators collapsed to '-'."""
    slug = _NON_WORD.sub("", text.lower().strip())
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


def generate_booking_number(now: Optional[datetime] = None) -> str:
    """Human-facing booking reference such as ``BK250301-4F1A9C``."""
    now = now or utcnow()
    return f"BK{now:%y%m%d}-{secrets.token_hex(3).upper()}"


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()
