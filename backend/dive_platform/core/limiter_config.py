import os

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from dive_platform.core.config import get_rate_limit_default

# Global Limiter instance imported by controllers; create_app() binds it and
# disables it when RATE_LIMIT_ENABLED=0 in test mode.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[get_rate_limit_default()],
    storage_uri=os.getenv("LIMITER_STORAGE_URI", "memory://"),
)

AUTH_LIMIT = "10 per 15 minutes"
WRITE_LIMIT = "30 per minute"
READ_LIMIT = "100 per minute"
