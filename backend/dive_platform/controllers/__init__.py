# Controllers package: one Blueprint per API area.
# create_app() registers API_BLUEPRINTS under API_PREFIX and health_bp at the root.

from .auth_controller import auth_bp
from .booking_controller import booking_bp
from .center_controller import center_bp
from .certification_controller import certification_bp
from .health_controller import health_bp
from .instructor_controller import instructor_bp, site_bp
from .mobile_controller import mobile_bp
from .notification_controller import notification_bp
from .payment_controller import payment_bp
from .review_controller import review_bp
from .trip_controller import trip_bp
from .user_controller import user_bp

API_BLUEPRINTS = (
    auth_bp,
    user_bp,
    certification_bp,
    center_bp,
    instructor_bp,
    site_bp,
    booking_bp,
    trip_bp,
    payment_bp,
    review_bp,
    notification_bp,
    mobile_bp,
)

__all__ = [
    "API_BLUEPRINTS",
    "auth_bp",
    "booking_bp",
    "center_bp",
    "certification_bp",
    "health_bp",
    "instructor_bp",
    "mobile_bp",
    "notification_bp",
    "payment_bp",
    "review_bp",
    "site_bp",
    "trip_bp",
    "user_bp",
]
