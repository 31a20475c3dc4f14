import logging
import os

from dotenv import load_dotenv
from flask import Flask, g, request
from flask_login import LoginManager

# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

from dive_platform.controllers import API_BLUEPRINTS, health_bp  # noqa: E402
from dive_platform.core.api_utils import error_response  # noqa: E402
from dive_platform.core.auth_decorators import get_auth_error  # noqa: E402
from dive_platform.core.config import (  # noqa: E402
    get_allowed_origins,
    get_api_prefix,
    get_environment,
    get_health_check_token,
    is_production,
    is_rate_limit_enabled,
    is_scheduler_enabled,
    is_test_mode,
    log_notification_config,
    log_payment_config,
    log_timezone_config,
)
from dive_platform.core.csrf_config import csrf  # noqa: E402
from dive_platform.core.error_handlers import register_error_handlers  # noqa: E402
from dive_platform.core.exceptions import UnauthorizedError  # noqa: E402
from dive_platform.core.limiter_config import limiter  # noqa: E402
from dive_platform.core.logging_config import setup_logging  # noqa: E402
from dive_platform.core.security import verify_access_token  # noqa: E402
from dive_platform.db.base import User  # noqa: E402
from dive_platform.db.session import SessionLocal, create_tables, get_engine  # noqa: E402

logger = logging.getLogger(__name__)

WEAK_SECRETS = ("dev-secret-change-me", "dev-jwt-secret-change-me", "secret123")
CORS_ALLOWED_HEADERS = "Authorization, Content-Type, X-Requested-With, X-Health-Token"
CORS_ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"


def _init_sentry(env: str) -> None:
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info(
            "Sentry not initialized (SENTRY_DSN not set)",
            extra={"context": {"environment": env}},
        )
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=env,
        release=os.getenv("GIT_SHA", "unknown"),
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1,
        profiles_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info(
        "Sentry initialized",
        extra={"context": {"environment": env, "release": os.getenv("GIT_SHA", "unknown")}},
    )


def _init_metrics(app: Flask, env: str) -> None:
    """Expose /metrics for Prometheus scraping."""
    from prometheus_client import CollectorRegistry
    from prometheus_flask_exporter import PrometheusMetrics

    # Test runs build many apps; give each its own registry
    registry = CollectorRegistry(auto_describe=True) if app.config.get("TESTING") else None
    metrics = PrometheusMetrics(app, registry=registry)
    try:
        metrics.info(
            "app_info",
            "Application information",
            version=os.getenv("GIT_SHA", "unknown"),
            environment=env,
        )
    except ValueError as e:
        # Metric already registered (create_app called more than once)
        logger.debug(
            "app_info metric already registered",
            extra={"context": {"error": str(e)}},
        )
    logger.info(
        "Prometheus metrics initialized",
        extra={"context": {"metrics_endpoint": "/metrics"}},
    )


def _init_talisman(app: Flask) -> None:
    from flask_talisman import Talisman

    Talisman(
        app,
        content_security_policy={"default-src": ["'none'"], "frame-ancestors": ["'none'"]},
        force_https=True,
        strict_transport_security=True,
        strict_transport_security_max_age=63072000,
        strict_transport_security_include_subdomains=True,
        frame_options="DENY",
        referrer_policy="no-referrer",
    )


def _init_login_manager(app: Flask) -> None:
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        return error_response("UNAUTHORIZED", get_auth_error(), 401)

    @login_manager.request_loader
    def load_user_from_request(req):
        """Resolve ``Authorization: Bearer <access token>`` to an active user."""
        auth_header = req.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return None

        token = auth_header.split(" ", 1)[1].strip()
        try:
            payload = verify_access_token(token)
        except UnauthorizedError as e:
            g.auth_error = e.message
            return None

        with SessionLocal() as db:
            user = db.get(User, str(payload["sub"]))
        if user is None:
            g.auth_error = "User not found"
            return None
        if not user.is_active:
            g.auth_error = "Account is not active"
            return None
        g.user_id = user.id
        return user


def _register_cors(app: Flask) -> None:
    allowed_origins = get_allowed_origins()

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = CORS_ALLOWED_HEADERS
            response.headers["Access-Control-Allow-Methods"] = CORS_ALLOWED_METHODS
            response.headers.add("Vary", "Origin")
        return response


def _register_cli(app: Flask) -> None:
    @app.cli.command("run-jobs")
    def run_jobs_command():
        """Run every background job once (waitlist expiry, reminders, completion)."""
        from dive_platform.services.jobs import (
            complete_finished_trips_job,
            expire_waitlist_offers_job,
            send_trip_reminders_job,
        )

        expire_waitlist_offers_job()
        send_trip_reminders_job()
        complete_finished_trips_job()

    @app.cli.command("create-tables")
    def create_tables_command():
        """Create any missing database tables."""
        create_tables()


def create_app() -> Flask:
    env = get_environment()
    production = is_production()

    app = Flask(__name__)

    # Set TESTING before anything else reads it
    if is_test_mode():
        app.config["TESTING"] = True

    setup_logging(
        app=app,
        log_level=logging.INFO if production else logging.DEBUG,
        enable_sql_echo=os.getenv("SQL_ECHO", "0") == "1",
        log_to_file=os.getenv("LOG_TO_FILE", "1") == "1" and not app.config.get("TESTING"),
        use_json_format=production,
    )
    log_timezone_config()
    log_notification_config()
    log_payment_config()

    _init_sentry(env)
    _init_metrics(app, env)

    app.config["SECRET_KEY"] = os.getenv("FLASK_SECRET_KEY", "dev-secret-change-me")
    if production:
        secret_key = app.config["SECRET_KEY"]
        if secret_key in WEAK_SECRETS or len(secret_key) < 32:
            raise ValueError(
                "Production deployment requires strong SECRET_KEY (min 32 chars). "
                "Set FLASK_SECRET_KEY environment variable."
            )

    limiter.init_app(app)
    if app.config.get("TESTING") and not is_rate_limit_enabled():
        limiter.enabled = False
        logger.info(
            "Rate limiting disabled for testing", extra={"context": {"test_mode": True}}
        )

    app.config.setdefault("SESSION_COOKIE_SECURE", production)
    app.config.setdefault("SESSION_COOKIE_HTTPONLY", True)
    app.config.setdefault("SESSION_COOKIE_SAMESITE", "Lax")
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024

    # JSON API blueprints authenticate with bearer tokens, so they are exempt
    csrf.init_app(app)
    app.config["WTF_CSRF_TIME_LIMIT"] = None
    app.config["WTF_CSRF_SSL_STRICT"] = production

    if production:
        _init_talisman(app)

    _register_cors(app)
    _init_login_manager(app)

    app.config["HEALTH_CHECK_TOKEN"] = get_health_check_token()
    app.config["API_PREFIX"] = get_api_prefix()

    try:
        create_tables()
        engine = get_engine()
        logger.info(
            "Database ready",
            extra={"context": {"driver": engine.dialect.name}},
        )
    except Exception as e:
        logger.warning(
            "Failed to auto-create tables",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )

    register_error_handlers(app)

    api_prefix = app.config["API_PREFIX"]
    for blueprint in API_BLUEPRINTS:
        csrf.exempt(blueprint)
        app.register_blueprint(blueprint, url_prefix=f"{api_prefix}{blueprint.url_prefix}")
    csrf.exempt(health_bp)
    app.register_blueprint(health_bp)
    logger.info(
        "Blueprints registered",
        extra={"context": {"api_prefix": api_prefix, "count": len(API_BLUEPRINTS) + 1}},
    )

    if is_scheduler_enabled():
        from dive_platform.services.jobs import start_scheduler

        try:
            # Store scheduler reference to prevent garbage collection
            app.config["SCHEDULER"] = start_scheduler()
        except Exception as e:
            logger.warning(
                "Failed to start background scheduler",
                extra={"context": {"error": str(e)}},
                exc_info=True,
            )
    else:
        logger.info("Background scheduler disabled", extra={"context": {"environment": env}})

    _register_cli(app)

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
