"""FastAPI application entry point.

Wiring only: lifespan, exception handlers, middleware, routers.
No business logic here (SRP). See app.core.lifespan and app.core.exception_handlers.

Settings are loaded inside create_app() so that tests can set env (and optionally
clear get_settings cache) before importing or calling create_app().
"""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1 import api_router
from app.api.v1.dependencies.security import detect_suspicious_patterns
from app.core.config import get_settings
from app.core.exception_handlers import register_exception_handlers
from app.core.lifespan import create_lifespan
from app.core.limiter import limiter
from app.middleware import (
    AuditCaptureMiddleware,
    BruteForceProtectionMiddleware,
    ClientInfoMiddleware,
    CorrelationIDMiddleware,
    RequestLoggerMiddleware,
    SessionIDMiddleware,
)
from app.shared.background import BackgroundTaskRunner
from app.shared.telemetry import setup_logging


def create_app() -> FastAPI:
    """Build and return the FastAPI application. Settings are resolved here (deferred from import)."""
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=create_lifespan,
    )

    # Audit writes run here, detached from the request; drained on shutdown.
    runner = BackgroundTaskRunner()
    app.state.background_tasks = runner
    app.state.audit_service = None
    app.state.security_monitor = None

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    # Middleware: last added = outermost.
    # Order: client info → correlation ID → session ID → request logger → brute force → audit capture → CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        AuditCaptureMiddleware,
        runner=runner,
        max_body_bytes=settings.audit_max_captured_body_bytes,
        correlation_header=settings.correlation_id_header,
    )
    app.add_middleware(
        BruteForceProtectionMiddleware,
        protected_paths=tuple(settings.brute_force_protected_path_list),
    )
    app.add_middleware(
        RequestLoggerMiddleware,
        expected_401_paths=tuple(settings.request_logger_expected_401_path_list),
    )
    app.add_middleware(
        SessionIDMiddleware,
        header_name=settings.session_id_header,
        cookie_name=settings.session_id_cookie,
    )
    app.add_middleware(
        CorrelationIDMiddleware,
        header_name=settings.correlation_id_header,
    )
    app.add_middleware(ClientInfoMiddleware)

    app.include_router(
        api_router,
        prefix="/api/v1",
        dependencies=[Depends(detect_suspicious_patterns)],
    )

    return app


app = create_app()
