"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.container import build_container
from api.dependencies import rate_limit_default
from api.routers import auth, health, users
from core.config import Settings, get_settings
from core.rate_limit_config import RateLimitExceededError
from core.redis import RedisClient
from db.session import create_engine_from_settings, create_session_factory, create_tables
from schemas.response import error_body
from services.exceptions import AppError, UnauthorizedError
from services.use_cases import format_errors

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings: Settings = app.state.settings

    # Startup: Database
    engine = create_engine_from_settings(app_settings)
    await create_tables(engine)
    session_factory = create_session_factory(engine)

    # Startup: Connect to Redis
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()

    app.state.container = build_container(app_settings, engine, session_factory, redis_client)
    logger.info("app_started", extra={"environment": app_settings.environment.value})

    yield

    # Shutdown: Clean up Redis and the connection pool
    await redis_client.close()
    await engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """Add rate limit headers to successful responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add rate limit headers to response."""
        response = await call_next(request)

        # Rejections get their headers from the exception handler
        info = getattr(request.state, "rate_limit_info", None)
        if info and "X-RateLimit-Limit" not in response.headers:
            response.headers["X-RateLimit-Limit"] = str(info["limit"])
            response.headers["X-RateLimit-Remaining"] = str(info["remaining"])
            response.headers["X-RateLimit-Reset"] = str(info["reset"])

        return response


def register_exception_handlers(app: FastAPI, app_settings: Settings) -> None:
    """Translate every error into the response envelope."""

    @app.exception_handler(AppError)
    async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, details=exc.details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        _request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=error_body("Invalid input", details=format_errors(list(exc.errors()))),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request, exc: StarletteHTTPException,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=exc.headers,
        )

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exception_handler(
        _request: Request, exc: RateLimitExceededError,
    ) -> JSONResponse:
        """Handle rate limit exceeded with proper headers."""
        return JSONResponse(
            status_code=403,
            content=error_body(str(exc), retry_after=exc.result.retry_after),
            headers={
                "Retry-After": str(exc.result.retry_after),
                "X-RateLimit-Limit": str(exc.result.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(exc.result.reset),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            extra={"path": request.url.path, "method": request.method},
        )
        message = str(exc) if app_settings.is_development else "Internal server error"
        return JSONResponse(status_code=500, content=error_body(message))


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    The lifespan creates the container; tests may set ``app.state.container``
    directly and drive the app without running the lifespan.
    """
    app_settings = app_settings or get_settings()

    app = FastAPI(
        title="Accounts API",
        description="User registration, authentication, and account management.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    register_exception_handlers(app, app_settings)

    # Rate limit headers middleware (runs first, adds headers to successful responses)
    app.add_middleware(RateLimitHeadersMiddleware)

    # Security headers middleware (runs after CORS, adds headers to responses)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials="*" not in app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Every route passes the per-IP limiter first
    global_limits = [Depends(rate_limit_default)]
    app.include_router(health.router, prefix=API_PREFIX, dependencies=global_limits)
    app.include_router(auth.router, prefix=API_PREFIX, dependencies=global_limits)
    app.include_router(users.router, prefix=API_PREFIX, dependencies=global_limits)
    return app


app = create_app()
