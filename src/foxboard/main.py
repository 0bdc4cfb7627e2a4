"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The lifespan manages
startup/shutdown: Redis (optional), table creation, the bootstrap admin,
and the database engine. Middleware, CORS, exception handlers and routers
are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from foxboard import __version__
from foxboard.api import api_router
from foxboard.config import settings
from foxboard.errors import AppError, AuthError, RequestError, StorageError
from foxboard.logconfig import configure_logging

logger = structlog.get_logger()


async def bootstrap() -> None:
    """Create tables (if configured) and the initial admin account."""
    from foxboard.db.engine import async_session_factory, init_models
    from foxboard.services.user_service import UserService

    if settings.create_tables:
        await init_models()
    async with async_session_factory() as db:
        await UserService(db).bootstrap_admin(
            settings.admin_user, settings.admin_initial_password
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    logger.info(
        "foxboard.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from foxboard.redis_client import close_redis, init_redis
    try:
        await init_redis()
        logger.info("foxboard.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional; the app runs without rate limiting
        logger.warning("foxboard.redis_unavailable", error=str(e))

    await bootstrap()

    yield

    logger.info("foxboard.shutdown")
    await close_redis()

    from foxboard.db.engine import engine
    await engine.dispose()


# ─── Exception handlers ─────────────────────────────────


def _error_response(status_code: int, msg: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": msg}, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "request.failed",
        error=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.msg,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return _error_response(exc.status_code, exc.msg, headers)


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("request.storage_error", error=str(exc))
    err = StorageError("Database error")
    return _error_response(err.status_code, err.msg)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    err = RequestError(problems or "Invalid request")
    logger.info("request.invalid", detail=err.msg)
    return _error_response(err.status_code, err.msg)


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.log_level, debug=settings.debug)

    app = FastAPI(
        title="Foxboard",
        description="Kanban board backend with per-project permissions",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from foxboard.middleware.rate_limit import RateLimitMiddleware
    from foxboard.middleware.request_id import RequestIdMiddleware
    from foxboard.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        login_rpm=settings.rate_limit_login_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: foxboard.main:app)
app = create_app()
