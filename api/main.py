"""
api/main.py -- FastAPI application entry point for the forum.

Run with:      uvicorn asgi:app --reload

Middleware, in registration order (Starlette runs the last one outermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. refresh_session       -- sliding 7-day session cookie
  5. log_requests          -- one access-log line per request
  6. ProxyHeadersMiddleware -- client address from X-Forwarded-For, trusted
                             proxies only (Settings.forwarded_allow_ips)

Lifespan builds the stores and services, seeds roles and default boards,
creates the bootstrap admin, and starts the cache purge task. Shutdown
tears them down in reverse.

All services are attached to app.state by wire_services(). Route handlers
read them from request.app.state; tests call wire_services() with
in-memory stores.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.categories import router as categories_router
from api.routes.v1.comments import router as comments_router
from api.routes.v1.posts import router as posts_router
from auth.dependencies import require_identity, session_token
from auth.models import Identity
from auth.rate_limit import LoginRateLimiter
from auth.roles import RoleService
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import (
    SESSION_COOKIE,
    clear_session_cookie,
    create_session_token,
    decode_session_token,
    identity_from_payload,
    needs_refresh,
    set_session_cookie,
)
from board.access import CategoryAccessService
from board.categories import CategoryService
from board.content import CommentService, OwnershipPolicy, PostService
from board.store import BoardStore
from board.uploads import LocalBlobStore, UploadPolicy
from cache.store import KeyValueCache, MemoryCache, SQLiteCache
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("forum.api")

_PURGE_INTERVAL_SECONDS = 15 * 60


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def make_cache(settings: Settings) -> KeyValueCache:
    if settings.rate_limit_backend == "sqlite":
        return SQLiteCache(settings.cache_db_path)
    return MemoryCache()


def wire_services(
    app: FastAPI,
    settings: Settings,
    user_store: UserStore,
    board_store: BoardStore,
    cache: KeyValueCache,
) -> None:
    """Build every service over the given stores and attach them to app.state."""
    state = app.state
    state.settings = settings
    state.user_store = user_store
    state.board_store = board_store
    state.cache = cache
    state.login_limiter = LoginRateLimiter(
        cache,
        max_attempts=settings.login_max_attempts,
        window=timedelta(seconds=settings.login_lockout_seconds),
        lockout=timedelta(seconds=settings.login_lockout_seconds),
    )
    state.auth_service = AuthService(user_store, state.login_limiter)
    state.role_service = RoleService(user_store)
    state.access_service = CategoryAccessService(user_store, board_store)
    state.category_service = CategoryService(board_store)
    policy = OwnershipPolicy(admin_bypass_anonymous=settings.admin_bypass_anonymous_content)
    state.post_service = PostService(
        board_store,
        state.access_service,
        policy,
        blobs=LocalBlobStore(settings.upload_dir),
        uploads=UploadPolicy(settings.max_image_bytes, settings.max_video_bytes),
    )
    state.comment_service = CommentService(board_store, state.access_service, policy)


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Drop expired rate-limit entries every 15 minutes.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        purged = app.state.cache.purge_expired()
        if purged:
            logger.debug("Purged %d expired cache entries", purged)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Stores first -- creating them creates the schema and seeds roles.
      2. Default boards, then services over the stores.
      3. Bootstrap admin -- needs the auth service.
      4. Purge task last -- references app.state.cache.
    """
    settings = get_settings()
    logger.info("Forum API starting up")
    user_store = UserStore(settings.database_url)
    board_store = BoardStore(settings.database_url)
    seeded = board_store.seed_default_categories()
    if seeded:
        logger.info("Seeded %d default categories", seeded)
    wire_services(app, settings, user_store, board_store, make_cache(settings))
    logger.info("Services initialized (rate limit backend=%s)", settings.rate_limit_backend)

    if settings.admin_password:
        app.state.auth_service.bootstrap_admin(
            settings.admin_username,
            settings.admin_email,
            settings.admin_password,
            settings.admin_display_name,
        )
    elif not user_store.has_users():
        logger.warning("No users exist and ADMIN_PASSWORD is not set -- run `python main.py create-admin`")

    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    if isinstance(app.state.cache, SQLiteCache):
        app.state.cache.close()
    board_store.close()
    user_store.close()
    logger.info("Forum API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Forum API",
    description="Community forum: sessions, roles, per-board access control and content ownership.",
    version=VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by authenticated routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Each add_middleware() wraps the ones before it, so the last registered
# sees the request first.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Sliding session
#
# Once more than half of the session lifetime has passed, re-issue the
# cookie with fresh claims. Bearer tokens are left alone; only the cookie
# slides. Responses that already set or clear the cookie (login, logout)
# are not touched.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def refresh_session(request: Request, call_next):
    response = await call_next(request)
    token = request.cookies.get(SESSION_COOKIE)
    if not token or any(name == b"set-cookie" for name, _ in response.raw_headers):
        return response
    payload = decode_session_token(token)
    if payload is None or not needs_refresh(payload):
        return response
    claimed = identity_from_payload(payload)
    current = await run_in_threadpool(request.app.state.auth_service.current_user, claimed) if claimed else None
    if current is None:
        clear_session_cookie(response)
    else:
        set_session_cookie(response, create_session_token(current))
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s%s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
        " (session)" if session_token(request) else "",
    )
    return response


# Outermost: every later read of request.client sees the trusted-proxy rewrite.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=get_settings().forwarded_allow_ips)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(categories_router, prefix="/api/v1", tags=["Categories"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])
app.include_router(comments_router, prefix="/api/v1", tags=["Comments"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(identity: Identity = Depends(require_identity)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Forum API")


@app.get("/redoc", include_in_schema=False)
async def redoc(identity: Identity = Depends(require_identity)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="Forum API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code": ..., "message": ...}.
    When detail is already a dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable regardless of router
# registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database round trip."""
    database = "ok"
    try:
        with request.app.state.board_store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
