import logging
import random
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .config import settings
from .database import AsyncSessionLocal, create_tables
from .exceptions import AuthenticationError, ForumError
from .middleware import MethodOverrideMiddleware
from .routers.admin import router as admin_router
from .routers.auth import router as auth_router
from .routers.comments import router as comments_router
from .routers.follow import router as follow_router
from .routers.health import router as health_router
from .routers.interactions import router as interactions_router
from .routers.restaurants import router as restaurants_router
from .routers.users import router as users_router
from .services.session_service import FLASH_ERROR, SessionService
from .templating import templates
from .utils import redirect, redirect_back

# Configure logging
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Server-rendered restaurant reviews: comments, favorites, likes and follows.",
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(restaurants_router)
app.include_router(comments_router)
app.include_router(interactions_router)
app.include_router(follow_router)
app.include_router(users_router)
app.include_router(admin_router)

# Uploaded media is served by the app only for local storage; S3 URLs point at the bucket
if settings.storage_backend == "local":
    app.mount("/media", StaticFiles(directory=settings.media_dir), name="media")

# HTML forms can only POST; `?_method=` selects PUT/PATCH/DELETE
app.add_middleware(MethodOverrideMiddleware)

# Prometheus metrics
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", [
                        "method", "route", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5)
)


def _apply_session_cookie(request: Request, response: Response) -> None:
    token = getattr(request.state, "session_token", None)
    if token:
        response.set_cookie(
            settings.session_cookie_name,
            token,
            max_age=settings.session_expiry_minutes * 60,
            httponly=True,
            samesite="lax",
            secure=settings.session_cookie_secure,
        )
    elif getattr(request.state, "clear_session", False):
        response.delete_cookie(settings.session_cookie_name)


def _error_page(request: Request, status_code: int, message: str):
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "status_code": status_code,
            "message": message,
            "success_messages": [],
            "error_messages": [],
            "login_user": None,
        },
        status_code=status_code,
    )


async def _flash_error(request: Request, message: str) -> None:
    """Store an error flash for the next page, outside the failed request's db session."""
    context = getattr(request.state, "context", None)
    if context is not None:
        session_id = context.session_id
    else:
        session_id = SessionService.verify_token(
            request.cookies.get(settings.session_cookie_name, ""))
    async with AsyncSessionLocal() as db:
        row = await SessionService.find(db, session_id)
        if row is None:
            row, token = await SessionService.create(db)
            request.state.session_token = token
        await SessionService.push_flash(db, row, FLASH_ERROR, message)


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError):
    if isinstance(exc, AuthenticationError):
        await _flash_error(request, exc.message)
        return redirect("/signin")
    # Form submissions go back to the page they came from
    if request.method != "GET" and request.headers.get("referer"):
        await _flash_error(request, exc.message)
        return redirect_back(request)
    return _error_page(request, exc.status_code, exc.message)


@app.middleware("http")
async def add_request_id_and_errors(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    user_agent = request.headers.get("user-agent") or "unknown"
    # Lightweight JSON log (sample all in debug)
    if settings.debug or random.random() < settings.log_sample_rate:
        logger.info({
            "event": "request",
            "method": request.method,
            "path": request.url.path,
            "rid": request_id,
            "user_agent": user_agent,
        })
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(f"Unhandled error rid={request_id}")
        response = _error_page(request, 500, "Internal Server Error")
    elapsed = time.perf_counter() - start
    REQUEST_LATENCY.observe(elapsed)
    route = getattr(request.scope.get("route"), "path", request.url.path)
    REQUEST_COUNT.labels(method=request.method,
                         route=route, status=response.status_code).inc()
    _apply_session_cookie(request, response)
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/")
async def root():
    return redirect("/restaurants")


@app.get("/metrics")
async def metrics(request: Request):
    # In dev/debug mode, expose metrics without auth
    if not settings.debug:
        token = request.headers.get("X-Metrics-Token")
        if not settings.metrics_token or token != settings.metrics_token:
            return PlainTextResponse("Forbidden", status_code=403)
    data = generate_latest()
    return PlainTextResponse(content=data, media_type=CONTENT_TYPE_LATEST)
