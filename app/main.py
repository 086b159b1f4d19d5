import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - register tables with Base
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.calendar.router import router as calendar_router
from .domain.companies.router import router as companies_router
from .domain.notifications.router import router as notifications_router
from .rate_limiter import get_redis_client
from .routes.auth import router as auth_router
from .routes.users import router as users_router
from .security_headers import SecurityHeadersMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Identity REST calls would otherwise log every request line
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
SLOW_REQUEST_MS = float(os.getenv("SLOW_REQUEST_MS", "1000"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Testra back office starting")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Appointment, company, notification and user tables ready")
    except Exception as e:
        # Several API workers may race on the same schema
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Tables already created by another worker")
        else:
            logger.error(f"❌ Failed to create tables: {e}")

    if get_redis_client() is None:
        logger.warning("⚠️ Redis unavailable - sign-in rate limits are per process")

    yield
    logger.info("👋 Testra back office stopped")


app = FastAPI(title="Testra Back Office API", version="1.0.0", lifespan=lifespan)


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors with the (possibly unserializable) ``ctx`` entries dropped"""
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """A malformed Authorization header is an authentication failure, not a 422"""
    if any("authorization" in str(error.get("loc", "")).lower() for error in exc.errors()):
        logger.warning(f"🔒 Bad Authorization header on {request.url.path}")
        return JSONResponse(
            status_code=401,
            content={"detail": "Not authenticated. Sign in or send a valid Bearer token."},
        )

    errors = jsonable_errors(exc)
    logger.warning(f"⚠️ Invalid request to {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} failed: {e}")
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > SLOW_REQUEST_MS:
        logger.warning(f"🐢 {request.method} {request.url.path} took {elapsed_ms:.0f}ms")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
else:
    logger.warning("⚠️ Security headers disabled")


# Dashboards send the session cookie, so origins must be listed explicitly
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]
logger.info(f"🌐 CORS origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Token-Expired", "X-Redirect", "Retry-After"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(companies_router)
app.include_router(appointments_router)
app.include_router(calendar_router)
app.include_router(notifications_router)


@app.get("/")
def root():
    return {"service": "testra-backoffice", "status": "running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
