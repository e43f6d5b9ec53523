"""
FastAPI Application - Storefront API
Backend for a small online store: catalogue, orders and cookie sessions
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, settings
from app.core.auth import IdentityMiddleware, get_token_issuer
from app.core.csrf import CSRF_HEADER_NAME, CsrfMiddleware, get_csrf_guard
from app.core.logging import configure_logging, get_logger
from app.core.middleware import RequestContextMiddleware
from app.tasks.queue import close_queue

logger = get_logger(__name__)

MIN_SECRET_LENGTH = 32


def check_startup_settings(config: Settings) -> None:
    """
    Refuse to start with unsafe security settings.

    A wildcard CORS origin is always fatal (credentials are allowed). Short
    secrets are fatal in production and a warning elsewhere.

    Raises:
        RuntimeError: On a fatal misconfiguration
    """
    if "*" in config.CORS_ORIGINS:
        raise RuntimeError("CORS_ORIGINS must list explicit origins, '*' is not allowed")

    for name in ("JWT_SECRET", "CSRF_SECRET"):
        value: str = getattr(config, name)
        if len(value) >= MIN_SECRET_LENGTH:
            continue
        if config.ENVIRONMENT == "production":
            raise RuntimeError(f"{name} must be at least {MIN_SECRET_LENGTH} characters")
        logger.warning("weak_secret", setting=name, min_length=MIN_SECRET_LENGTH)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown events"""
    configure_logging()
    check_startup_settings(settings)
    logger.info("api_starting", environment=settings.ENVIRONMENT, version=settings.VERSION)
    yield
    await close_queue()
    logger.info("api_shutdown")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="E-commerce backend with cookie-based sessions",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Starlette runs the last added middleware first: CORS, request context,
# CSRF, then identity resolution right before the route.
app.add_middleware(IdentityMiddleware, issuer=get_token_issuer())
app.add_middleware(CsrfMiddleware, guard=get_csrf_guard())
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", CSRF_HEADER_NAME],
    expose_headers=[CSRF_HEADER_NAME],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint"""
    return {"status": "healthy"}


# Import and include routers
from app.api.routes import router as api_router  # noqa: E402

app.include_router(api_router)
