from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from credgate.api.routes import api_router
from credgate.core.config import Environment, settings
from credgate.core.db import create_tables, engine
from credgate.core.exceptions.handlers import register_exception_handlers
from credgate.core.logger import configure_uvicorn_logging, setup_logger, shutdown_logger
from credgate.middleware.logging import LoggingMiddleware
from credgate.middleware.rate_limit import RateLimitHeaderMiddleware
from credgate.services.cache.rate_limiter import rate_limiter

# Interactive docs are hidden in production
DOCS_ENVIRONMENTS = {Environment.LOCAL, Environment.DEV, Environment.STG}

# Read by browser clients: request tracing, rate limit state and 401 reasons
EXPOSED_HEADERS = [
    "X-Request-ID",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "Retry-After",
    "WWW-Authenticate",
]


async def _check_dependencies():
    """Refuse to start without a working rate limit store; create tables if asked to."""
    if not await rate_limiter.store.health_check():
        logger.error(f"Rate limit store ({settings.rate_limit_backend}) failed its health check")
        raise RuntimeError("Rate limit store is not healthy.")

    logger.success(f"Rate limit store ({settings.rate_limit_backend}) is reachable")

    if settings.db_create_tables:
        await create_tables()
        logger.success("Database schema and tables are in place")


async def _shutdown_dependencies():
    await rate_limiter.store.close()
    await engine.dispose()
    logger.success("Rate limit store closed and database pool disposed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger()
    configure_uvicorn_logging()

    logger.info(f"Starting {settings.app_title} {settings.app_version}")
    await _check_dependencies()

    yield

    logger.info("Stopping, releasing connections")
    await _shutdown_dependencies()
    shutdown_logger()


_show_docs = settings.current_environment in DOCS_ENVIRONMENTS

app = FastAPI(
    title=settings.app_title,
    version=settings.app_version,
    description=settings.app_description,
    openapi_url="/openapi.json" if _show_docs else None,
    docs_url="/docs" if _show_docs else None,
    redoc_url="/redoc" if _show_docs else None,
    lifespan=lifespan,
    generate_unique_id_function=lambda route: f"{route.tags[0]}-{route.name}",
)

# Credentials are required for the renewal cookie to travel cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=EXPOSED_HEADERS,
)
app.add_middleware(RateLimitHeaderMiddleware)
# Added last so it wraps everything and every log line carries the request id
app.add_middleware(LoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)
