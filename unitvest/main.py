"""
Unitvest Investments API — application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers
and routers, and manages the application lifecycle (DB table creation on
startup).
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlmodel import SQLModel

from unitvest.api.v1.api import api_router
from unitvest.core.config import settings
from unitvest.core.exceptions import add_exception_handlers
from unitvest.core.logging import setup_logging
from unitvest.core.resilience import db_circuit_breaker
from unitvest.db.session import AsyncSessionLocal, engine
from unitvest.middleware import RequestIDMiddleware, RequestTimingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def create_tables(max_retries: int = 5, retry_delay: float = 2) -> bool:
    """
    Create all tables, retrying while the database comes up.

    Returns ``False`` when the database stayed unreachable; callers decide
    whether that is fatal.
    """
    import unitvest.db.base  # noqa: F401  (registers every table)

    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)", attempt, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            return True
        except Exception as exc:
            if attempt == max_retries:
                logger.error(
                    "Could not connect to database after %d attempts: %s", max_retries, exc
                )
                return False
            logger.warning(
                "Database connection failed (attempt %d/%d): %s; retrying in %ss",
                attempt,
                max_retries,
                exc,
                retry_delay,
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2
    return False


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup creates the schema; if the database is unreachable the app still
    starts in degraded mode and ``/health`` reports ``database: false``.
    Shutdown disposes of the connection pool.
    """
    await create_tables()
    yield
    logger.info("Shutting down, disposing connection pool")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Unit investments that accrue a weekly return: purchase, approval, "
        "automatic renewal at maturity, manual completion and admin overrides."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Outermost first.
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Readiness probe.

    Runs ``SELECT 1`` so a pod that lost its database stops receiving
    traffic, and reports the database circuit breaker state.
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breaker": db_circuit_breaker.get_status(),
    }
