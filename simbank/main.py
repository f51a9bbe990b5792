"""
SimBank API — Application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers,
routers, and manages the application lifecycle (engine creation, table
creation on startup, pool disposal on shutdown).
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from simbank.api.v1.api import api_router
from simbank.core.config import settings
from simbank.core.exceptions import add_exception_handlers
from simbank.core.logging import setup_logging
from simbank.core.resilience import db_circuit_breaker
from simbank.db.session import Database
from simbank.middleware import RequestIDMiddleware, RequestTimingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ────────────────────────────────────────────────────────────────────────────
# Application lifespan
# ────────────────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Manages startup / shutdown lifecycle events.

    Startup:
      - Builds the :class:`Database` (engine + session factory) and stores it
        on ``app.state.database`` for the ``get_db`` dependency.
      - Creates the tables, retrying while the database comes up.  If it is
        still unreachable after all attempts the app starts in degraded mode
        (``/health`` reports ``database: false``).

    Shutdown:
      - Disposes of the connection pool.
    """
    database = Database.from_settings(settings)
    app.state.database = database

    max_retries = 5
    retry_delay = 2  # seconds, doubled after each failed attempt

    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)…", attempt, max_retries)
            await database.create_all()
            logger.info("Database tables ready")
            break
        except Exception as exc:
            if attempt < max_retries:
                logger.warning(
                    "Database connection failed (attempt %d/%d): %s — retrying in %ds…",
                    attempt,
                    max_retries,
                    exc,
                    retry_delay,
                )
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(
                    "Could not connect to database after %d attempts. "
                    "Starting in DEGRADED mode. Last error: %s",
                    max_retries,
                    exc,
                )

    yield

    logger.info("Shutting down — disposing connection pool")
    await database.dispose()


# ────────────────────────────────────────────────────────────────────────────
# FastAPI application instance
# ────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Banking simulation API: accounts, transfers, Pix, cards and "
        "per-minute compounding investments."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# ── Middleware (order matters: outermost = first to execute) ──
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

# ── Global error handlers ──
add_exception_handlers(app)

# ── API routers ──
app.include_router(api_router, prefix=settings.API_V1_STR)


# ── Health check ──


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Liveness / readiness probe with database connectivity check.

    Runs a ``SELECT 1`` through the application's engine and reports the
    database circuit breaker state.
    """
    database = getattr(request.app.state, "database", None)
    db_healthy = database is not None and await database.ping()

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breaker": db_circuit_breaker.get_status(),
    }
