# app/backend/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
from pathlib import Path
import redis.asyncio as redis
import asyncpg
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from fastapi.middleware.cors import CORSMiddleware

from .config.config import settings
from .api import auth, children, attendance, dashboard
from .db.db_client import AsyncPostgresClient
from .logging.logging_config import setup_logging
from .api.utilities.limiter import limiter

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "db" / "schema.sql"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Opens the PostgreSQL and Redis pools on startup and closes them on shutdown.
    """
    setup_logging()
    logger.info("Application starting...")
    if not settings.SECRET_KEY:
        logger.error("SECRET_KEY is not set; access tokens can neither be issued nor verified.")

    app.state.postgres_pool = None
    app.state.redis_pool = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL, min_size=2, max_size=10
        )
        app.state.postgres_pool = postgres_pool
        app.state.redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )
        logger.info("PostgreSQL and Redis connection pools created.")

        if settings.APPLY_SCHEMA_ON_STARTUP:
            await AsyncPostgresClient(pool=postgres_pool).apply_schema(SCHEMA_PATH.read_text())
            logger.info("Database schema applied.")
    except Exception as e:
        logger.error(f"ERROR: startup failed: {e}", exc_info=True)

    yield

    logger.info("Application shutting down...")
    if app.state.postgres_pool:
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if app.state.redis_pool:
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="Bal-Sabha Attendance API",
    description="Registration and daily attendance for the kids of the Sabha",
    version="1.0.0",
    lifespan=lifespan
)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(children.router, prefix="/api/v1")
app.include_router(attendance.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")

@app.get("/health", tags=["System"])
def health_check():
    """Simple liveness check."""
    return {"status": "ok", "message": "Bal-Sabha Attendance API is running."}
