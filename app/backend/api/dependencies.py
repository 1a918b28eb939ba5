#app/backend/api/dependencies.py
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.attendance_service import AttendanceService
from ..services.auth_service import AuthService
from ..services.children_service import ChildrenService


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Returns the Redis connection pool created at startup, as a dependency.
    """
    return request.app.state.redis_pool

def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Returns the PostgreSQL connection pool created at startup, as a dependency.
    """
    return request.app.state.postgres_pool


def get_attendance_service(
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)
) -> AttendanceService:
    """
    Builds a fresh AttendanceService over the application-wide pools for every request.
    """
    redis_client = RedisClient(pool=redis_pool)
    db_client = AsyncPostgresClient(pool=postgres_pool)
    return AttendanceService(redis_client=redis_client, db_client=db_client)


def get_children_service(
    postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)
) -> ChildrenService:
    return ChildrenService(db_client=AsyncPostgresClient(pool=postgres_pool))


def get_auth_service(
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)
) -> AuthService:
    redis_client = RedisClient(pool=redis_pool)
    db_client = AsyncPostgresClient(pool=postgres_pool)
    return AuthService(redis_client=redis_client, db_client=db_client)
