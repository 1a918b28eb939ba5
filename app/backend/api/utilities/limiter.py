# app/backend/api/utilities/limiter.py

from fastapi import Request
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings

def get_limiter_key(request: Request) -> str:
    """
    Returns the key requests are counted under.
    Logged-in requests are counted per username taken from the bearer token,
    anonymous ones (login, signup) per client IP address.
    """
    auth_header = request.headers.get("authorization")
    if settings.SECRET_KEY and auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ")[1]
        try:
            # Expiry does not matter here, only who the token belongs to.
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            username: str = payload.get("sub")
            if username:
                return username
        except jwt.PyJWTError:
            # Unreadable token: count it against the IP address.
            pass

    return get_remote_address(request)

# Counters live in Redis when RATE_LIMITER_REDIS_URL is set, in memory otherwise.
limiter = Limiter(
    key_func=get_limiter_key,
    storage_uri=settings.RATE_LIMITER_REDIS_URL or "memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)
