import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from uuid import uuid4

import asyncpg
import jwt

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..models.db_models import User
from ..models.redis_models import SessionUser, UserSessionRedis
from .exceptions import AuthenticationError, ConflictError, DataAccessError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


class CredentialVerifier(Protocol):
    """
    Decides whether a candidate password belongs to a username, and encodes
    passwords for storage. Swapping the implementation changes how credentials
    are checked without touching the login and signup code.
    """
    async def verify(self, username: str, candidate: str) -> bool: ...

    def encode(self, password: str) -> str: ...


class PlaintextCredentialVerifier:
    """
    Compares the candidate with the stored value as-is.

    The stored value is NOT hashed even though the column is called
    password_hash. Replace this class with a hashing verifier before exposing
    the application to anyone but trusted volunteers.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def verify(self, username: str, candidate: str) -> bool:
        user = await self.db_client.get_user_by_username(username)
        return user is not None and user.password_hash == candidate

    def encode(self, password: str) -> str:
        return password


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Creates a signed JWT carrying ``data`` that expires after ``expires_delta``."""
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not set; cannot sign access tokens.")
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


class AuthService:
    """
    Signup, login and logout. A login creates a session in Redis and a token
    pointing at it; logout deletes the session, which invalidates the token.
    """
    def __init__(self, redis_client: RedisClient, db_client: AsyncPostgresClient,
                 verifier: Optional[CredentialVerifier] = None, session_ttl: int = None):
        self.redis_client = redis_client
        self.db_client = db_client
        self.verifier = verifier or PlaintextCredentialVerifier(db_client)
        self.session_ttl = settings.SESSION_TTL_SECONDS if session_ttl is None else session_ttl
        if self.session_ttl <= 0:
            raise ValueError("session_ttl must be a positive number of seconds.")

    async def signup(self, username: str, password: str, sabha_name: str, karyakar_number: str) -> SessionUser:
        try:
            if await self.db_client.get_user_by_username(username):
                raise ConflictError("Username already exists")

            user = User(
                username=username,
                password_hash=self.verifier.encode(password),
                sabha_name=sabha_name,
                karyakar_number=karyakar_number,
            )
            created = await self.db_client.add_user(user)
            logger.info(f"Account '{username}' created.")
            return SessionUser(**created.model_dump())
        except ConflictError:
            logger.warning(f"Signup refused, username '{username}' is taken.")
            raise
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Signup refused, username '{username}' was taken concurrently.")
            raise ConflictError("Username already exists") from e
        except Exception as e:
            logger.error(f"Error while creating account '{username}'.", exc_info=True)
            raise DataAccessError("Signup failed") from e

    async def login(self, username: str, password: str):
        """Returns (access_token, session) or raises AuthenticationError."""
        logger.info(f"Login attempt for user '{username}'.")
        try:
            if not await self.verifier.verify(username, password):
                raise AuthenticationError(INVALID_CREDENTIALS)
            user = await self.db_client.get_user_by_username(username)
            if user is None:
                raise AuthenticationError(INVALID_CREDENTIALS)

            now = datetime.now(timezone.utc)
            session = UserSessionRedis(
                user_data=SessionUser(**user.model_dump()),
                session_id=uuid4(),
                session_start_time=now,
                session_end_time=now + timedelta(seconds=self.session_ttl),
            )
            await self.redis_client.save_user_session(session, ttl=self.session_ttl)
        except AuthenticationError:
            logger.warning(f"Authentication failed for user '{username}'.")
            raise
        except Exception as e:
            logger.error(f"Unexpected error during login of '{username}'.", exc_info=True)
            raise DataAccessError("Login failed") from e

        token = create_access_token({"sub": username, "sid": str(session.session_id)}, timedelta(seconds=self.session_ttl))
        logger.info(f"User '{username}' logged in successfully.")
        return token, session

    async def logout(self, username: str):
        try:
            await self.redis_client.delete_user_session(username)
            await self.redis_client.delete_attendance_draft(username)
            logger.info(f"Session of '{username}' deleted.")
        except Exception as e:
            logger.error(f"Error during logout of '{username}'.", exc_info=True)
            raise DataAccessError("An error occurred during logout.") from e

    async def get_session(self, username: str) -> Optional[UserSessionRedis]:
        return await self.redis_client.get_user_session(username)
