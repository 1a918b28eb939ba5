import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, ANY

import jwt
import pytest
import pytest_asyncio

from app.backend.config.config import settings
from app.backend.models.db_models import User
from app.backend.services.auth_service import AuthService, PlaintextCredentialVerifier, create_access_token
from app.backend.services.exceptions import AuthenticationError, ConflictError, DataAccessError


# --- Test Fixtures ---

@pytest.fixture
def stored_user() -> User:
    return User(id=uuid.uuid4(), username="karyakar1", password_hash="secret", sabha_name="Maninagar", karyakar_number="K-12")


@pytest_asyncio.fixture
async def service_instance():
    """Creates an AuthService with mocked clients for each test."""
    mock_redis_client = AsyncMock()
    mock_db_client = AsyncMock()
    service = AuthService(redis_client=mock_redis_client, db_client=mock_db_client, session_ttl=600)
    return service, mock_redis_client, mock_db_client


class ReversingVerifier:
    """Stores passwords reversed; stands in for a real hashing verifier."""

    def __init__(self, users):
        self.users = users

    async def verify(self, username, candidate):
        return self.users.get(username) == candidate[::-1]

    def encode(self, password):
        return password[::-1]


# --- Test Scenarios ---

@pytest.mark.asyncio
class TestAuthService:

    async def test_login_success_creates_session_and_token(self, service_instance, stored_user):
        service, mock_redis_client, mock_db_client = service_instance
        mock_db_client.get_user_by_username.return_value = stored_user

        token, session = await service.login("karyakar1", "secret")

        mock_redis_client.save_user_session.assert_called_once_with(session, ttl=600)
        assert session.user_data.username == "karyakar1"
        assert session.user_data.sabha_name == "Maninagar"
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        assert payload["sub"] == "karyakar1"
        assert payload["sid"] == str(session.session_id)

    async def test_login_wrong_password(self, service_instance, stored_user):
        service, mock_redis_client, mock_db_client = service_instance
        mock_db_client.get_user_by_username.return_value = stored_user

        with pytest.raises(AuthenticationError, match="Invalid username or password"):
            await service.login("karyakar1", "guess")

        mock_redis_client.save_user_session.assert_not_called()

    async def test_login_unknown_user_has_same_message(self, service_instance):
        service, _, mock_db_client = service_instance
        mock_db_client.get_user_by_username.return_value = None

        with pytest.raises(AuthenticationError, match="Invalid username or password"):
            await service.login("ghost", "secret")

    async def test_login_store_failure_raises_data_access_error(self, service_instance):
        service, _, mock_db_client = service_instance
        mock_db_client.get_user_by_username.side_effect = OSError("connection refused")

        with pytest.raises(DataAccessError):
            await service.login("karyakar1", "secret")

    async def test_signup_creates_user(self, service_instance, stored_user):
        service, _, mock_db_client = service_instance
        mock_db_client.get_user_by_username.return_value = None
        mock_db_client.add_user.return_value = stored_user

        created = await service.signup("karyakar1", "secret", "Maninagar", "K-12")

        mock_db_client.add_user.assert_called_once_with(ANY)
        new_user = mock_db_client.add_user.call_args[0][0]
        assert new_user.password_hash == "secret"
        assert created.username == "karyakar1"
        assert not hasattr(created, "password_hash")

    async def test_signup_taken_username_raises_conflict(self, service_instance, stored_user):
        service, _, mock_db_client = service_instance
        mock_db_client.get_user_by_username.return_value = stored_user

        with pytest.raises(ConflictError, match="Username already exists"):
            await service.signup("karyakar1", "other", "Maninagar", "K-99")

        mock_db_client.add_user.assert_not_called()

    async def test_logout_drops_session_and_draft(self, service_instance):
        service, mock_redis_client, _ = service_instance

        await service.logout("karyakar1")

        mock_redis_client.delete_user_session.assert_called_once_with("karyakar1")
        mock_redis_client.delete_attendance_draft.assert_called_once_with("karyakar1")

    async def test_swapped_verifier_is_used_for_signup_and_login(self, stored_user):
        mock_redis_client = AsyncMock()
        mock_db_client = AsyncMock()
        verifier = ReversingVerifier({"karyakar1": "terces"})
        service = AuthService(redis_client=mock_redis_client, db_client=mock_db_client, verifier=verifier)
        mock_db_client.get_user_by_username.return_value = None
        mock_db_client.add_user.return_value = stored_user

        await service.signup("karyakar1", "secret", "Maninagar", "K-12")
        assert mock_db_client.add_user.call_args[0][0].password_hash == "terces"

        mock_db_client.get_user_by_username.return_value = stored_user
        token, _ = await service.login("karyakar1", "secret")
        assert token

    async def test_plaintext_verifier(self, stored_user):
        mock_db_client = AsyncMock()
        mock_db_client.get_user_by_username.return_value = stored_user
        verifier = PlaintextCredentialVerifier(mock_db_client)

        assert await verifier.verify("karyakar1", "secret") is True
        assert await verifier.verify("karyakar1", "Secret") is False
        assert verifier.encode("secret") == "secret"


def test_session_ttl_defaults_only_when_not_given():
    assert AuthService(redis_client=AsyncMock(), db_client=AsyncMock()).session_ttl == settings.SESSION_TTL_SECONDS
    with pytest.raises(ValueError):
        AuthService(redis_client=AsyncMock(), db_client=AsyncMock(), session_ttl=0)


def test_tokens_are_not_signed_without_a_secret_key(monkeypatch):
    monkeypatch.setattr(settings, "SECRET_KEY", None)

    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        create_access_token({"sub": "karyakar1"}, timedelta(minutes=5))
