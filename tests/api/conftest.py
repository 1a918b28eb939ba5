# tests/api/conftest.py
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.backend.main import app
from app.backend.api.dependencies import get_attendance_service, get_auth_service, get_children_service
from app.backend.models.redis_models import SessionUser, UserSessionRedis
from app.backend.services.attendance_service import AttendanceService
from app.backend.services.auth_service import AuthService, create_access_token
from app.backend.services.children_service import ChildrenService


@pytest.fixture
def session() -> UserSessionRedis:
    now = datetime.now(timezone.utc)
    return UserSessionRedis(
        user_data=SessionUser(id=uuid.uuid4(), username="karyakar1", sabha_name="Maninagar", karyakar_number="K-12"),
        session_id=uuid.uuid4(),
        session_start_time=now,
        session_end_time=now + timedelta(hours=1),
    )


@pytest.fixture
def mock_redis_client(session):
    """Redis mock with a working per-user draft store and an always-empty snapshot cache."""
    client = AsyncMock()
    drafts = {}

    async def save_draft(username, draft, ttl):
        drafts[username] = draft.model_copy(deep=True)

    async def get_draft(username):
        draft = drafts.get(username)
        return draft.model_copy(deep=True) if draft else None

    async def replace_marks(username, selection_id, marks, ttl):
        draft = drafts.get(username)
        if draft is None or draft.selection_id != selection_id:
            return False
        draft.marks = dict(marks)
        return True

    async def set_mark(username, selection_id, kid_id, status, ttl):
        draft = drafts.get(username)
        if draft is None or draft.selection_id != selection_id:
            return False
        draft.mark(kid_id, status)
        return True

    client.save_attendance_draft.side_effect = save_draft
    client.get_attendance_draft.side_effect = get_draft
    client.replace_draft_marks.side_effect = replace_marks
    client.set_draft_mark.side_effect = set_mark
    client.get_attendance_snapshot.return_value = None
    client.get_snapshot_generation.return_value = 0
    client.save_attendance_snapshot.return_value = True
    client.get_user_session.return_value = session
    return client


@pytest.fixture
def mock_db_client(roster):
    client = AsyncMock()
    client.list_children.return_value = roster
    client.get_attendance_by_date.return_value = []
    client.replace_attendance_for_date.return_value = 0
    return client


@pytest.fixture
def api_client(mock_redis_client, mock_db_client):
    """TestClient whose services run on the mocked clients; the lifespan (real pools) is not started."""
    app.dependency_overrides[get_auth_service] = lambda: AuthService(redis_client=mock_redis_client, db_client=mock_db_client)
    app.dependency_overrides[get_attendance_service] = lambda: AttendanceService(redis_client=mock_redis_client, db_client=mock_db_client)
    app.dependency_overrides[get_children_service] = lambda: ChildrenService(db_client=mock_db_client)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(session):
    token = create_access_token({"sub": session.user_data.username, "sid": str(session.session_id)}, timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}
