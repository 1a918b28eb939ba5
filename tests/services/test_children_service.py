import uuid
from unittest.mock import AsyncMock

import asyncpg
import pytest
import pytest_asyncio

from app.backend.models.db_models import Child
from app.backend.services.children_service import ChildrenService, next_registration_id
from app.backend.services.exceptions import ConflictError, DataAccessError, NotFoundError

NEW_KID = {
    "full_name": "Diya Joshi",
    "standard": 4,
    "age": 9,
    "school_name": "Green Valley",
    "father_phone": "9876543210",
    "mother_phone": "9123456780",
    "address": None,
}


# --- Test Fixtures ---

@pytest_asyncio.fixture
async def service_instance():
    """Creates a ChildrenService with a mocked database client."""
    mock_db_client = AsyncMock()
    service = ChildrenService(db_client=mock_db_client, registration_prefix="BS")
    return service, mock_db_client


def echo_child(child: Child) -> Child:
    return child


# --- Test Scenarios ---

def test_next_registration_id_follows_highest_suffix():
    assert next_registration_id([], "BS") == "BS-001"
    assert next_registration_id(["BS-001", "BS-009", "BS-002"], "BS") == "BS-010"
    assert next_registration_id(["legacy", "X-1200"], "BS") == "BS-1201"


@pytest.mark.asyncio
class TestChildrenService:

    async def test_search_filters_but_reports_full_total(self, service_instance, roster):
        service, mock_db_client = service_instance
        mock_db_client.list_children.return_value = roster

        result = await service.search_children(search="patel")

        assert [child.full_name for child in result["children"]] == ["Aarav Patel"]
        assert result["total"] == 3
        assert result["schools"] == ["Sunrise School", "Green Valley"]

    async def test_list_failure_raises_data_access_error(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.list_children.side_effect = OSError("connection refused")

        with pytest.raises(DataAccessError):
            await service.list_children()

    async def test_get_missing_child_raises_not_found(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.get_child.return_value = None

        with pytest.raises(NotFoundError):
            await service.get_child(uuid.uuid4())

    async def test_register_generates_registration_id(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.get_registration_ids.return_value = ["BS-001", "BS-002"]
        mock_db_client.add_child.side_effect = echo_child

        created = await service.register_child(dict(NEW_KID))

        assert created.registration_id == "BS-003"
        assert created.full_name == "Diya Joshi"
        assert isinstance(created.id, uuid.UUID)

    async def test_register_keeps_given_registration_id(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.add_child.side_effect = echo_child

        created = await service.register_child({**NEW_KID, "registration_id": "BS-777"})

        assert created.registration_id == "BS-777"
        mock_db_client.get_registration_ids.assert_not_called()

    async def test_register_duplicate_code_raises_conflict(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.add_child.side_effect = asyncpg.UniqueViolationError("duplicate key value")

        with pytest.raises(ConflictError, match="BS-001"):
            await service.register_child({**NEW_KID, "registration_id": "BS-001"})

    async def test_update_blank_address_is_stored_as_none(self, service_instance, roster):
        service, mock_db_client = service_instance
        child = roster[0]
        mock_db_client.update_child.return_value = child

        await service.update_child(child.id, {"address": "", "standard": 4})

        mock_db_client.update_child.assert_called_once_with(child.id, {"address": None, "standard": 4})

    async def test_update_missing_child_raises_not_found(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.update_child.return_value = None

        with pytest.raises(NotFoundError):
            await service.update_child(uuid.uuid4(), {"full_name": "Nobody"})

    async def test_delete_child(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.delete_child.return_value = "DELETE 1"
        child_id = uuid.uuid4()

        await service.delete_child(child_id)

        mock_db_client.delete_child.assert_called_once_with(child_id)
        # Attendance rows of the kid are left alone.
        mock_db_client.delete_attendance_by_date.assert_not_called()

    async def test_delete_missing_child_raises_not_found(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.delete_child.return_value = "DELETE 0"

        with pytest.raises(NotFoundError):
            await service.delete_child(uuid.uuid4())
