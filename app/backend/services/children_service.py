import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID, uuid4

import asyncpg

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Child
from ..modules.roster_filters import filter_children, unique_schools
from .exceptions import ConflictError, DataAccessError, NotFoundError

logger = logging.getLogger(__name__)

_TRAILING_NUMBER = re.compile(r"(\d+)$")


def next_registration_id(existing: Iterable[str], prefix: str) -> str:
    """
    Generates the code for the next registration: one more than the largest
    numeric suffix already in use, zero padded so text order matches number order.
    """
    highest = 0
    for code in existing:
        match = _TRAILING_NUMBER.search(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:03d}"


class ChildrenService:
    """
    Service layer for the roster: registration, listing, editing and deleting children.
    """
    def __init__(self, db_client: AsyncPostgresClient, registration_prefix: str = None):
        self.db_client = db_client
        self.registration_prefix = registration_prefix or settings.REGISTRATION_ID_PREFIX

    async def list_children(self) -> List[Child]:
        """The roster, ascending by registration code."""
        try:
            return await self.db_client.list_children()
        except Exception as e:
            logger.error("Database error while fetching the roster.", exc_info=True)
            raise DataAccessError("Could not load the list of kids.") from e

    async def search_children(self, search: Optional[str] = None, standard: Optional[int] = None, school: Optional[str] = None) -> Dict[str, Any]:
        roster = await self.list_children()
        return {
            "children": filter_children(roster, search=search, standard=standard, school=school),
            "total": len(roster),
            "schools": unique_schools(roster),
        }

    async def list_schools(self) -> List[str]:
        return unique_schools(await self.list_children())

    async def get_child(self, child_id: UUID) -> Child:
        try:
            child = await self.db_client.get_child(child_id)
        except Exception as e:
            logger.error(f"Database error while fetching kid {child_id}.", exc_info=True)
            raise DataAccessError("Could not load the kid.") from e
        if not child:
            raise NotFoundError(f"Kid ({child_id}) not found.")
        return child

    async def register_child(self, fields: Dict[str, Any]) -> Child:
        try:
            registration_id = fields.get("registration_id")
            if not registration_id:
                registration_id = next_registration_id(await self.db_client.get_registration_ids(), self.registration_prefix)

            child = Child(**{**fields, "id": uuid4(), "registration_id": registration_id})
            created = await self.db_client.add_child(child)
            logger.info(f"Kid '{created.full_name}' registered as {created.registration_id}.")
            return created
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Registration code '{registration_id}' is already taken.")
            raise ConflictError(f"Registration ID {registration_id} already exists.") from e
        except Exception as e:
            logger.error("Database error while registering a kid.", exc_info=True)
            raise DataAccessError("Could not register the kid.") from e

    async def update_child(self, child_id: UUID, fields: Dict[str, Any]) -> Child:
        """Applies a partial edit. An empty address is stored as no address."""
        changes = dict(fields)
        if "address" in changes and not changes["address"]:
            changes["address"] = None
        try:
            updated = await self.db_client.update_child(child_id, changes)
        except Exception as e:
            logger.error(f"Database error while updating kid {child_id}.", exc_info=True)
            raise DataAccessError("Failed to update kid.") from e
        if not updated:
            raise NotFoundError(f"Kid ({child_id}) not found.")
        logger.info(f"Kid {child_id} updated: {sorted(changes)}")
        return updated

    async def delete_child(self, child_id: UUID) -> None:
        """Deletes a kid. Attendance rows of the kid stay in the database."""
        try:
            result_str = await self.db_client.delete_child(child_id)
        except Exception as e:
            logger.error(f"Database error while deleting kid {child_id}.", exc_info=True)
            raise DataAccessError("Failed to delete kid.") from e
        try:
            deleted = int(str(result_str).split()[-1])
        except (ValueError, IndexError):
            deleted = 0
        if not deleted:
            raise NotFoundError(f"Kid ({child_id}) not found.")
        logger.info(f"Kid {child_id} deleted.")
