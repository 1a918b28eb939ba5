# tests/conftest.py
import asyncio
import os
import sys
import uuid
from datetime import datetime, timezone

import pytest

# Settings are read at import time, so these must be in place before the app is imported.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

from app.backend.models.db_models import Child

# Windows asyncio fix for pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def build_child(registration_id: str, full_name: str = None, standard: int = 3, school_name: str = "Sunrise School") -> Child:
    """Creates a Child with plausible defaults for tests."""
    return Child(
        id=uuid.uuid4(),
        registration_id=registration_id,
        full_name=full_name or f"Kid {registration_id}",
        standard=standard,
        age=standard + 5,
        school_name=school_name,
        father_phone="9876543210",
        mother_phone="9123456780",
        address=None,
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def roster():
    """Three kids A, B, C in registration order."""
    return [
        build_child("BS-001", "Aarav Patel", standard=2, school_name="Sunrise School"),
        build_child("BS-002", "Bhavya Shah", standard=5, school_name="Green Valley"),
        build_child("BS-003", "Chirag Mehta", standard=5, school_name="Sunrise School"),
    ]
