import logging
from datetime import date
from typing import Dict, Optional
from uuid import UUID
import redis.asyncio as redis
from redis.exceptions import WatchError

from ..models.db_models import AttendanceStatus
from ..models.redis_models import UserSessionRedis, AttendanceSnapshotRedis
from ..modules.attendance_draft import AttendanceDraft

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client that keeps sessions, per-user attendance drafts and the attendance snapshot cache.

    A draft is two keys: ``attendance_draft:{username}`` holds the selected
    date and selection id, ``attendance_draft:{username}:marks`` is a hash of
    kid id -> status. Marks are written field by field, so concurrent marks of
    different kids never overwrite each other.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    # ===== User Session Management =====

    async def save_user_session(self, session: UserSessionRedis, ttl: int):
        """Stores the user's session with a TTL."""
        key = f"users:{session.user_data.username}"
        await self._redis.set(key, session.model_dump_json(), ex=ttl)

    async def get_user_session(self, username: str) -> Optional[UserSessionRedis]:
        key = f"users:{username}"
        session_json = await self._redis.get(key)
        return UserSessionRedis.model_validate_json(session_json) if session_json else None

    async def delete_user_session(self, username: str) -> int:
        key = f"users:{username}"
        return await self._redis.delete(key)

    # ===== Attendance Drafts =====

    async def save_attendance_draft(self, username: str, draft: AttendanceDraft, ttl: int):
        """Replaces the user's draft (date, selection and marks) unconditionally."""
        header_key, marks_key = _draft_keys(username)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(header_key, draft.model_dump_json(exclude={"marks"}), ex=ttl)
            pipe.delete(marks_key)
            if draft.marks:
                pipe.hset(marks_key, mapping=_marks_mapping(draft.marks))
                pipe.expire(marks_key, ttl)
            await pipe.execute()

    async def get_attendance_draft(self, username: str) -> Optional[AttendanceDraft]:
        header_key, marks_key = _draft_keys(username)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.get(header_key)
            pipe.hgetall(marks_key)
            header_json, marks = await pipe.execute()
        if not header_json:
            return None
        draft = AttendanceDraft.model_validate_json(header_json)
        draft.marks = {UUID(kid_id): AttendanceStatus(status) for kid_id, status in marks.items()}
        return draft

    async def replace_draft_marks(self, username: str, selection_id: UUID, marks: Dict[UUID, AttendanceStatus], ttl: int) -> bool:
        """
        Replaces all marks of the draft, but only while ``selection_id`` is
        still the user's current selection. Returns False otherwise.
        """
        def queue(pipe, marks_key):
            pipe.delete(marks_key)
            if marks:
                pipe.hset(marks_key, mapping=_marks_mapping(marks))
                pipe.expire(marks_key, ttl)

        return await self._update_if_selected(username, selection_id, queue)

    async def set_draft_mark(self, username: str, selection_id: UUID, kid_id: UUID, status: AttendanceStatus, ttl: int) -> bool:
        """
        Sets one kid's mark, but only while ``selection_id`` is still the
        user's current selection. Returns False otherwise.
        """
        def queue(pipe, marks_key):
            pipe.hset(marks_key, str(kid_id), AttendanceStatus(status).value)
            pipe.expire(marks_key, ttl)

        return await self._update_if_selected(username, selection_id, queue)

    async def _update_if_selected(self, username: str, selection_id: UUID, queue) -> bool:
        header_key, marks_key = _draft_keys(username)
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(header_key)
                    header_json = await pipe.get(header_key)
                    if not header_json or AttendanceDraft.model_validate_json(header_json).selection_id != selection_id:
                        return False
                    pipe.multi()
                    queue(pipe, marks_key)
                    await pipe.execute()
                    return True
                except WatchError:
                    # The header changed under us; check the selection again.
                    continue

    async def delete_attendance_draft(self, username: str) -> int:
        return await self._redis.delete(*_draft_keys(username))

    # ===== Attendance Snapshot Cache =====

    async def get_snapshot_generation(self, attendance_date: date) -> int:
        """Counter bumped on every invalidation of the date's snapshot."""
        value = await self._redis.get(_generation_key(attendance_date))
        return int(value or 0)

    async def save_attendance_snapshot(self, snapshot: AttendanceSnapshotRedis, ttl: int, generation: int) -> bool:
        """
        Caches the snapshot only if the date was not invalidated since
        ``generation`` was read. Returns whether the snapshot was stored.
        """
        generation_key = _generation_key(snapshot.attendance_date)
        key = f"attendance_snapshot:{snapshot.attendance_date.isoformat()}"
        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(generation_key)
                if int(await pipe.get(generation_key) or 0) != generation:
                    return False
                pipe.multi()
                pipe.set(key, snapshot.model_dump_json(), ex=ttl)
                await pipe.execute()
                return True
            except WatchError:
                return False

    async def get_attendance_snapshot(self, attendance_date: date) -> Optional[AttendanceSnapshotRedis]:
        key = f"attendance_snapshot:{attendance_date.isoformat()}"
        snapshot_json = await self._redis.get(key)
        return AttendanceSnapshotRedis.model_validate_json(snapshot_json) if snapshot_json else None

    async def invalidate_attendance_snapshot(self, attendance_date: date):
        """Drops the cached snapshot and bumps the date's generation in one transaction."""
        key = f"attendance_snapshot:{attendance_date.isoformat()}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(_generation_key(attendance_date))
            pipe.delete(key)
            await pipe.execute()


def _draft_keys(username: str):
    header_key = f"attendance_draft:{username}"
    return header_key, f"{header_key}:marks"


def _generation_key(attendance_date: date) -> str:
    return f"attendance_snapshot_generation:{attendance_date.isoformat()}"


def _marks_mapping(marks: Dict[UUID, AttendanceStatus]) -> Dict[str, str]:
    return {str(kid_id): AttendanceStatus(status).value for kid_id, status in marks.items()}
