import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel

# --- Required clients and models ---
from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..models.db_models import AttendanceHistoryRow, AttendanceMark, AttendanceStatus, Child
from ..models.redis_models import AttendanceSnapshotRedis
from ..modules.attendance_draft import AttendanceDraft, CompletenessReport, evaluate_completeness
from ..modules.roster_filters import count_statuses, present_percentage
from .children_service import ChildrenService
from .exceptions import ConflictError, DataAccessError, IncompleteAttendanceError, NotFoundError

logger = logging.getLogger(__name__)


# --- Result models for API responses ---

class DraftRow(BaseModel):
    kid_id: UUID
    registration_id: str
    full_name: str
    standard: int
    status: Optional[AttendanceStatus] = None


class DraftView(BaseModel):
    """The draft of a date as the mark-attendance screen shows it."""
    attendance_date: date
    has_existing_attendance: bool
    total: int
    marked_count: int
    present_count: int
    absent_count: int
    remaining: int
    is_complete: bool
    rows: List[DraftRow]


class CommitResult(BaseModel):
    attendance_date: date
    record_count: int
    present_count: int
    absent_count: int
    updated: bool


class AttendanceHistory(BaseModel):
    attendance_date: date
    records: List[AttendanceHistoryRow]
    present: int
    absent: int
    total: int
    present_percentage: int


class DashboardStats(BaseModel):
    attendance_date: date
    total_children: int
    present: int
    absent: int
    total: int
    attendance_rate: Optional[int] = None


class AttendanceService:
    """
    Service layer for recording a date's attendance once and re-editing it later.

    Reads of a date's snapshot go through a Redis cache; a commit replaces the
    date's rows in PostgreSQL and then drops the cached snapshot.
    """
    def __init__(self, redis_client: RedisClient, db_client: AsyncPostgresClient,
                 snapshot_ttl: int = None, draft_ttl: int = None):
        self.redis_client = redis_client
        self.db_client = db_client
        self.children = ChildrenService(db_client)
        # A snapshot TTL of 0 turns the snapshot cache off.
        self.snapshot_ttl = settings.SNAPSHOT_CACHE_TTL_SECONDS if snapshot_ttl is None else snapshot_ttl
        self.draft_ttl = settings.DRAFT_TTL_SECONDS if draft_ttl is None else draft_ttl
        if self.draft_ttl <= 0:
            raise ValueError("draft_ttl must be a positive number of seconds.")

    # ===== Snapshot =====

    async def load_attendance(self, attendance_date: date) -> List[AttendanceMark]:
        """
        Returns the persisted (kid, status) pairs of exactly this calendar day, unordered.

        The date's generation is read before the database. The fresh snapshot is
        cached only if no commit bumped that generation in between.
        """
        if self.snapshot_ttl <= 0:
            return await self._read_attendance(attendance_date)

        generation = None
        try:
            cached = await self.redis_client.get_attendance_snapshot(attendance_date)
            if cached is not None:
                return cached.marks
            generation = await self.redis_client.get_snapshot_generation(attendance_date)
        except Exception:
            logger.warning(f"Snapshot cache read failed for {attendance_date}, falling back to the database.", exc_info=True)

        marks = await self._read_attendance(attendance_date)
        if generation is None:
            return marks
        try:
            snapshot = AttendanceSnapshotRedis(attendance_date=attendance_date, marks=marks, cached_at=datetime.now(timezone.utc))
            stored = await self.redis_client.save_attendance_snapshot(snapshot, ttl=self.snapshot_ttl, generation=generation)
            if not stored:
                logger.info(f"Attendance of {attendance_date} changed while it was read; snapshot not cached.")
        except Exception:
            logger.warning(f"Could not cache the snapshot of {attendance_date}.", exc_info=True)
        return marks

    async def _read_attendance(self, attendance_date: date) -> List[AttendanceMark]:
        try:
            records = await self.db_client.get_attendance_by_date(attendance_date)
        except Exception as e:
            logger.error(f"Database error while loading attendance for {attendance_date}.", exc_info=True)
            raise DataAccessError("Could not load attendance for the selected date.") from e
        return [AttendanceMark(kid_id=rec.kid_id, status=rec.status) for rec in records]

    async def _invalidate_snapshot(self, attendance_date: date):
        try:
            await self.redis_client.invalidate_attendance_snapshot(attendance_date)
        except Exception:
            # The entry still expires with its TTL.
            logger.error(f"Could not invalidate the cached snapshot of {attendance_date}.", exc_info=True)

    # ===== Commit =====

    async def commit(self, attendance_date: date, draft: AttendanceDraft, roster: Sequence[Child]) -> CommitResult:
        """
        Replaces the date's attendance with the draft.

        Every roster child must be marked, otherwise IncompleteAttendanceError is
        raised before anything is written. The date's rows are deleted and one
        record per roster child is inserted as a single batch, in one
        transaction that holds the date's lock. ``updated`` is True when the
        delete removed an earlier snapshot.
        """
        report = evaluate_completeness(roster, draft)
        if not report.is_complete:
            logger.warning(f"Commit for {attendance_date} refused: {report.remaining} of {report.total} kids unmarked.")
            raise IncompleteAttendanceError(report.remaining)

        records = draft.build_records(roster, attendance_date)
        try:
            replaced = await self.db_client.replace_attendance_for_date(attendance_date, records)
        except Exception as e:
            logger.error(f"Error while saving attendance for {attendance_date}.", exc_info=True)
            raise DataAccessError("Failed to save attendance.") from e

        await self._invalidate_snapshot(attendance_date)
        logger.info(f"Attendance for {attendance_date} {'updated' if replaced else 'saved'}: {len(records)} records.")
        return CommitResult(
            attendance_date=attendance_date,
            record_count=len(records),
            present_count=report.present_count,
            absent_count=report.absent_count,
            updated=replaced > 0,
        )

    async def commit_marks(self, attendance_date: date, marks: Dict[UUID, AttendanceStatus]) -> CommitResult:
        """Commits a complete set of marks sent in one request, without a stored draft."""
        draft = AttendanceDraft.for_date(attendance_date)
        for kid_id, status in marks.items():
            draft.mark(kid_id, status)
        roster = await self.children.list_children()
        return await self.commit(attendance_date, draft, roster)

    # ===== Per-session draft =====

    async def _get_draft(self, username: str) -> AttendanceDraft:
        try:
            draft = await self.redis_client.get_attendance_draft(username)
        except Exception as e:
            logger.error(f"Error reading the attendance draft of '{username}'.", exc_info=True)
            raise DataAccessError("Could not load the attendance draft.") from e
        if draft is None:
            raise NotFoundError("No attendance date selected.")
        return draft

    async def _save_draft(self, username: str, draft: AttendanceDraft):
        try:
            await self.redis_client.save_attendance_draft(username, draft, ttl=self.draft_ttl)
        except Exception as e:
            logger.error(f"Error saving the attendance draft of '{username}'.", exc_info=True)
            raise DataAccessError("Could not save the attendance draft.") from e

    async def select_draft_date(self, username: str, attendance_date: date) -> DraftView:
        """
        Points the user's draft at a new date and seeds it from that date's snapshot.

        Unsaved marks of the previous date are discarded. If another selection
        lands while the snapshot is loading, this one's snapshot is ignored.
        """
        draft = AttendanceDraft.for_date(attendance_date)
        selection_id = draft.selection_id
        await self._save_draft(username, draft)

        roster, snapshot = await asyncio.gather(
            self.children.list_children(),
            self.load_attendance(attendance_date),
        )

        seed_marks = {mark.kid_id: mark.status for mark in snapshot}
        try:
            seeded = await self.redis_client.replace_draft_marks(username, selection_id, seed_marks, ttl=self.draft_ttl)
        except Exception as e:
            logger.error(f"Error seeding the attendance draft of '{username}'.", exc_info=True)
            raise DataAccessError("Could not save the attendance draft.") from e

        if seeded:
            draft.seed(selection_id, snapshot)
            return self._build_view(draft, roster, snapshot)

        logger.info(f"Selection of {attendance_date} by '{username}' was superseded, snapshot discarded.")
        return await self.get_draft_view(username)

    async def get_draft_view(self, username: str) -> DraftView:
        draft = await self._get_draft(username)
        roster, snapshot = await asyncio.gather(
            self.children.list_children(),
            self.load_attendance(draft.attendance_date),
        )
        return self._build_view(draft, roster, snapshot)

    async def mark_in_draft(self, username: str, kid_id: UUID, status: AttendanceStatus) -> DraftView:
        """
        Sets one kid's mark in the user's draft.

        Only that kid's mark is written, so concurrent marks of other kids are
        kept. Raises ConflictError if the selected date changed meanwhile.
        """
        draft = await self._get_draft(username)
        roster = await self.children.list_children()
        if not any(child.id == kid_id for child in roster):
            raise NotFoundError(f"Kid ({kid_id}) is not on the roster.")

        try:
            applied = await self.redis_client.set_draft_mark(
                username, draft.selection_id, kid_id, AttendanceStatus(status), ttl=self.draft_ttl,
            )
        except Exception as e:
            logger.error(f"Error saving a mark in the attendance draft of '{username}'.", exc_info=True)
            raise DataAccessError("Could not save the attendance draft.") from e
        if not applied:
            logger.info(f"Mark of kid {kid_id} by '{username}' dropped: the selected date changed.")
            raise ConflictError("The selected date changed; mark the kid again.")
        return await self.get_draft_view(username)

    async def commit_draft(self, username: str) -> CommitResult:
        draft = await self._get_draft(username)
        roster = await self.children.list_children()
        return await self.commit(draft.attendance_date, draft, roster)

    async def discard_draft(self, username: str):
        try:
            await self.redis_client.delete_attendance_draft(username)
        except Exception as e:
            logger.error(f"Error deleting the attendance draft of '{username}'.", exc_info=True)
            raise DataAccessError("Could not discard the attendance draft.") from e

    @staticmethod
    def _build_view(draft: AttendanceDraft, roster: Sequence[Child], snapshot: Sequence[AttendanceMark]) -> DraftView:
        report: CompletenessReport = evaluate_completeness(roster, draft)
        rows = [
            DraftRow(
                kid_id=child.id, registration_id=child.registration_id, full_name=child.full_name,
                standard=child.standard, status=draft.status_of(child.id),
            )
            for child in roster
        ]
        return DraftView(
            attendance_date=draft.attendance_date,
            has_existing_attendance=len(snapshot) > 0,
            total=report.total,
            marked_count=report.marked_count,
            present_count=report.present_count,
            absent_count=report.absent_count,
            remaining=report.remaining,
            is_complete=report.is_complete,
            rows=rows,
        )

    # ===== History & dashboard =====

    async def get_history(self, attendance_date: date) -> AttendanceHistory:
        try:
            rows = await self.db_client.get_attendance_history(attendance_date)
        except Exception as e:
            logger.error(f"Database error while loading attendance history for {attendance_date}.", exc_info=True)
            raise DataAccessError("Could not load attendance history.") from e

        present, absent = count_statuses(row.status for row in rows)
        return AttendanceHistory(
            attendance_date=attendance_date,
            records=rows,
            present=present,
            absent=absent,
            total=len(rows),
            present_percentage=present_percentage(present, len(rows)),
        )

    async def get_dashboard(self, today: date) -> DashboardStats:
        try:
            total_children, records = await asyncio.gather(
                self.db_client.count_children(),
                self.db_client.get_attendance_by_date(today),
            )
        except Exception as e:
            logger.error("Database error while loading dashboard statistics.", exc_info=True)
            raise DataAccessError("Could not load dashboard statistics.") from e

        present, absent = count_statuses(rec.status for rec in records)
        total = present + absent
        return DashboardStats(
            attendance_date=today,
            total_children=total_children or 0,
            present=present,
            absent=absent,
            total=total,
            attendance_rate=present_percentage(present, total) if total else None,
        )
