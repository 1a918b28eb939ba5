# app/backend/modules/attendance_draft.py

from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ..models.db_models import AttendanceMark, AttendanceRecord, AttendanceStatus, Child


class AttendanceDraft(BaseModel):
    """
    The unsaved attendance of the currently selected date.

    Every date selection gets a fresh ``selection_id``; a snapshot fetched for
    an older selection is refused by ``seed`` so a slow response can never
    overwrite the draft of a date the user has already moved away from.
    A mark can be overwritten but never removed again.
    """
    attendance_date: date
    selection_id: UUID = Field(default_factory=uuid4)
    marks: Dict[UUID, AttendanceStatus] = Field(default_factory=dict)

    @classmethod
    def for_date(cls, attendance_date: date) -> "AttendanceDraft":
        return cls(attendance_date=attendance_date)

    def select_date(self, attendance_date: date) -> UUID:
        """Starts a new selection. Unsaved marks of the previous date are dropped."""
        self.attendance_date = attendance_date
        self.selection_id = uuid4()
        self.marks = {}
        return self.selection_id

    def seed(self, selection_id: UUID, snapshot: Iterable[AttendanceMark]) -> bool:
        """
        Replaces the marks with the persisted snapshot of the selected date.

        Returns False, leaving the draft untouched, when ``selection_id`` belongs
        to a superseded selection.
        """
        if selection_id != self.selection_id:
            return False
        self.marks = {mark.kid_id: mark.status for mark in snapshot}
        return True

    def mark(self, kid_id: UUID, status: AttendanceStatus) -> None:
        self.marks[kid_id] = AttendanceStatus(status)

    def status_of(self, kid_id: UUID) -> Optional[AttendanceStatus]:
        return self.marks.get(kid_id)

    def build_records(self, roster: Sequence[Child], attendance_date: Optional[date] = None) -> List[AttendanceRecord]:
        """One record per roster child. Callers must check completeness first."""
        target_date = attendance_date or self.attendance_date
        return [
            AttendanceRecord(kid_id=child.id, attendance_date=target_date, status=self.marks[child.id])
            for child in roster
        ]


class CompletenessReport(BaseModel):
    total: int
    marked_count: int
    present_count: int
    absent_count: int

    @property
    def remaining(self) -> int:
        return self.total - self.marked_count

    @property
    def is_complete(self) -> bool:
        return self.remaining == 0


def evaluate_completeness(roster: Sequence[Child], draft: AttendanceDraft) -> CompletenessReport:
    """
    Counts how much of the roster is marked in the draft.

    Only roster members are counted, so a mark left behind for a child that
    has since been deleted neither completes the roster nor shows up in the
    present/absent totals. An empty roster is always complete.
    """
    present_count = 0
    absent_count = 0
    for child in roster:
        status = draft.status_of(child.id)
        if status == AttendanceStatus.PRESENT:
            present_count += 1
        elif status == AttendanceStatus.ABSENT:
            absent_count += 1

    return CompletenessReport(
        total=len(roster),
        marked_count=present_count + absent_count,
        present_count=present_count,
        absent_count=absent_count,
    )
