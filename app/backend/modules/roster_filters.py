# app/backend/modules/roster_filters.py

import math
from typing import Iterable, List, Optional, Sequence

from ..models.db_models import AttendanceStatus, Child


def unique_schools(roster: Iterable[Child]) -> List[str]:
    """Returns the distinct school names of the roster in first-seen order."""
    seen = {}
    for child in roster:
        seen.setdefault(child.school_name, None)
    return list(seen)


def filter_children(
    roster: Sequence[Child],
    search: Optional[str] = None,
    standard: Optional[int] = None,
    school: Optional[str] = None,
) -> List[Child]:
    """
    Narrows the roster the way the kids list screen does.

    Args:
        roster: The full roster, already in display order.
        search: Case-insensitive substring of the full name. Empty or None matches everyone.
        standard: Exact standard, None for all standards.
        school: Exact school name, None for all schools.

    Returns:
        The matching children, roster order preserved.
    """
    needle = (search or "").lower()
    return [
        child for child in roster
        if needle in child.full_name.lower()
        and (standard is None or child.standard == standard)
        and (school is None or child.school_name == school)
    ]


def present_percentage(present: int, total: int) -> int:
    # Halves round up (12.5 -> 13), not to the nearest even number.
    return math.floor(present * 100 / total + 0.5) if total > 0 else 0


def count_statuses(statuses: Iterable[AttendanceStatus]):
    present = absent = 0
    for status in statuses:
        if status == AttendanceStatus.PRESENT:
            present += 1
        elif status == AttendanceStatus.ABSENT:
            absent += 1
    return present, absent
