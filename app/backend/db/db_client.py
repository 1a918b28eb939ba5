import logging
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID
import asyncpg
from ..models.db_models import Child, AttendanceRecord, AttendanceHistoryRow, User

logger = logging.getLogger(__name__)

# Columns an edit is allowed to touch. id and registration_id are fixed at registration.
CHILD_UPDATABLE_COLUMNS = (
    "full_name", "standard", "age", "school_name", "father_phone", "mother_phone", "address",
)


class AsyncPostgresClient:
    """
    PostgreSQL client that runs every query against the kids, attendance and users tables.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def apply_schema(self, schema_sql: str):
        """Runs the schema script. Every statement in it is idempotent."""
        async with self._pool.acquire() as connection:
            await connection.execute(schema_sql)

    # ===== Children =====

    async def list_children(self) -> List[Child]:
        """Returns the full roster, ascending by registration code."""
        query = "SELECT * FROM kids ORDER BY registration_id ASC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [Child(**record) for record in records]

    async def get_child(self, child_id: UUID) -> Optional[Child]:
        query = "SELECT * FROM kids WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, child_id)
            return Child(**record) if record else None

    async def get_registration_ids(self) -> List[str]:
        query = "SELECT registration_id FROM kids;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [record["registration_id"] for record in records]

    async def count_children(self) -> int:
        query = "SELECT count(*) FROM kids;"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query)

    async def add_child(self, child: Child) -> Child:
        """Inserts a new child. A duplicate registration code raises asyncpg.UniqueViolationError."""
        query = """
            INSERT INTO kids (id, registration_id, full_name, standard, age, school_name, father_phone, mother_phone, address)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, child.id, child.registration_id, child.full_name, child.standard, child.age,
                child.school_name, child.father_phone, child.mother_phone, child.address
            )
            return Child(**record)

    async def update_child(self, child_id: UUID, fields: Dict[str, Any]) -> Optional[Child]:
        """
        Updates only the given columns of a child and returns the new row,
        or None when no child has this id.
        """
        columns = [column for column in CHILD_UPDATABLE_COLUMNS if column in fields]
        if not columns:
            return await self.get_child(child_id)

        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(columns, start=2))
        query = f"UPDATE kids SET {assignments} WHERE id = $1 RETURNING *;"
        values = [fields[column] for column in columns]
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, child_id, *values)
            return Child(**record) if record else None

    async def delete_child(self, child_id: UUID) -> str:
        """Deletes a child. Its attendance rows are left in place."""
        query = "DELETE FROM kids WHERE id = $1;"
        async with self._pool.acquire() as connection:
            return await connection.execute(query, child_id)

    # ===== Attendance =====

    async def get_attendance_by_date(self, attendance_date: date) -> List[AttendanceRecord]:
        query = "SELECT * FROM attendance WHERE attendance_date = $1;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, attendance_date)
            return [AttendanceRecord(**record) for record in records]

    async def delete_attendance_by_date(self, attendance_date: date) -> str:
        query = "DELETE FROM attendance WHERE attendance_date = $1;"
        async with self._pool.acquire() as connection:
            return await connection.execute(query, attendance_date)

    async def add_attendance_records(self, records: List[AttendanceRecord]):
        """Inserts the records as a single batch."""
        if not records:
            return
        async with self._pool.acquire() as connection:
            await connection.executemany(_INSERT_ATTENDANCE, _attendance_rows(records))

    async def replace_attendance_for_date(self, attendance_date: date, records: List[AttendanceRecord]) -> int:
        """
        Replaces every attendance row of a date with ``records`` and returns
        how many rows were replaced.

        A transaction-scoped advisory lock on the date serializes concurrent
        replaces of the same date. The delete-by-date and the batch insert
        share the transaction: a failing insert rolls the delete back.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(_LOCK_ATTENDANCE_DATE, ATTENDANCE_LOCK_NAMESPACE, attendance_date.toordinal())
                result = await connection.execute("DELETE FROM attendance WHERE attendance_date = $1;", attendance_date)
                replaced = _affected_rows(result)
                if replaced:
                    logger.info(f"Cleared attendance for {attendance_date}: {result}")
                if records:
                    await connection.executemany(_INSERT_ATTENDANCE, _attendance_rows(records))
                return replaced

    async def get_attendance_history(self, attendance_date: date) -> List[AttendanceHistoryRow]:
        """Attendance of a date with child details. Rows of deleted children are kept, without details."""
        query = """
            SELECT a.id, a.kid_id, a.status, k.registration_id, k.full_name, k.standard
            FROM attendance a
            LEFT JOIN kids k ON k.id = a.kid_id
            WHERE a.attendance_date = $1
            ORDER BY a.kid_id ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, attendance_date)
            return [AttendanceHistoryRow(**record) for record in records]

    # ===== Users =====

    async def get_user_by_username(self, username: str) -> Optional[User]:
        query = "SELECT * FROM users WHERE username = $1 LIMIT 1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, username)
            return User(**record) if record else None

    async def add_user(self, user: User) -> User:
        """Inserts a user. A taken username raises asyncpg.UniqueViolationError."""
        query = """
            INSERT INTO users (username, password_hash, sabha_name, karyakar_number)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user.username, user.password_hash, user.sabha_name, user.karyakar_number)
            return User(**record)


_INSERT_ATTENDANCE = """
    INSERT INTO attendance (kid_id, attendance_date, status)
    VALUES ($1, $2, $3);
"""


def _attendance_rows(records: List[AttendanceRecord]):
    return [(rec.kid_id, rec.attendance_date, rec.status.value) for rec in records]


# Advisory lock key of a date: (namespace, date ordinal).
ATTENDANCE_LOCK_NAMESPACE = 0x4253
_LOCK_ATTENDANCE_DATE = "SELECT pg_advisory_xact_lock($1, $2);"


def _affected_rows(status: str) -> int:
    """Row count of an asyncpg status string such as 'DELETE 3'."""
    try:
        return int(str(status).split()[-1])
    except (ValueError, IndexError):
        return 0
