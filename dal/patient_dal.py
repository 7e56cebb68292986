"""Async Data Access Layer for the PATIENT table.

Provides PatientDAL with async CRUD operations compatible with
`utils.database_init.AsyncDatabaseInitializer`. Every query is scoped to the
owning `user_id`.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from models.patient_record import PatientRecord
from utils.database_init import AsyncDatabaseInitializer


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PatientDAL:
    """Data access layer for PATIENT records."""

    _COLUMNS = (
        "id",
        "user_id",
        "patient_id",
        "name",
        "age",
        "gender",
        "tobacco",
        "smoking",
        "pan_masala",
        "symptom_duration",
        "pain_level",
        "difficulty_swallowing",
        "weight_loss",
        "family_history",
        "immune_compromised",
        "persistent_sore_throat",
        "voice_changes",
        "lumps_in_neck",
        "frequent_mouth_sores",
        "poor_dental_hygiene",
        "created_at",
        "updated_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)
    # columns a caller may change after creation
    UPDATABLE = frozenset(_COLUMNS) - {"id", "user_id", "created_at", "updated_at"}

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_patient(self, record: PatientRecord) -> PatientRecord:
        """Insert a new PATIENT row and return it with id and timestamps set.

        Raises:
            aiosqlite.IntegrityError: If the user already has this `patient_id`.
        """
        now = utc_now_iso()
        record.id = record.id or uuid.uuid4().hex
        record.created_at = record.created_at or now
        record.updated_at = now

        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO PATIENT ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS})",
                tuple(getattr(record, col) for col in self._COLUMNS),
            )
            await conn.commit()
        return record

    async def get_patient(self, user_id: str, patient_id: str) -> Optional[PatientRecord]:
        """Return the user's patient with `patient_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM PATIENT WHERE user_id = ? AND patient_id = ? LIMIT 1",
                (user_id, patient_id),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_patients(self, user_id: str, limit: int = 100, offset: int = 0) -> List[PatientRecord]:
        """List the user's patients, newest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM PATIENT WHERE user_id = ? "
                "ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (user_id, limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def update_patient(
        self, user_id: str, current_patient_id: str, **changes: Any
    ) -> Optional[PatientRecord]:
        """Apply non-None `changes` and return the updated record, or None if missing.

        Renaming the patient (a new `patient_id`) moves their analyses with them.

        Raises:
            ValueError: If a change names a column that cannot be updated.
        """
        unknown = set(changes) - self.UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        updates = {col: val for col, val in changes.items() if val is not None}
        if not updates:
            return await self.get_patient(user_id, current_patient_id)

        updates["updated_at"] = utc_now_iso()
        fields = ", ".join(f"{col} = ?" for col in updates)
        params = list(updates.values()) + [user_id, current_patient_id]
        new_patient_id = updates.get("patient_id", current_patient_id)

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"UPDATE PATIENT SET {fields} WHERE user_id = ? AND patient_id = ?",
                tuple(params),
            )
            if cur.rowcount == 0:
                return None
            if new_patient_id != current_patient_id:
                await conn.execute(
                    "UPDATE ANALYSIS SET patient_id = ? WHERE user_id = ? AND patient_id = ?",
                    (new_patient_id, user_id, current_patient_id),
                )
            await conn.commit()

        return await self.get_patient(user_id, new_patient_id)

    async def delete_patient(self, user_id: str, patient_id: str) -> bool:
        """Delete the patient and their analyses. Returns True if the patient existed."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "DELETE FROM PATIENT WHERE user_id = ? AND patient_id = ?",
                (user_id, patient_id),
            )
            deleted = cur.rowcount
            await conn.execute(
                "DELETE FROM ANALYSIS WHERE user_id = ? AND patient_id = ?",
                (user_id, patient_id),
            )
            await conn.commit()
            return deleted > 0

    @classmethod
    def _row_to_record(cls, row: Sequence[object]) -> PatientRecord:
        """Convert a DB row tuple into a PatientRecord."""
        return PatientRecord(**dict(zip(cls._COLUMNS, row)))
