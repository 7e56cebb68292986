"""Async Data Access Layer for the ANALYSIS table.

The interpreted `ClassificationResult` is stored as JSON text in the
`result` column and restored on read.
"""

from __future__ import annotations

import json
import uuid
from typing import List, Optional, Sequence

from dal.patient_dal import utc_now_iso
from models.analysis_record import AnalysisRecord
from models.classification import ClassificationResult
from utils.database_init import AsyncDatabaseInitializer


class AnalysisDAL:
    """Data access layer for ANALYSIS records."""

    _COLUMNS = (
        "id",
        "user_id",
        "patient_id",
        "image_url",
        "scan_id",
        "result",
        "status",
        "thumbnail",
        "created_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_analysis(self, record: AnalysisRecord) -> AnalysisRecord:
        """Insert a new ANALYSIS row and return it with id and timestamp set."""
        record.id = record.id or uuid.uuid4().hex
        record.created_at = record.created_at or utc_now_iso()
        record.scan_id = record.scan_id or record.result.scan_id or uuid.uuid4().hex

        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO ANALYSIS ({self._COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user_id,
                    record.patient_id,
                    record.image_url or "",
                    record.scan_id,
                    json.dumps(record.result.to_dict()),
                    record.status,
                    record.thumbnail,
                    record.created_at,
                ),
            )
            await conn.commit()
        return record

    async def get_analysis(self, user_id: str, analysis_id: str) -> Optional[AnalysisRecord]:
        """Return the user's analysis with `analysis_id`, or None."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM ANALYSIS WHERE user_id = ? AND id = ?",
                (user_id, analysis_id),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def get_by_scan_id(self, user_id: str, scan_id: str) -> Optional[AnalysisRecord]:
        """Return the most recent analysis carrying `scan_id`, or None."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM ANALYSIS WHERE user_id = ? AND scan_id = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (user_id, scan_id),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_analyses(
        self,
        user_id: str,
        patient_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AnalysisRecord]:
        """List analyses newest first, optionally for one patient."""
        sql = f"SELECT {self._COLUMN_LIST} FROM ANALYSIS WHERE user_id = ?"
        params: list = [user_id]
        if patient_id is not None:
            sql += " AND patient_id = ?"
            params.append(patient_id)
        sql += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def delete_analysis(self, user_id: str, analysis_id: str) -> bool:
        """Delete an analysis. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "DELETE FROM ANALYSIS WHERE user_id = ? AND id = ?",
                (user_id, analysis_id),
            )
            await conn.commit()
            return cur.rowcount > 0

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> AnalysisRecord:
        """Convert a DB row tuple into an AnalysisRecord."""
        return AnalysisRecord(
            id=row[0],
            user_id=row[1],
            patient_id=row[2],
            image_url=row[3] or "",
            scan_id=row[4],
            result=ClassificationResult.from_dict(json.loads(row[5] or "{}")),
            status=row[6],
            thumbnail=row[7],
            created_at=row[8],
        )
