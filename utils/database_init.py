import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS PATIENT (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        patient_id TEXT NOT NULL,
        name TEXT NOT NULL,
        age INTEGER,
        gender TEXT,
        tobacco TEXT,
        smoking TEXT,
        pan_masala TEXT,
        symptom_duration TEXT,
        pain_level TEXT,
        difficulty_swallowing TEXT,
        weight_loss TEXT,
        family_history TEXT,
        immune_compromised TEXT,
        persistent_sore_throat TEXT,
        voice_changes TEXT,
        lumps_in_neck TEXT,
        frequent_mouth_sores TEXT,
        poor_dental_hygiene TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (user_id, patient_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ANALYSIS (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        patient_id TEXT NOT NULL,
        image_url TEXT NOT NULL DEFAULT '',
        scan_id TEXT,
        result TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'completed',
        thumbnail BLOB,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_analysis_patient ON ANALYSIS(user_id, patient_id)",
    "CREATE INDEX IF NOT EXISTS idx_analysis_scan ON ANALYSIS(scan_id)",
)


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite database stored at <DATABASE_DIR>/app.db.

    - `db_dir` overrides the DATABASE_DIR environment variable; one of the two
      is required. A RuntimeError is raised if it is missing or invalid (not a
      directory and cannot be created).
    - The first call to `ensure_database()` creates the PATIENT and ANALYSIS
      tables. With `reset=True` any existing database file is deleted first.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Optional[Path | str] = None, reset: bool = False) -> None:
        env_dir = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR must be set to a writable directory for the "
                "screening database (app.db)."
            )

        path = Path(env_dir).expanduser()

        if path.exists() and not path.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file ({path}); "
                "expected a directory."
            )

        try:
            path.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {path}"
            ) from exc

        self.db_dir = path
        self.db_path = self.db_dir / "app.db"
        self.reset = reset

        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite schema exists at `self.db_path`.

        On first call this will:
            - Delete any existing database file when `reset` is set.
            - Create the PATIENT and ANALYSIS tables and their indexes.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        if self.reset and self.db_path.exists():
            try:
                self.db_path.unlink()
            except Exception as exc:
                raise RuntimeError(
                    f"Could not reset database at {self.db_path}"
                ) from exc

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    for statement in _SCHEMA:
                        await db.execute(statement)
                    await db.commit()
                break
            except FileNotFoundError:
                # freshly created directories can briefly be invisible on network mounts
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
