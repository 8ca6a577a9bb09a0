"""
Job Store Service
SQLite-backed persistence for source videos and export jobs.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from ..config import get_settings
from ..models.export_job import ExportJob, JobStatus
from ..models.video import VideoAsset
from ..utils.logger import get_logger

logger = get_logger()

# Columns a partial job update may touch
_UPDATABLE_JOB_FIELDS = {
    "status",
    "progress",
    "error_message",
    "results",
    "started_at",
    "completed_at",
}

_JOB_COLUMNS = (
    "id, video_id, client_id, source_url, naming_pattern, status, progress, "
    "edit_state, outputs, results, error_message, created_at, started_at, "
    "completed_at, updated_at"
)


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def _dump_models(items) -> str:
    return json.dumps(
        [item.model_dump(by_alias=True, mode="json") for item in items],
        ensure_ascii=False,
    )


class JobStore:
    """Persistent storage for source videos and export jobs."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def initialize(self):
        """Initialize database schema."""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA synchronous=NORMAL")
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS video_assets (
                        id TEXT PRIMARY KEY,
                        client_id TEXT NOT NULL,
                        status TEXT NOT NULL,
                        video_url TEXT,
                        duration_seconds REAL,
                        edit_state TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS export_jobs (
                        id TEXT PRIMARY KEY,
                        video_id TEXT NOT NULL,
                        client_id TEXT NOT NULL,
                        source_url TEXT,
                        naming_pattern TEXT NOT NULL,
                        status TEXT NOT NULL,
                        progress INTEGER NOT NULL DEFAULT 0,
                        edit_state TEXT NOT NULL,
                        outputs TEXT NOT NULL,
                        results TEXT NOT NULL DEFAULT '[]',
                        error_message TEXT,
                        created_at TEXT NOT NULL,
                        started_at TEXT,
                        completed_at TEXT,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_export_jobs_status_created "
                    "ON export_jobs(status, created_at)"
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_export_jobs_video "
                    "ON export_jobs(video_id, client_id)"
                )
                await conn.commit()

            self._initialized = True
            logger.info(f"Job store initialized at {self.db_path}")

    @staticmethod
    def _row_to_job(row: aiosqlite.Row) -> ExportJob:
        return ExportJob(
            id=row["id"],
            video_id=row["video_id"],
            client_id=row["client_id"],
            source_url=row["source_url"],
            naming_pattern=row["naming_pattern"],
            status=row["status"],
            progress=row["progress"],
            edit_state=json.loads(row["edit_state"]),
            outputs=json.loads(row["outputs"]),
            results=json.loads(row["results"] or "[]"),
            error_message=row["error_message"],
            created_at=row["created_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_video(row: aiosqlite.Row) -> VideoAsset:
        return VideoAsset(
            id=row["id"],
            client_id=row["client_id"],
            status=row["status"],
            video_url=row["video_url"],
            duration_seconds=row["duration_seconds"],
            edit_state=json.loads(row["edit_state"]) if row["edit_state"] else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def _fetch_jobs(self, query: str, params: tuple) -> List[ExportJob]:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            await cursor.close()
        return [self._row_to_job(row) for row in rows]

    # =========================================================================
    # Export jobs
    # =========================================================================

    async def insert_job(self, job: ExportJob):
        """Insert a newly created export job."""
        await self.initialize()
        edit_state = json.dumps(
            job.edit_state.model_dump(by_alias=True, mode="json", exclude_none=True),
            ensure_ascii=False,
        )

        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    f"INSERT INTO export_jobs ({_JOB_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        job.id,
                        job.video_id,
                        job.client_id,
                        job.source_url,
                        job.naming_pattern,
                        job.status,
                        job.progress,
                        edit_state,
                        _dump_models(job.outputs),
                        _dump_models(job.results),
                        job.error_message,
                        _timestamp(job.created_at),
                        _timestamp(job.started_at),
                        _timestamp(job.completed_at),
                        _timestamp(job.updated_at),
                    ),
                )
                await conn.commit()

    async def get_job(self, job_id: str) -> Optional[ExportJob]:
        """Return a single job or None."""
        jobs = await self._fetch_jobs(
            f"SELECT {_JOB_COLUMNS} FROM export_jobs WHERE id = ?",
            (job_id,),
        )
        return jobs[0] if jobs else None

    async def fetch_pending(self, limit: int) -> List[ExportJob]:
        """Return up to `limit` pending jobs, oldest first."""
        if limit <= 0:
            return []
        return await self._fetch_jobs(
            f"SELECT {_JOB_COLUMNS} FROM export_jobs WHERE status = ? "
            "ORDER BY created_at ASC, rowid ASC LIMIT ?",
            (JobStatus.PENDING.value, limit),
        )

    async def count_pending(self) -> int:
        """Exact number of jobs waiting to be processed."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM export_jobs WHERE status = ?",
                (JobStatus.PENDING.value,),
            )
            (count,) = await cursor.fetchone()
            await cursor.close()
        return count

    async def list_jobs_for_video(
        self,
        video_id: str,
        client_id: str,
        limit: int = 20
    ) -> List[ExportJob]:
        """Return a video's export jobs, newest first."""
        return await self._fetch_jobs(
            f"SELECT {_JOB_COLUMNS} FROM export_jobs "
            "WHERE video_id = ? AND client_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (video_id, client_id, limit),
        )

    async def claim_job(self, job_id: str, started_at: Optional[datetime] = None) -> bool:
        """
        Move a job from pending to processing.

        Returns False when the job is no longer pending, e.g. another worker
        claimed it first.
        """
        await self.initialize()
        started_at = started_at or datetime.utcnow()

        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                cursor = await conn.execute(
                    """
                    UPDATE export_jobs
                    SET status = ?, started_at = ?, updated_at = ?
                    WHERE id = ? AND status = ?
                    """,
                    (
                        JobStatus.PROCESSING.value,
                        _timestamp(started_at),
                        _timestamp(datetime.utcnow()),
                        job_id,
                        JobStatus.PENDING.value,
                    ),
                )
                claimed = cursor.rowcount == 1
                await cursor.close()
                await conn.commit()
        return claimed

    async def update_job(self, job_id: str, **fields: Any):
        """Apply a partial update to one job row in a single statement."""
        unknown = set(fields) - _UPDATABLE_JOB_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")
        await self.initialize()

        values: Dict[str, Any] = {}
        for name, value in fields.items():
            if name == "results":
                value = _dump_models(value)
            elif name in ("started_at", "completed_at"):
                value = _timestamp(value)
            elif name == "status" and isinstance(value, JobStatus):
                value = value.value
            values[name] = value
        values["updated_at"] = _timestamp(datetime.utcnow())

        assignments = ", ".join(f"{name} = ?" for name in values)
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    f"UPDATE export_jobs SET {assignments} WHERE id = ?",
                    (*values.values(), job_id),
                )
                await conn.commit()

    # =========================================================================
    # Source videos
    # =========================================================================

    async def upsert_video(self, video: VideoAsset):
        """Insert or update a source video record."""
        await self.initialize()
        edit_state = json.dumps(video.edit_state, ensure_ascii=False) if video.edit_state else None

        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    """
                    INSERT INTO video_assets (
                        id, client_id, status, video_url, duration_seconds,
                        edit_state, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        client_id = excluded.client_id,
                        status = excluded.status,
                        video_url = excluded.video_url,
                        duration_seconds = excluded.duration_seconds,
                        edit_state = excluded.edit_state,
                        updated_at = excluded.updated_at
                    """,
                    (
                        video.id,
                        video.client_id,
                        video.status,
                        video.video_url,
                        video.duration_seconds,
                        edit_state,
                        _timestamp(video.created_at),
                        _timestamp(datetime.utcnow()),
                    ),
                )
                await conn.commit()

    async def get_video(self, video_id: str, client_id: Optional[str] = None) -> Optional[VideoAsset]:
        """Return a source video, optionally scoped to its owning client."""
        await self.initialize()
        query = "SELECT * FROM video_assets WHERE id = ?"
        params: tuple = (video_id,)

        if client_id is not None:
            query += " AND client_id = ?"
            params = (video_id, client_id)

        async with aiosqlite.connect(self.db_path) as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            await cursor.close()
        return self._row_to_video(row) if row else None

    async def save_edit_state(self, video_id: str, edit_state: Dict[str, Any]):
        """Replace the live edit state of a source video."""
        await self.initialize()
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    "UPDATE video_assets SET edit_state = ?, updated_at = ? WHERE id = ?",
                    (
                        json.dumps(edit_state, ensure_ascii=False),
                        _timestamp(datetime.utcnow()),
                        video_id,
                    ),
                )
                await conn.commit()


_job_store: Optional[JobStore] = None


def get_job_store() -> JobStore:
    """Return singleton job store."""
    global _job_store
    if _job_store is None:
        settings = get_settings()
        db_path = Path(settings.data_dir) / "video_export.db"
        _job_store = JobStore(str(db_path))
    return _job_store
