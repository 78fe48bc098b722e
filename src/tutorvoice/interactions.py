"""Append-only log of voice pipeline invocations.

One row per ``speak`` call, whatever the outcome, so usage and latency can
be reviewed per learner later. Stored in SQLite next to the artifact cache.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .cache import get_cache_dir
from .cache.storage import from_db_time, to_db_time
from .speech.models import INTERACTION_TYPES

logger = logging.getLogger(__name__)

OUTCOMES = ("completed", "failed")


@dataclass(frozen=True)
class InteractionRecord:
    """Facts about one pipeline invocation.

    Args:
        interaction_type: Category of tutor utterance
        response_text: Text the tutor spoke (or tried to)
        voice: Voice used
        model: Synthesis model used
        language: Language tag passed through
        cache_hit: True if the artifact came from the cache
        lip_sync_generated: True if real mouth cues were produced
        response_time_ms: End-to-end latency
        audio_duration: Seconds of audio returned (None on failure)
        outcome: "completed" or "failed"
        error: Failure class name when outcome is "failed"
        subject_id: Opaque learner id
        session_id: Opaque session id
        activity_id: Opaque activity id
        created_at: When the invocation finished
    """

    interaction_type: str
    response_text: str
    voice: str
    model: str
    language: str | None
    cache_hit: bool
    lip_sync_generated: bool
    response_time_ms: int
    audio_duration: float | None = None
    outcome: str = "completed"
    error: str | None = None
    subject_id: str | None = None
    session_id: str | None = None
    activity_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.interaction_type not in INTERACTION_TYPES:
            raise ValueError(f"Unknown interaction type: {self.interaction_type}")
        if self.outcome not in OUTCOMES:
            raise ValueError(f"outcome must be one of {', '.join(OUTCOMES)}")
        if self.response_time_ms < 0:
            raise ValueError("response_time_ms must be non-negative")


class InteractionRecorder:
    """SQLite-backed sink for InteractionRecords.

    Rows are only ever inserted. Each call opens its own connection and runs
    in a worker thread.
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or get_cache_dir()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.data_dir / "interactions.db"

        conn = self._get_connection()
        try:
            self._init_db(conn)
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path), timeout=30.0, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        return conn

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS voice_interactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_id TEXT,
                session_id TEXT,
                activity_id TEXT,
                interaction_type TEXT NOT NULL,
                response_text TEXT NOT NULL,
                audio_duration REAL,
                voice TEXT NOT NULL,
                tts_model TEXT NOT NULL,
                language TEXT,
                cache_hit INTEGER NOT NULL,
                lipsync_generated INTEGER NOT NULL,
                response_time_ms INTEGER NOT NULL,
                outcome TEXT NOT NULL,
                error TEXT,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_voice_interactions_subject
            ON voice_interactions(subject_id, created_at DESC)
        """)
        conn.commit()

    def _insert(self, record: InteractionRecord) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO voice_interactions (
                        subject_id, session_id, activity_id, interaction_type,
                        response_text, audio_duration, voice, tts_model, language,
                        cache_hit, lipsync_generated, response_time_ms, outcome,
                        error, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.subject_id,
                        record.session_id,
                        record.activity_id,
                        record.interaction_type,
                        record.response_text,
                        record.audio_duration,
                        record.voice,
                        record.model,
                        record.language,
                        int(record.cache_hit),
                        int(record.lip_sync_generated),
                        record.response_time_ms,
                        record.outcome,
                        record.error,
                        to_db_time(record.created_at),
                    ),
                )
        finally:
            conn.close()

    def _select_subject(self, subject_id: str, limit: int) -> list[InteractionRecord]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM voice_interactions
                WHERE subject_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (subject_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_record(row) for row in rows]

    def _aggregate(self) -> dict[str, Any]:
        conn = self._get_connection()
        try:
            totals = conn.execute("""
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(audio_duration), 0) AS total_audio,
                    COALESCE(AVG(response_time_ms), 0) AS avg_response,
                    COALESCE(AVG(cache_hit * 1.0), 0) AS hit_rate,
                    COALESCE(SUM(outcome = 'failed'), 0) AS failures
                FROM voice_interactions
            """).fetchone()
            by_type = conn.execute("""
                SELECT interaction_type, COUNT(*) AS n
                FROM voice_interactions
                GROUP BY interaction_type
            """).fetchall()
        finally:
            conn.close()

        return {
            "total_interactions": totals["total"],
            "total_audio_duration": float(totals["total_audio"]),
            "avg_response_time_ms": float(totals["avg_response"]),
            "cache_hit_rate": float(totals["hit_rate"]),
            "failures": totals["failures"],
            "by_type": {row["interaction_type"]: row["n"] for row in by_type},
        }

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> InteractionRecord:
        return InteractionRecord(
            interaction_type=row["interaction_type"],
            response_text=row["response_text"],
            voice=row["voice"],
            model=row["tts_model"],
            language=row["language"],
            cache_hit=bool(row["cache_hit"]),
            lip_sync_generated=bool(row["lipsync_generated"]),
            response_time_ms=row["response_time_ms"],
            audio_duration=row["audio_duration"],
            outcome=row["outcome"],
            error=row["error"],
            subject_id=row["subject_id"],
            session_id=row["session_id"],
            activity_id=row["activity_id"],
            created_at=from_db_time(row["created_at"]),
        )

    async def record(self, record: InteractionRecord) -> None:
        """Append one record."""
        await asyncio.to_thread(self._insert, record)
        logger.debug(
            f"Recorded {record.outcome} {record.interaction_type} interaction "
            f"(cache_hit={record.cache_hit}, {record.response_time_ms}ms)"
        )

    async def for_subject(
        self, subject_id: str, limit: int = 50
    ) -> list[InteractionRecord]:
        """Most recent interactions for one learner, newest first."""
        return await asyncio.to_thread(self._select_subject, subject_id, limit)

    async def summary(self) -> dict[str, Any]:
        """Aggregate counts: totals, mean latency, hit ratio and per-type counts."""
        return await asyncio.to_thread(self._aggregate)
