"""SQLite storage for synthesized voice artifacts."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from ..lipsync.models import LipSyncCueSequence
from .models import CachedArtifact, CacheStats

_COLUMNS = (
    "cache_key, text_content, text_normalized, voice, tts_model, language, "
    "audio, audio_format, audio_duration_seconds, lipsync_json, "
    "times_used, last_used_at, created_at, expires_at"
)


def to_db_time(value: datetime) -> str:
    """Serialize a datetime as a sortable UTC ISO string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


class ArtifactStore:
    """SQLite-based storage for cached voice artifacts.

    Audio is stored inline as a BLOB and the cue sequence as JSON, so a
    single row is a complete artifact. Every operation opens its own
    connection; WAL mode lets concurrent readers proceed during writes.
    """

    def __init__(self, cache_dir: Path):
        """Initialize storage with database in given directory.

        Args:
            cache_dir: Directory containing the cache database
        """
        self.cache_dir = cache_dir
        cache_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = cache_dir / "voice_cache.db"

        conn = self._get_connection()
        try:
            self._init_db(conn)
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,  # 30 second timeout if locked
            check_same_thread=False,  # Used from worker threads
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_db(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema with tables and indexes."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS voice_cache (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                cache_key TEXT NOT NULL UNIQUE,
                text_content TEXT NOT NULL,
                text_normalized TEXT NOT NULL,
                voice TEXT NOT NULL,
                tts_model TEXT NOT NULL,
                language TEXT,
                audio BLOB NOT NULL,
                audio_format TEXT NOT NULL,
                audio_duration_seconds REAL NOT NULL,
                lipsync_json TEXT NOT NULL,
                times_used INTEGER NOT NULL DEFAULT 1,
                last_used_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_voice_cache_last_used
            ON voice_cache(last_used_at DESC)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_voice_cache_expires
            ON voice_cache(expires_at)
        """)
        conn.commit()

    def save(self, artifact: CachedArtifact) -> None:
        """Insert or refresh an artifact.

        Re-saving a live key replaces the payload and extends expiry but
        keeps the usage counters and creation time. Re-saving an expired
        key starts it over.

        Args:
            artifact: Artifact to store
        """
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(
                    f"""
                    INSERT INTO voice_cache ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(cache_key) DO UPDATE SET
                        text_content = excluded.text_content,
                        text_normalized = excluded.text_normalized,
                        voice = excluded.voice,
                        tts_model = excluded.tts_model,
                        language = excluded.language,
                        audio = excluded.audio,
                        audio_format = excluded.audio_format,
                        audio_duration_seconds = excluded.audio_duration_seconds,
                        lipsync_json = excluded.lipsync_json,
                        times_used = CASE
                            WHEN voice_cache.expires_at <= excluded.created_at
                            THEN excluded.times_used
                            ELSE voice_cache.times_used END,
                        created_at = CASE
                            WHEN voice_cache.expires_at <= excluded.created_at
                            THEN excluded.created_at
                            ELSE voice_cache.created_at END,
                        last_used_at = excluded.last_used_at,
                        expires_at = excluded.expires_at
                    """,
                    (
                        artifact.key,
                        artifact.text,
                        artifact.normalized_text,
                        artifact.voice,
                        artifact.model,
                        artifact.language,
                        artifact.audio,
                        artifact.audio_format,
                        artifact.duration,
                        json.dumps(artifact.lip_sync.to_dict()),
                        artifact.times_used,
                        to_db_time(artifact.last_used_at),
                        to_db_time(artifact.created_at),
                        to_db_time(artifact.expires_at),
                    ),
                )
        finally:
            conn.close()

    def get(self, key: str, now: datetime) -> CachedArtifact | None:
        """Retrieve a live artifact by key.

        Args:
            key: Cache key
            now: Reference time for expiry

        Returns:
            Artifact if present and unexpired, None otherwise
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM voice_cache "
                "WHERE cache_key = ? AND expires_at > ?",
                (key, to_db_time(now)),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_artifact(row) if row else None

    def touch(self, key: str, now: datetime) -> bool:
        """Increment usage of a live artifact.

        Returns:
            True if a live row was updated
        """
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    """
                    UPDATE voice_cache
                    SET times_used = times_used + 1, last_used_at = ?
                    WHERE cache_key = ? AND expires_at > ?
                    """,
                    (to_db_time(now), key, to_db_time(now)),
                )
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get_and_touch(self, key: str, now: datetime) -> CachedArtifact | None:
        """Record a hit and return the updated artifact in one transaction."""
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    """
                    UPDATE voice_cache
                    SET times_used = times_used + 1, last_used_at = ?
                    WHERE cache_key = ? AND expires_at > ?
                    """,
                    (to_db_time(now), key, to_db_time(now)),
                )
                if cursor.rowcount == 0:
                    return None
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM voice_cache WHERE cache_key = ?",
                    (key,),
                ).fetchone()
        finally:
            conn.close()
        return self._row_to_artifact(row) if row else None

    def stats(self, now: datetime) -> CacheStats:
        """Aggregate counts over live entries."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total_entries,
                       COALESCE(SUM(LENGTH(audio)), 0) AS total_bytes,
                       COALESCE(SUM(times_used), 0) AS total_uses
                FROM voice_cache
                WHERE expires_at > ?
                """,
                (to_db_time(now),),
            ).fetchone()
        finally:
            conn.close()
        return CacheStats(
            total_entries=row["total_entries"],
            total_bytes=row["total_bytes"],
            total_uses=row["total_uses"],
        )

    def top_phrases(self, now: datetime, limit: int = 10) -> list[tuple[str, int]]:
        """Most reused live texts as (text, times_used) pairs."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT text_content, times_used FROM voice_cache
                WHERE expires_at > ?
                ORDER BY times_used DESC, last_used_at DESC
                LIMIT ?
                """,
                (to_db_time(now), limit),
            ).fetchall()
        finally:
            conn.close()
        return [(row["text_content"], row["times_used"]) for row in rows]

    def purge_expired(self, now: datetime) -> int:
        """Physically delete expired rows.

        Returns:
            Number of rows deleted
        """
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM voice_cache WHERE expires_at <= ?",
                    (to_db_time(now),),
                )
            return cursor.rowcount
        finally:
            conn.close()

    @staticmethod
    def _row_to_artifact(row: sqlite3.Row) -> CachedArtifact:
        # Convert stored strings back to proper types
        return CachedArtifact(
            key=row["cache_key"],
            text=row["text_content"],
            normalized_text=row["text_normalized"],
            voice=row["voice"],
            model=row["tts_model"],
            language=row["language"],
            audio=bytes(row["audio"]),
            audio_format=row["audio_format"],
            duration=row["audio_duration_seconds"],
            lip_sync=LipSyncCueSequence.from_dict(json.loads(row["lipsync_json"])),
            times_used=row["times_used"],
            last_used_at=from_db_time(row["last_used_at"]),
            created_at=from_db_time(row["created_at"]),
            expires_at=from_db_time(row["expires_at"]),
        )
