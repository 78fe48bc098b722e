"""Content-addressed cache for synthesized speech and lip-sync artifacts.

Wraps ArtifactStore with an async interface (blocking SQLite work runs in a
worker thread), expiry policy and process-local hit/miss counters.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..lipsync.models import LipSyncCueSequence
from . import get_cache_dir
from .models import CachedArtifact, CacheStats
from .storage import ArtifactStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=30)


class ArtifactCache:
    """High-level cache of voice artifacts keyed by derived content hash.

    Each operation is a single SQLite transaction, so get/touch/put on the
    same key never lose usage updates. Expired entries are treated as
    absent; ``purge_expired`` removes them physically.

    Example:
        cache = ArtifactCache()

        artifact = await cache.get_and_touch(key)
        if artifact is None:
            artifact = cache.create_artifact(key=key, text=text, ...)
            await cache.put(artifact)
    """

    def __init__(self, cache_dir: Path | None = None, ttl: timedelta = DEFAULT_TTL):
        """Initialize cache.

        Args:
            cache_dir: Directory for the cache database (defaults to
                ~/.cache/tutorvoice)
            ttl: Lifetime of a stored artifact

        Raises:
            ValueError: If ttl is negative
            RuntimeError: If the store cannot be initialized
        """
        if ttl < timedelta(0):
            raise ValueError(f"ttl must be non-negative, got {ttl}")

        self.cache_dir = cache_dir or get_cache_dir()
        self.ttl = ttl

        try:
            self.store = ArtifactStore(self.cache_dir)
        except Exception as e:
            raise RuntimeError(f"Failed to initialize artifact cache: {e}") from e

        self.lookups = 0
        self.hits = 0

        logger.info(f"ArtifactCache initialized at {self.cache_dir} with ttl {ttl}")

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def create_artifact(
        self,
        key: str,
        text: str,
        normalized_text: str,
        voice: str,
        model: str,
        language: str | None,
        audio: bytes,
        audio_format: str,
        duration: float,
        lip_sync: LipSyncCueSequence,
    ) -> CachedArtifact:
        """Build a fresh artifact with first-use metadata and expiry."""
        now = self._now()
        return CachedArtifact(
            key=key,
            text=text,
            normalized_text=normalized_text,
            voice=voice,
            model=model,
            language=language,
            audio=audio,
            audio_format=audio_format,
            duration=duration,
            lip_sync=lip_sync,
            times_used=1,
            last_used_at=now,
            created_at=now,
            expires_at=now + self.ttl,
        )

    def _count(self, artifact: CachedArtifact | None) -> None:
        self.lookups += 1
        if artifact is not None:
            self.hits += 1

    async def get(self, key: str) -> CachedArtifact | None:
        """Return the live artifact for ``key`` without recording usage."""
        artifact = await asyncio.to_thread(self.store.get, key, self._now())
        self._count(artifact)
        return artifact

    async def get_and_touch(
        self, key: str, count_lookup: bool = True
    ) -> CachedArtifact | None:
        """Return the live artifact for ``key`` and record the hit.

        Args:
            key: Cache key
            count_lookup: False for a re-check of a request whose lookup
                was already counted
        """
        artifact = await asyncio.to_thread(self.store.get_and_touch, key, self._now())
        if count_lookup:
            self._count(artifact)
        if artifact is not None:
            logger.debug(f"Cache hit {key[:12]} (used {artifact.times_used} times)")
        else:
            logger.debug(f"Cache miss {key[:12]}")
        return artifact

    async def touch(self, key: str) -> bool:
        """Increment usage for ``key``; False if absent or expired."""
        return await asyncio.to_thread(self.store.touch, key, self._now())

    async def put(self, artifact: CachedArtifact) -> None:
        """Insert or refresh ``artifact``.

        Raises:
            RuntimeError: If the write fails
        """
        try:
            await asyncio.to_thread(self.store.save, artifact)
        except Exception as e:
            raise RuntimeError(f"Failed to cache artifact {artifact.key[:12]}: {e}") from e
        logger.info(
            f"Cached voice artifact {artifact.key[:12]} "
            f"({len(artifact.audio)} bytes, {len(artifact.lip_sync.cues)} cues)"
        )

    async def stats(self) -> CacheStats:
        """Persisted totals combined with this process's lookup counters."""
        stored = await asyncio.to_thread(self.store.stats, self._now())
        return CacheStats(
            total_entries=stored.total_entries,
            total_bytes=stored.total_bytes,
            total_uses=stored.total_uses,
            lookups=self.lookups,
            hits=self.hits,
            misses=self.lookups - self.hits,
        )

    async def top_phrases(self, limit: int = 10) -> list[tuple[str, int]]:
        return await asyncio.to_thread(self.store.top_phrases, self._now(), limit)

    async def purge_expired(self) -> int:
        """Delete expired entries; returns how many were removed."""
        deleted = await asyncio.to_thread(self.store.purge_expired, self._now())
        logger.info(f"Purged {deleted} expired cache entries")
        return deleted
