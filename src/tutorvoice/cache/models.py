"""Data models for the artifact cache."""

from dataclasses import dataclass
from datetime import datetime

from ..lipsync.models import LipSyncCueSequence


@dataclass(frozen=True)
class CachedArtifact:
    """Synthesized speech plus lip-sync, keyed by content hash.

    Attributes:
        key: Derived cache key
        text: Original input text
        normalized_text: Text after normalization
        voice: Voice used for synthesis
        model: Synthesis model used
        language: Language tag passed through to synthesis
        audio: Encoded audio bytes
        audio_format: Audio container ("wav", "mp3")
        duration: Audio duration in seconds
        lip_sync: Mouth cue sequence
        times_used: Number of times served (>= 1)
        last_used_at: Last time this artifact was served
        created_at: When this artifact was first stored
        expires_at: After this moment the artifact counts as absent
    """

    key: str
    text: str
    normalized_text: str
    voice: str
    model: str
    language: str | None
    audio: bytes
    audio_format: str
    duration: float
    lip_sync: LipSyncCueSequence
    times_used: int
    last_used_at: datetime
    created_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError("duration must be non-negative")
        if self.times_used < 1:
            raise ValueError("times_used must be at least 1")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class CacheStats:
    """Aggregate cache statistics for diagnostics.

    Attributes:
        total_entries: Live (unexpired) entries
        total_bytes: Audio bytes stored across live entries
        total_uses: Sum of times_used across live entries
        lookups: Lookups served by this process
        hits: Lookups that found a live entry
        misses: Lookups that did not
    """

    total_entries: int
    total_bytes: int
    total_uses: int
    lookups: int = 0
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        """Approximate hit rate in [0, 1].

        Uses this process's counters when it has served lookups, otherwise
        the persisted reuse ratio (every use after the first was a hit).
        """
        if self.lookups:
            return self.hits / self.lookups
        if self.total_uses:
            return (self.total_uses - self.total_entries) / self.total_uses
        return 0.0
