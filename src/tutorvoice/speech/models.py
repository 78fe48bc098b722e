"""Speech pipeline data models with validation."""

import base64
from dataclasses import dataclass, field
from typing import Any

from ..lipsync.models import LipSyncCueSequence

INTERACTION_TYPES = ("question", "hint", "explanation", "encouragement", "introduction")

OPTIONAL_STRING_PARAMS = (
    "voice",
    "model",
    "language",
    "subject_id",
    "session_id",
    "activity_id",
    "interaction_type",
)


@dataclass(frozen=True)
class SynthesisResult:
    """Raw output of one synthesis call.

    Args:
        audio: Encoded audio bytes
        voice: Voice the provider actually used
        model: Model the provider actually used
        audio_format: Container of ``audio`` ("wav", "mp3")
    """

    audio: bytes
    voice: str
    model: str
    audio_format: str = "wav"

    def __post_init__(self) -> None:
        if not self.audio:
            raise ValueError("audio cannot be empty")


@dataclass(frozen=True)
class TranscriptionSegment:
    start: float
    end: float
    text: str


@dataclass(frozen=True)
class TranscriptionResult:
    """Detailed transcription output.

    Args:
        text: Trimmed transcript (empty when no speech was detected)
        duration: Audio duration reported by the service
        language: Language detected or used
        segments: Per-segment timestamps
    """

    text: str
    duration: float | None = None
    language: str | None = None
    segments: tuple[TranscriptionSegment, ...] = ()


@dataclass
class SpeakRequest:
    """Request to voice a tutor response.

    Args:
        text: Text to speak
        voice: Voice identifier (provider default if None)
        model: Synthesis model (provider default if None)
        language: Language tag passed through to synthesis and the cache key
        use_cache: False bypasses both cache lookup and storage
        subject_id: Opaque id of the learner (owned by the caller)
        session_id: Opaque session id
        activity_id: Opaque activity id
        interaction_type: Category recorded with the interaction
    """

    text: str
    voice: str | None = None
    model: str | None = None
    language: str | None = None
    use_cache: bool = True
    subject_id: str | None = None
    session_id: str | None = None
    activity_id: str | None = None
    interaction_type: str = "explanation"

    def __post_init__(self) -> None:
        if self.interaction_type not in INTERACTION_TYPES:
            raise ValueError(
                f"interaction_type must be one of {', '.join(INTERACTION_TYPES)}"
            )

    @classmethod
    def from_dict(cls, params: dict[str, Any]) -> "SpeakRequest":
        """Build a request from JSON-style keys (daemon and CLI transports).

        Raises:
            ValueError: If a field has the wrong JSON type
        """
        text = params.get("text")
        if text is None:
            text = ""
        elif not isinstance(text, str):
            raise ValueError("text must be a string")

        for name in OPTIONAL_STRING_PARAMS:
            value = params.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string")

        use_cache = params.get("use_cache", True)
        if not isinstance(use_cache, bool):
            raise ValueError("use_cache must be true or false")

        return cls(
            text=text,
            voice=params.get("voice"),
            model=params.get("model"),
            language=params.get("language"),
            use_cache=use_cache,
            subject_id=params.get("subject_id"),
            session_id=params.get("session_id"),
            activity_id=params.get("activity_id"),
            interaction_type=params.get("interaction_type") or "explanation",
        )


@dataclass(frozen=True)
class SpeakResponse:
    """A complete spoken response: audio, mouth cues and timing."""

    audio: bytes
    lip_sync: LipSyncCueSequence
    duration_seconds: float
    cache_hit: bool
    voice: str
    model: str
    language: str | None
    audio_format: str = "wav"
    cache_key: str | None = None
    response_time_ms: int = 0

    @property
    def lip_sync_degraded(self) -> bool:
        return self.lip_sync.degraded

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation with base64 audio."""
        return {
            "audio": base64.b64encode(self.audio).decode("ascii"),
            "audio_format": self.audio_format,
            "lipsync": self.lip_sync.to_dict(),
            "lipsync_degraded": self.lip_sync_degraded,
            "duration": self.duration_seconds,
            "cache_hit": self.cache_hit,
            "voice": self.voice,
            "model": self.model,
            "language": self.language,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class ListenRequest:
    audio: bytes
    language: str | None = None


@dataclass(frozen=True)
class ListenResponse:
    """Transcribed learner speech.

    ``text`` is empty when no speech was detected; that is not an error and
    callers must check ``no_speech`` explicitly.
    """

    text: str
    duration_estimate_seconds: float
    language: str | None
    response_time_ms: int = 0
    segments: tuple[TranscriptionSegment, ...] = field(default_factory=tuple)

    @property
    def no_speech(self) -> bool:
        return not self.text

    def to_dict(self) -> dict[str, Any]:
        return {
            "transcription": self.text,
            "no_speech": self.no_speech,
            "duration": self.duration_estimate_seconds,
            "language": self.language,
            "response_time_ms": self.response_time_ms,
        }
