"""Lip-sync data models with validation."""

from dataclasses import dataclass, field
from typing import Any

# Rhubarb mouth shapes: A-F basic, G/H extended, X idle/silence
VISEMES = ("A", "B", "C", "D", "E", "F", "G", "H", "X")
IDLE_VISEME = "X"

# Floating point slack when comparing adjacent cue boundaries
_BOUNDARY_TOLERANCE = 1e-6


@dataclass(frozen=True)
class MouthCue:
    """A timed mouth shape.

    Args:
        start: Start time in seconds
        end: End time in seconds (strictly after start)
        value: Viseme symbol from VISEMES
    """

    start: float
    end: float
    value: str

    def __post_init__(self) -> None:
        """Validate cue timing and shape."""
        if self.start < 0 or self.end < 0:
            raise ValueError("cue times must be non-negative")
        if self.start >= self.end:
            raise ValueError(
                f"cue start must be before end, got {self.start} >= {self.end}"
            )
        if self.value not in VISEMES:
            raise ValueError(f"unknown viseme: {self.value!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "value": self.value}


@dataclass(frozen=True)
class LipSyncCueSequence:
    """Ordered, non-overlapping mouth cues for one audio clip.

    An empty sequence means "no mouth animation available". When
    ``degraded`` is set, the analysis failed and the avatar should stay idle.

    Args:
        duration: Total audio duration in seconds
        cues: Cues sorted by start time
        degraded: True when produced by the failure fallback
    """

    duration: float
    cues: tuple[MouthCue, ...] = field(default_factory=tuple)
    degraded: bool = False

    def __post_init__(self) -> None:
        """Validate ordering invariants."""
        if self.duration < 0:
            raise ValueError("duration must be non-negative")

        # Accept lists from callers but store an immutable tuple
        if not isinstance(self.cues, tuple):
            object.__setattr__(self, "cues", tuple(self.cues))

        previous: MouthCue | None = None
        for cue in self.cues:
            if previous is not None and cue.start + _BOUNDARY_TOLERANCE < previous.end:
                raise ValueError(
                    f"cues overlap or are unsorted: {previous} then {cue}"
                )
            previous = cue

    @classmethod
    def empty(cls, duration: float = 0.0, degraded: bool = False) -> "LipSyncCueSequence":
        """Build a cue-less sequence for the given duration."""
        return cls(duration=max(0.0, duration), cues=(), degraded=degraded)

    @property
    def is_empty(self) -> bool:
        return not self.cues

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the Rhubarb JSON shape consumed by the avatar front end."""
        return {
            "metadata": {"duration": self.duration, "degraded": self.degraded},
            "mouthCues": [cue.to_dict() for cue in self.cues],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LipSyncCueSequence":
        """Rebuild a sequence previously produced by to_dict()."""
        metadata = data.get("metadata") or {}
        cues = tuple(
            MouthCue(start=float(c["start"]), end=float(c["end"]), value=c["value"])
            for c in data.get("mouthCues", [])
        )
        return cls(
            duration=float(metadata.get("duration", 0.0)),
            cues=cues,
            degraded=bool(metadata.get("degraded", False)),
        )
